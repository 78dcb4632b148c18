import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel

from srp.config import STATIC_DATA_DIR

logger = logging.getLogger(__name__)

CATALOG_FILE = "ship_catalog.json"


class ShipData(BaseModel):
    typeID: int
    typeName: str
    typeNameKo: str = ""
    groupID: int
    groupName: str
    groupNameKo: str = ""
    categoryID: int
    categoryName: str
    basePrice: float = 0
    volume: Optional[float] = None
    marketGroupID: Optional[int] = None


class ShipCatalog:
    """Ship types from the static data export, indexed by type id and group."""

    def __init__(self, ships: Optional[List[ShipData]] = None, version: Optional[str] = None):
        self.version = version
        self._by_type_id: Dict[int, ShipData] = {}
        self._by_group: Dict[str, List[ShipData]] = {}
        self._index(ships or [])

    def _index(self, ships: List[ShipData]) -> None:
        self._by_type_id = {}
        self._by_group = {}
        for ship in ships:
            self._by_type_id[ship.typeID] = ship
            self._by_group.setdefault(ship.groupName, []).append(ship)

        for group_ships in self._by_group.values():
            group_ships.sort(key=lambda s: s.typeName)

    def load(self, data_dir: Path = STATIC_DATA_DIR) -> None:
        catalog_path = Path(data_dir) / CATALOG_FILE
        if not catalog_path.exists():
            logger.warning("Ship catalog not found at: %s", catalog_path)
            return

        with open(catalog_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        ships = [ShipData(**ship) for ship in data.get("ships", {}).values()]
        self.version = data.get("version")
        self._index(ships)
        logger.info("Ship catalog loaded: %d ships, version %s", len(ships), self.version)

    def get_ship(self, type_id: int) -> Optional[ShipData]:
        return self._by_type_id.get(type_id)

    def get_group_name(self, type_id: int) -> Optional[str]:
        ship = self.get_ship(type_id)
        return ship.groupName if ship else None

    def get_ships_by_group(self, group_name: str) -> List[ShipData]:
        return self._by_group.get(group_name, [])

    def get_all_ships(self) -> List[ShipData]:
        return list(self._by_type_id.values())

    def get_all_groups(self) -> List[str]:
        return sorted(self._by_group.keys())

    def search(self, query: str) -> List[ShipData]:
        lowered = query.lower()
        return [
            ship for ship in self._by_type_id.values()
            if lowered in ship.typeName.lower()
            or query in ship.typeNameKo
            or lowered in ship.groupName.lower()
            or query in ship.groupNameKo
        ]

    @property
    def total_ships(self) -> int:
        return len(self._by_type_id)

    def is_loaded(self) -> bool:
        return bool(self._by_type_id)


ship_catalog = ShipCatalog()


def get_ship_catalog() -> ShipCatalog:
    return ship_catalog
