"""
Ship-class lookup table.

Holds the per-class solo payout ceilings (grouped into named tiers) and the set
of special classes that are reimbursed at the full rate even when lost solo.
The data is read from two JSON files once at startup and is read-only after
that; ``reload()`` is the only way to refresh it.

Tier file layout::

    {"version": "...", "description": "...",
     "tiers": [{"name": "T1", "maxPayout": 100000000, "classes": ["Frigate"]}]}

Special-class file layout::

    {"version": "...", "description": "...", "specialClasses": ["Logistics"]}
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Set

from srp.config import STATIC_DATA_DIR

logger = logging.getLogger(__name__)

LIMITS_FILE = "srp_limits.json"
SPECIAL_CLASS_FILE = "srp_special_classes.json"


@dataclass
class SrpTier:
    name: str
    max_payout: Decimal
    classes: List[str] = field(default_factory=list)


class ShipClassTable:
    """Tier ceilings and special-class membership keyed by ship group name."""

    def __init__(
        self,
        tiers: Optional[List[SrpTier]] = None,
        special_classes: Optional[Set[str]] = None,
        version: Optional[str] = None,
    ):
        self._tiers: List[SrpTier] = []
        self._class_to_max_payout: Dict[str, Decimal] = {}
        self._class_to_tier: Dict[str, str] = {}
        self._special_classes: Set[str] = set()
        self._version = version
        self._data_dir: Optional[Path] = None
        self._index(tiers or [], special_classes or set())

    def _index(self, tiers: List[SrpTier], special_classes: Set[str]) -> None:
        self._tiers = list(tiers)
        self._class_to_max_payout = {}
        self._class_to_tier = {}
        for tier in self._tiers:
            for class_name in tier.classes:
                self._class_to_max_payout[class_name] = tier.max_payout
                self._class_to_tier[class_name] = tier.name
        self._special_classes = set(special_classes)

    @classmethod
    def from_directory(cls, data_dir: Path = STATIC_DATA_DIR) -> "ShipClassTable":
        table = cls()
        table.load(data_dir)
        return table

    def load(self, data_dir: Path = STATIC_DATA_DIR) -> None:
        data_dir = Path(data_dir)
        self._data_dir = data_dir
        limits_path = data_dir / LIMITS_FILE
        special_path = data_dir / SPECIAL_CLASS_FILE

        if not limits_path.exists():
            logger.warning("SRP limits file not found at: %s", limits_path)
            return

        with open(limits_path, "r", encoding="utf-8") as f:
            limits = json.load(f)

        tiers = [
            SrpTier(
                name=tier["name"],
                max_payout=Decimal(str(tier["maxPayout"])),
                classes=list(tier.get("classes", [])),
            )
            for tier in limits.get("tiers", [])
        ]

        special_classes: Set[str] = set()
        if special_path.exists():
            with open(special_path, "r", encoding="utf-8") as f:
                special_classes = set(json.load(f).get("specialClasses", []))
            logger.info("SRP special classes loaded: %d classes", len(special_classes))

        self._version = limits.get("version")
        self._index(tiers, special_classes)
        logger.info(
            "SRP limits loaded: %d ship classes, version %s",
            len(self._class_to_max_payout),
            self._version,
        )

    def reload(self) -> None:
        """Re-read the files this table was loaded from."""
        self.load(self._data_dir or STATIC_DATA_DIR)

    def get_tier_ceiling(self, group_name: Optional[str]) -> Optional[Decimal]:
        if not group_name:
            return None
        return self._class_to_max_payout.get(group_name)

    def get_tier_name(self, group_name: Optional[str]) -> Optional[str]:
        if not group_name:
            return None
        return self._class_to_tier.get(group_name)

    def is_special_class(self, group_name: Optional[str]) -> bool:
        if not group_name:
            return False
        return group_name in self._special_classes

    @property
    def special_classes(self) -> List[str]:
        return sorted(self._special_classes)

    @property
    def tiers(self) -> List[SrpTier]:
        return list(self._tiers)

    @property
    def version(self) -> Optional[str]:
        return self._version

    def is_loaded(self) -> bool:
        return bool(self._tiers)


ship_class_table = ShipClassTable()


def get_ship_class_table() -> ShipClassTable:
    return ship_class_table
