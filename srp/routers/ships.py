from fastapi import APIRouter, Depends, HTTPException

from srp.services.ship_catalog import ShipCatalog, get_ship_catalog
from srp.services.ship_classes import ShipClassTable, get_ship_class_table
from srp.utils.auth_helper import get_current_user_required


router = APIRouter(dependencies=[Depends(get_current_user_required)])


@router.get("")
def get_ships(catalog: ShipCatalog = Depends(get_ship_catalog)):
    return catalog.get_all_ships()


@router.get("/groups/all")
def get_ship_groups(catalog: ShipCatalog = Depends(get_ship_catalog)):
    return catalog.get_all_groups()


@router.get("/group/{group_name}")
def get_ships_by_group(group_name: str, catalog: ShipCatalog = Depends(get_ship_catalog)):
    return catalog.get_ships_by_group(group_name)


@router.get("/search/{query}")
def search_ships(query: str, catalog: ShipCatalog = Depends(get_ship_catalog)):
    return catalog.search(query)


@router.get("/catalog/info")
def get_catalog_info(catalog: ShipCatalog = Depends(get_ship_catalog)):
    return {
        "version": catalog.version,
        "total_ships": catalog.total_ships,
        "is_loaded": catalog.is_loaded(),
    }


@router.get("/tiers")
def get_srp_tiers(table: ShipClassTable = Depends(get_ship_class_table)):
    """Solo payout ceilings and the special classes, for the ship types page."""
    return {
        "version": table.version,
        "tiers": [
            {"name": tier.name, "max_payout": tier.max_payout, "classes": tier.classes}
            for tier in table.tiers
        ],
        "special_classes": table.special_classes,
    }


@router.get("/{type_id}")
def get_ship(type_id: int, catalog: ShipCatalog = Depends(get_ship_catalog)):
    ship = catalog.get_ship(type_id)
    if not ship:
        raise HTTPException(status_code=404, detail="Ship not found")
    return ship
