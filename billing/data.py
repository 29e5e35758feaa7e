"""Static menu data."""

from __future__ import annotations

from decimal import Decimal

from billing.constant import MENU_ITEMS_RAW
from billing.models import MenuItem, money

MENU_ITEMS: list[MenuItem] = [
    MenuItem(
        item_id=int(row["id"]),
        name=str(row["name"]),
        unit_price=money(Decimal(str(row["price"]))),
    )
    for row in MENU_ITEMS_RAW
]

MENU_BY_ID: dict[int, MenuItem] = {item.item_id: item for item in MENU_ITEMS}


def menu_item_by_id(item_id: int) -> MenuItem | None:
    """Look up a catalog item by id."""
    return MENU_BY_ID.get(item_id)


def search_menu(query: str) -> list[MenuItem]:
    """Case-insensitive substring search over menu item names."""
    if not query:
        return list(MENU_ITEMS)
    q = query.lower()
    return [item for item in MENU_ITEMS if q in item.name.lower()]
