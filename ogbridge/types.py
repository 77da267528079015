"""
Shared types and helpers for OurGroceries payloads.

Payload Convention
==================
The service returns plain JSON objects, and ogbridge passes them through
verbatim. The TypedDicts below only document the keys the bridge reads:

  - ShoppingList: {"id", "name", ...}
  - Item: {"id", "value", "crossedOff", "note"?, ...}

Items submitted by callers may be either a bare string ("milk") or an
object with a name and optional note ({"name": "milk", "note": "2L"}).
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Optional, TypedDict, TypeAlias


ListId: TypeAlias = str
ItemId: TypeAlias = str


class Command(str, Enum):
    """Commands understood by the /your-lists/ endpoint."""

    GET_OVERVIEW = "getOverview"
    GET_LIST = "getList"
    INSERT_ITEM = "insertItem"
    DELETE_ITEM = "deleteItem"
    SET_ITEM_CROSSED_OFF = "setItemCrossedOff"
    DELETE_ALL_CROSSED_OFF = "deleteAllCrossedOffItems"


class ShoppingList(TypedDict, total=False):
    id: ListId
    name: str


class Item(TypedDict, total=False):
    id: ItemId
    value: str
    crossedOff: bool
    note: str


def get_item_name(item: Any) -> Optional[str]:
    """
    Get the display name of a submitted item.

    Works with bare strings and with {"name": ..., "note": ...} dicts.
    """
    if isinstance(item, str):
        return item
    elif isinstance(item, dict):
        return item.get('name')
    return None


def get_item_note(item: Any) -> Optional[str]:
    """Get the optional note of a submitted item (strings carry none)."""
    if isinstance(item, dict):
        return item.get('note') or None
    return None


def match_list_by_name(lists: list[ShoppingList], name: str) -> Optional[ShoppingList]:
    """
    Pick the list a human most likely meant by ``name``.

    An exact case-insensitive match wins. Otherwise the first list whose
    name contains ``name`` (case-insensitive) is returned. None if nothing
    matches.

    Examples, given ["Shopping List", "Weekly Shop"]:
      - 'shopping list' -> 'Shopping List' (exact)
      - 'shop' -> 'Shopping List' (first substring match)
      - 'hardware' -> None
    """
    lower = name.lower()

    for shopping_list in lists:
        if (shopping_list.get('name') or '').lower() == lower:
            return shopping_list

    for shopping_list in lists:
        if lower in (shopping_list.get('name') or '').lower():
            return shopping_list

    return None
