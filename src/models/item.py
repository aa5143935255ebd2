"""
Item models.

Items live in a character's carried items; equipment slots only
reference them by id.
"""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class ItemType(str, Enum):
    """Broad item categories, used for slot compatibility."""

    WEAPON = "weapon"
    ARMOR = "armor"
    KEY = "key"
    CONSUMABLE = "consumable"
    QUEST_ITEM = "quest_item"
    TREASURE = "treasure"
    TOOL = "tool"
    MISCELLANEOUS = "miscellaneous"


class Item(BaseModel):
    """A thing that can be carried, dropped, or equipped."""

    id: str = Field(default_factory=lambda: uuid4().hex[:8])
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="")
    type: ItemType = Field(default=ItemType.MISCELLANEOUS)

    # Equipment
    equipment_slot: str | None = Field(
        default=None, description="Explicit slot id, overrides inference"
    )
    damage_bonus: int = Field(default=0, ge=0)
    armor_bonus: int = Field(default=0, ge=0)
    is_equippable: bool = Field(default=False)

    can_be_taken: bool = Field(default=True)

    def matches(self, text: str) -> bool:
        """Case-insensitive match on id or name."""
        needle = text.strip().lower()
        if not needle:
            return False
        return needle == self.id.lower() or needle in self.name.lower()


class CarriedItem(BaseModel):
    """An item stack held by a character."""

    item: Item
    quantity: int = Field(default=1, ge=1)


def create_item(
    name: str,
    item_type: ItemType = ItemType.MISCELLANEOUS,
    description: str = "",
    item_id: str | None = None,
    damage_bonus: int = 0,
    armor_bonus: int = 0,
    equipment_slot: str | None = None,
    is_equippable: bool | None = None,
    can_be_taken: bool = True,
) -> Item:
    """
    Factory function to create an item.

    Weapons and armor are equippable unless stated otherwise.
    """
    if is_equippable is None:
        is_equippable = item_type in (ItemType.WEAPON, ItemType.ARMOR)

    return Item(
        id=item_id or name.lower().replace(" ", "_"),
        name=name,
        description=description,
        type=item_type,
        damage_bonus=damage_bonus,
        armor_bonus=armor_bonus,
        equipment_slot=equipment_slot,
        is_equippable=is_equippable,
        can_be_taken=can_be_taken,
    )
