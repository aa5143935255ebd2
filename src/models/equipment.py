"""
Equipment slot configuration.

Slots are data, not code: a world ships its own ordered slot list and
the equipment resolver only ever reads it. List order decides slot
inference; display_order only affects how slots are listed to the player.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from src.models.item import ItemType


class EquipmentSlotDefinition(BaseModel):
    """A single configurable equipment slot."""

    id: str = Field(min_length=1)
    display_name: str
    description: str = Field(default="")
    keywords: list[str] = Field(
        default_factory=list, description="Words in an item name that suggest this slot"
    )
    compatible_types: list[ItemType] = Field(default_factory=list)
    display_order: int = Field(default=0)

    def accepts(self, item_type: ItemType) -> bool:
        return item_type in self.compatible_types

    def keyword_in(self, text: str) -> bool:
        """Whether any of this slot's keywords appears in text."""
        lowered = text.lower()
        return any(k.lower() in lowered for k in self.keywords)


class EquipmentSlotConfiguration(BaseModel):
    """Ordered set of equipment slots for a world."""

    slots: list[EquipmentSlotDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> EquipmentSlotConfiguration:
        """Slot ids must be unique."""
        seen: set[str] = set()
        for slot in self.slots:
            key = slot.id.lower()
            if key in seen:
                raise ValueError(f"Duplicate equipment slot id: {slot.id}")
            seen.add(key)
        return self

    def get_slot(self, slot_id: str) -> EquipmentSlotDefinition | None:
        """Look up a slot by id, case-insensitively."""
        key = slot_id.strip().lower()
        for slot in self.slots:
            if slot.id.lower() == key:
                return slot
        return None

    def ordered_slots(self) -> list[EquipmentSlotDefinition]:
        """Slots in display order, for presentation."""
        return sorted(self.slots, key=lambda s: s.display_order)

    def slot_ids(self) -> list[str]:
        return [s.id for s in self.ordered_slots()]

    def slots_for_type(self, item_type: ItemType) -> list[EquipmentSlotDefinition]:
        """Type-compatible slots in configuration order."""
        return [s for s in self.slots if s.accepts(item_type)]

    # =========================================================================
    # Presets
    # =========================================================================

    @classmethod
    def create_default(cls) -> EquipmentSlotConfiguration:
        """
        Fantasy preset: two hands, head, chest, hands, legs, feet.

        Chest is the first armor slot, so armor with no telling keyword ends
        up there.
        """
        return cls(
            slots=[
                EquipmentSlotDefinition(
                    id="main_hand",
                    display_name="Main Hand",
                    description="Primary weapon hand",
                    keywords=["sword", "axe", "mace", "dagger", "staff", "weapon", "blade", "spear"],
                    compatible_types=[ItemType.WEAPON],
                    display_order=1,
                ),
                EquipmentSlotDefinition(
                    id="chest",
                    display_name="Chest",
                    description="Body armor",
                    keywords=["chestplate", "mail", "cuirass", "robe", "vest", "tunic", "breastplate"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=4,
                ),
                EquipmentSlotDefinition(
                    id="head",
                    display_name="Head",
                    description="Helmets and hats",
                    keywords=["helmet", "hat", "cap", "hood", "crown", "helm"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=3,
                ),
                EquipmentSlotDefinition(
                    id="hands",
                    display_name="Hands",
                    description="Gloves and gauntlets",
                    keywords=["gloves", "gauntlets", "bracers"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=5,
                ),
                EquipmentSlotDefinition(
                    id="legs",
                    display_name="Legs",
                    description="Leg armor",
                    keywords=["pants", "leggings", "greaves", "trousers"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=6,
                ),
                EquipmentSlotDefinition(
                    id="feet",
                    display_name="Feet",
                    description="Boots and shoes",
                    keywords=["boots", "shoes", "sandals", "slippers"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=7,
                ),
                EquipmentSlotDefinition(
                    id="off_hand",
                    display_name="Off Hand",
                    description="Shield or secondary weapon",
                    keywords=["shield", "buckler", "torch", "offhand"],
                    compatible_types=[ItemType.WEAPON, ItemType.ARMOR],
                    display_order=2,
                ),
            ]
        )

    @classmethod
    def create_minimal(cls) -> EquipmentSlotConfiguration:
        """Single weapon slot."""
        return cls(
            slots=[
                EquipmentSlotDefinition(
                    id="weapon",
                    display_name="Weapon",
                    description="Equipped weapon",
                    keywords=["sword", "axe", "weapon", "blade", "staff"],
                    compatible_types=[ItemType.WEAPON],
                    display_order=1,
                ),
            ]
        )

    @classmethod
    def create_sci_fi(cls) -> EquipmentSlotConfiguration:
        """Sci-fi preset."""
        return cls(
            slots=[
                EquipmentSlotDefinition(
                    id="primary_weapon",
                    display_name="Primary Weapon",
                    description="Main firearm",
                    keywords=["rifle", "blaster", "gun", "cannon", "launcher"],
                    compatible_types=[ItemType.WEAPON],
                    display_order=1,
                ),
                EquipmentSlotDefinition(
                    id="secondary_weapon",
                    display_name="Secondary Weapon",
                    description="Sidearm or melee",
                    keywords=["pistol", "knife", "blade", "sidearm"],
                    compatible_types=[ItemType.WEAPON],
                    display_order=2,
                ),
                EquipmentSlotDefinition(
                    id="suit",
                    display_name="Suit",
                    description="Body armor or environment suit",
                    keywords=["suit", "vest", "exosuit"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=4,
                ),
                EquipmentSlotDefinition(
                    id="helmet",
                    display_name="Helmet",
                    description="Head protection",
                    keywords=["helmet", "visor", "headgear"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=3,
                ),
                EquipmentSlotDefinition(
                    id="gloves",
                    display_name="Gloves",
                    description="Hand protection",
                    keywords=["gloves", "gauntlets"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=5,
                ),
                EquipmentSlotDefinition(
                    id="boots",
                    display_name="Boots",
                    description="Foot protection",
                    keywords=["boots", "shoes"],
                    compatible_types=[ItemType.ARMOR],
                    display_order=6,
                ),
            ]
        )
