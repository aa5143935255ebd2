"""
Starter World.

Provides a pre-built world snapshot with rooms, NPCs, items and a goal
so players can immediately start exploring.
"""

from __future__ import annotations

from src.models.character import (
    Alignment,
    NPCBehavior,
    NPCRole,
    create_character,
)
from src.models.equipment import EquipmentSlotConfiguration
from src.models.item import ItemType, create_item
from src.models.world import (
    Exit,
    ObjectiveTrigger,
    ObjectiveType,
    Quest,
    Room,
    WinCondition,
    WinConditionType,
    World,
)


def create_starter_world(player_name: str = "Adventurer") -> World:
    """
    Create a complete starter world for immediate gameplay.

    Returns a world with:
    - Town Square as the starting room, with a tavern, forest, goblin lair
      and merchant stall around it
    - NPCs with personalities, one of them hostile
    - Starter gear on the ground and in the player's pack
    - A quest to defeat the goblin shaman, which is also the win condition

    Args:
        player_name: Name for the player character

    Returns:
        A validated World
    """
    # === ITEMS ===
    iron_sword = create_item(
        "Iron Sword",
        ItemType.WEAPON,
        description="A plain but well-balanced blade.",
        damage_bonus=5,
    )
    leather_helmet = create_item(
        "Leather Helmet",
        ItemType.ARMOR,
        description="Hardened leather, dented from use.",
        armor_bonus=2,
    )
    chain_mail = create_item(
        "Chain Mail",
        ItemType.ARMOR,
        description="Interlocking iron rings. Heavy, but it turns a blade.",
        armor_bonus=4,
    )
    leather_boots = create_item(
        "Leather Boots",
        ItemType.ARMOR,
        description="Sturdy boots for long roads.",
        armor_bonus=1,
    )
    health_potion = create_item(
        "Health Potion",
        ItemType.CONSUMABLE,
        description="A small vial of red liquid that smells of cinnamon.",
    )
    shaman_staff = create_item(
        "Bone Staff",
        ItemType.WEAPON,
        description="A staff of knotted bone, humming with foul magic.",
        damage_bonus=3,
    )
    goblin_totem = create_item(
        "Goblin Totem",
        ItemType.QUEST_ITEM,
        description="A crude carving the goblins worship.",
    )
    well = create_item(
        "Old Well",
        ItemType.MISCELLANEOUS,
        description="A stone well in the middle of the square.",
        can_be_taken=False,
    )

    # === ROOMS ===
    rooms = {
        "start": Room(
            id="start",
            name="Town Square",
            description=(
                "A bustling marketplace with vendors and adventurers. "
                "The air smells of fresh bread and exotic spices."
            ),
            exits={
                "north": Exit(
                    display_name="North",
                    destination_room_id="forest",
                    description="A path leads north into the dark forest",
                ),
                "east": Exit(
                    display_name="East",
                    destination_room_id="tavern",
                    description="The warm glow of the Rusty Tankard",
                ),
                "south": Exit(
                    display_name="South",
                    destination_room_id="merchant_stall",
                    description="A merchant's stall",
                ),
            },
            npc_ids=["merchant"],
            items=[well, leather_boots],
        ),
        "tavern": Room(
            id="tavern",
            name="The Rusty Tankard Tavern",
            description=(
                "A cozy tavern filled with the smell of ale and roasted meat. "
                "A roaring fireplace warms the room."
            ),
            exits={
                "exit": Exit(display_name="Back to Town Square", destination_room_id="start"),
            },
            npc_ids=["bartender", "bard"],
            items=[chain_mail],
        ),
        "forest": Room(
            id="forest",
            name="Dark Forest",
            description=(
                "A dense, mysterious forest with towering trees that block out most "
                "of the sunlight. Strange sounds echo around you."
            ),
            exits={
                "south": Exit(display_name="South", destination_room_id="start"),
                "deep": Exit(
                    display_name="Deeper Into The Forest",
                    destination_room_id="cave",
                    description="A narrow path toward a cave entrance",
                ),
            },
            npc_ids=["ranger"],
        ),
        "cave": Room(
            id="cave",
            name="Goblin Lair",
            description=(
                "A damp cave reeking of sulfur and danger. "
                "Glowing eyes watch you from the darkness."
            ),
            exits={
                "out": Exit(display_name="Back To The Forest", destination_room_id="forest"),
                "tunnel": Exit(
                    display_name="Narrow Tunnel",
                    destination_room_id="forest",
                    is_available=False,
                    unavailable_reason="The tunnel has collapsed. Rubble blocks the way.",
                ),
            },
            npc_ids=["goblin_shaman"],
            items=[goblin_totem],
        ),
        "merchant_stall": Room(
            id="merchant_stall",
            name="Thadeus's Merchant Stall",
            description=(
                "A well-organized stall filled with exotic goods. Thadeus stands "
                "behind the counter, examining a mysterious artifact."
            ),
            exits={
                "back": Exit(display_name="Back to Town Square", destination_room_id="start"),
            },
            npc_ids=["thadeus"],
            items=[iron_sword],
        ),
    }

    # === PLAYER ===
    player = create_character(
        player_name,
        char_id="player",
        description="A brave adventurer seeking fortune and glory.",
        health=100,
        strength=12,
        agility=11,
        role=NPCRole.PLAYER,
        alignment=Alignment.GOOD,
    )
    player.add_item(leather_helmet)
    player.add_item(health_potion, quantity=2)

    # === NPCS ===
    npcs = {
        "merchant": create_character(
            "Market Vendor",
            char_id="merchant",
            description="A cheerful vendor hawking bread and trinkets.",
            health=50,
            agility=9,
            role=NPCRole.MERCHANT,
            alignment=Alignment.GOOD,
            npc=NPCBehavior(home_room_id="start", current_room_id="start"),
        ),
        "bartender": create_character(
            "Old Barrick",
            char_id="bartender",
            description="A grizzled barkeep who has heard every rumor in town.",
            health=45,
            strength=11,
            agility=8,
            armor=1,
            role=NPCRole.INFORMANT,
            alignment=Alignment.GOOD,
            npc=NPCBehavior(
                personality=(
                    "You are Old Barrick, the gruff but kind barkeep of the Rusty Tankard. "
                    "You know the goblins in the forest cave are led by a shaman named Grak. "
                    "Reply in 1-3 sentences and stay in character."
                ),
                home_room_id="tavern",
                current_room_id="tavern",
            ),
        ),
        "bard": create_character(
            "Melody the Bard",
            char_id="bard",
            description="A bard with a lute and a mischievous smile.",
            health=40,
            strength=8,
            agility=13,
            role=NPCRole.NEUTRAL,
            npc=NPCBehavior(home_room_id="tavern", current_room_id="tavern"),
        ),
        "ranger": create_character(
            "Sylva the Ranger",
            char_id="ranger",
            description="A watchful ranger in a green cloak.",
            health=80,
            strength=13,
            agility=14,
            armor=2,
            role=NPCRole.COMPANION,
            alignment=Alignment.GOOD,
            npc=NPCBehavior(
                home_room_id="forest",
                current_room_id="forest",
                can_move=True,
                can_join_party=True,
            ),
        ),
        "goblin_shaman": create_character(
            "Grak the Shaman",
            char_id="goblin_shaman",
            description="A wiry goblin draped in bones and feathers.",
            health=60,
            strength=12,
            agility=10,
            armor=3,
            level=2,
            role=NPCRole.ENEMY,
            alignment=Alignment.EVIL,
            npc=NPCBehavior(home_room_id="cave", current_room_id="cave"),
        ),
        "thadeus": create_character(
            "Thadeus the Merchant",
            char_id="thadeus",
            description="A shrewd merchant with an eye for rare artifacts.",
            health=50,
            strength=9,
            agility=11,
            armor=1,
            role=NPCRole.MERCHANT,
            npc=NPCBehavior(home_room_id="merchant_stall", current_room_id="merchant_stall"),
        ),
    }
    shaman = npcs["goblin_shaman"]
    shaman.add_item(shaman_staff)
    shaman.equipment_slots["main_hand"] = shaman_staff.id

    # === QUESTS & GOALS ===
    quest = Quest(
        id="goblin_threat",
        title="The Goblin Threat",
        description="Goblins raid the town from a cave beyond the forest.",
        objectives=["Hear about the goblins", "Find the Goblin Lair", "Defeat Grak the Shaman"],
        triggers={
            "Hear about the goblins": ObjectiveTrigger(
                type=ObjectiveType.TALK_TO_NPC, target_id="bartender"
            ),
            "Find the Goblin Lair": ObjectiveTrigger(
                type=ObjectiveType.REACH_LOCATION, target_id="cave"
            ),
            "Defeat Grak the Shaman": ObjectiveTrigger(
                type=ObjectiveType.DEFEAT_ENEMY, target_id="goblin_shaman"
            ),
        },
    )

    win_conditions = [
        WinCondition(
            id="slay_shaman",
            type=WinConditionType.NPC_DEFEAT,
            target_id="goblin_shaman",
            description="Defeat Grak the Shaman",
            victory_narration=(
                "Grak's staff clatters to the cave floor. The goblins scatter into the "
                "dark, and the town is safe once more."
            ),
        ),
        WinCondition(
            id="goblin_threat_done",
            type=WinConditionType.QUEST_COMPLETE,
            target_id="goblin_threat",
            victory_message="You have completed The Goblin Threat!",
        ),
    ]

    return World(
        title="The Goblin Threat",
        rooms=rooms,
        player=player,
        npcs=npcs,
        quests={quest.id: quest},
        win_conditions=win_conditions,
        equipment_slots=EquipmentSlotConfiguration.create_default(),
        starting_room_id="start",
    )
