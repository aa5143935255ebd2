"""
Action Dispatcher.

Applies resolved Actions to the GameSession. The session is a two-state
machine (exploring / in combat); every verb has exactly one handler, and
the mode is re-checked before each action because the previous one may
have ended a fight.

Recoverable GameErrors become failed ActionResults and leave the session
untouched. InvariantViolation is never caught here.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from src.engine.errors import (
    GameError,
    InvalidExit,
    InvalidTarget,
    InvariantViolation,
    ItemNotFound,
    NotEquipped,
)
from src.engine.models import (
    Action,
    ActionResult,
    ActionVerb,
    GameSession,
    SessionOutcome,
)
from src.models.character import Character
from src.models.item import Item
from src.services.npc import NPCDialogueService
from src.skills.combat import (
    AttackResult,
    CombatConfig,
    attempt_flee,
    experience_for_defeat,
    health_bar,
    resolve_attack,
)
from src.skills.equipment import (
    describe_equipment,
    equip_by_name,
    total_armor,
    unequip,
)

logger = logging.getLogger(__name__)

Handler = Callable[[GameSession, str, str], Awaitable[ActionResult]]

# Verbs that make no sense with an enemy in your face
BLOCKED_IN_COMBAT = frozenset({ActionVerb.MOVE, ActionVerb.TAKE, ActionVerb.DROP})


class ActionDispatcher:
    """
    Routes each Action to its handler.

    Construction fails if any ActionVerb lacks a handler, so adding a verb
    without wiring it up is caught immediately.
    """

    def __init__(
        self,
        dialogue: NPCDialogueService | None = None,
        combat: CombatConfig | None = None,
    ) -> None:
        self.dialogue = dialogue or NPCDialogueService()
        self.combat = combat or CombatConfig()

        self.handlers: dict[ActionVerb, Handler] = {
            ActionVerb.MOVE: self._move,
            ActionVerb.LOOK: self._look,
            ActionVerb.TALK: self._talk,
            ActionVerb.TAKE: self._take,
            ActionVerb.DROP: self._drop,
            ActionVerb.ATTACK: self._attack,
            ActionVerb.FLEE: self._flee,
            ActionVerb.EQUIP: self._equip,
            ActionVerb.UNEQUIP: self._unequip,
            ActionVerb.EQUIPPED: self._equipped,
            ActionVerb.INVENTORY: self._inventory,
            ActionVerb.STATUS: self._status,
            ActionVerb.HELP: self._help,
            ActionVerb.QUIT: self._quit,
            ActionVerb.UNKNOWN: self._unknown,
        }

        missing = set(ActionVerb) - set(self.handlers)
        if missing:
            raise InvariantViolation(
                f"No handler for verbs: {', '.join(sorted(v.value for v in missing))}"
            )

    async def dispatch(self, session: GameSession, action: Action) -> ActionResult:
        """
        Apply one action to the session.

        Args:
            session: The running game
            action: Resolved action

        Returns:
            ActionResult; success=False with an error code for recoverable errors
        """
        if session.is_over:
            return ActionResult(
                verb=action.verb,
                success=False,
                message="The game is over.",
                error="game_over",
            )

        self.revalidate_mode(session)

        if session.in_combat and action.verb in BLOCKED_IN_COMBAT:
            enemy = session.combat_target
            name = enemy.name if enemy else "your enemy"
            return ActionResult(
                verb=action.verb,
                success=False,
                message=f"You can't do that while fighting {name}! Attack or flee.",
                error="in_combat",
            )

        handler = self.handlers[action.verb]
        logger.debug("Dispatching %s target=%r", action.verb.value, action.target)
        try:
            return await handler(session, action.target, action.details)
        except InvariantViolation:
            raise
        except GameError as e:
            return ActionResult(
                verb=action.verb,
                success=False,
                message=e.message,
                error=e.code,
            )

    def revalidate_mode(self, session: GameSession) -> None:
        """Leave combat if the fight can no longer continue."""
        if not session.in_combat:
            return

        enemy = session.combat_target
        reason = None
        if not session.player.is_alive:
            reason = "player is down"
        elif enemy is None:
            reason = "target no longer exists"
        elif not enemy.is_alive:
            reason = f"{enemy.name} is dead"
        elif enemy.id not in session.current_room.npc_ids:
            reason = f"{enemy.name} is no longer here"

        if reason is not None:
            logger.info("Combat ended: %s", reason)
            session.end_combat()

    # =========================================================================
    # Movement & Perception
    # =========================================================================

    async def _move(self, session: GameSession, target: str, details: str) -> ActionResult:
        room = session.current_room
        exit_names = ", ".join(e.display_name for e in room.available_exits().values()) or "none"

        if not target:
            raise InvalidExit(f"Go where? Exits: {exit_names}")

        exit_ = room.find_exit(target)
        if exit_ is None:
            blocked = room.find_blocked_exit(target)
            if blocked is not None:
                raise InvalidExit(
                    blocked.unavailable_reason or f"The way {blocked.display_name} is blocked."
                )
            raise InvalidExit(f"You can't go '{target}'. Exits: {exit_names}")

        session.move_to(exit_.destination_room_id)
        new_room = session.current_room

        followers = []
        for companion_id in session.companion_ids:
            companion = session.world.npcs.get(companion_id)
            if companion is None or not companion.is_alive:
                continue
            if companion_id in room.npc_ids:
                room.npc_ids.remove(companion_id)
            if companion_id not in new_room.npc_ids:
                new_room.npc_ids.append(companion_id)
            if companion.npc is not None:
                companion.npc.current_room_id = new_room.id
            followers.append(companion.name)

        lines = [f"You go {exit_.display_name}."]
        if followers:
            lines.append(f"{', '.join(followers)} follows you.")
        lines.append("")
        lines.append(describe_room(session))

        return ActionResult(
            verb=ActionVerb.MOVE,
            success=True,
            message="\n".join(lines),
            room_changed=True,
            state_changes=[f"room:{new_room.id}"],
        )

    async def _look(self, session: GameSession, target: str, details: str) -> ActionResult:
        if not target or target in ("around", "room", "here"):
            return ActionResult(verb=ActionVerb.LOOK, success=True, message=describe_room(session))

        npc = session.find_npc_in_room(target)
        if npc is not None:
            return ActionResult(verb=ActionVerb.LOOK, success=True, message=describe_npc(npc))

        item = session.current_room.find_item(target) or session.player.find_carried(target)
        if item is not None:
            return ActionResult(verb=ActionVerb.LOOK, success=True, message=describe_item(item))

        raise InvalidTarget(f"You don't see '{target}' here.")

    # =========================================================================
    # Dialogue
    # =========================================================================

    async def _talk(self, session: GameSession, target: str, details: str) -> ActionResult:
        if target:
            npc = session.find_npc_in_room(target)
        else:
            living = [n for n in session.npcs_in_room() if n.is_alive and n.is_npc]
            if len(living) != 1:
                raise InvalidTarget("Talk to whom?")
            npc = living[0]

        if npc is None:
            raise InvalidTarget(f"There is no '{target}' here to talk to.")
        if not npc.is_alive:
            raise InvalidTarget(f"{npc.name} is in no state to talk.")
        if not npc.is_npc:
            raise InvalidTarget(f"{npc.name} is not someone you can talk to.")

        reply = await self.dialogue.respond(npc, details or "Hello.")
        session.talked_to.add(npc.id)

        return ActionResult(
            verb=ActionVerb.TALK,
            success=True,
            message=f"{npc.name}: {reply}",
            state_changes=[f"talked:{npc.id}"],
        )

    # =========================================================================
    # Items
    # =========================================================================

    async def _take(self, session: GameSession, target: str, details: str) -> ActionResult:
        player = session.player
        room = session.current_room

        if not target:
            raise ItemNotFound("Take what?")

        body: Character | None = None
        if details:
            body = session.find_npc_in_room(details)
            if body is None:
                raise InvalidTarget(f"There is no '{details}' here.")
            if body.is_alive:
                raise InvalidTarget(f"{body.name} isn't going to just hand that over.")

        if target in ("all", "everything"):
            if body is None:
                return self._take_all_from_floor(session)
            return self._loot_body(session, body)

        if body is not None:
            item = body.find_carried(target)
            if item is None:
                raise ItemNotFound(f"{body.name} has no '{target}'.")
            return self._take_from_body(player, body, item)

        item = room.find_item(target)
        if item is not None:
            if not item.can_be_taken:
                raise InvalidTarget(f"You can't take {item.name}.")
            room.take_item(item.id)
            player.add_item(item)
            return ActionResult(
                verb=ActionVerb.TAKE,
                success=True,
                message=f"You take {item.name}.",
                items_gained=[item.id],
            )

        # Not on the floor; try the fallen
        for npc in session.npcs_in_room():
            if npc.is_alive:
                continue
            item = npc.find_carried(target)
            if item is not None:
                return self._take_from_body(player, npc, item)

        raise ItemNotFound(f"There is no '{target}' here.")

    def _take_from_body(self, player: Character, body: Character, item: Item) -> ActionResult:
        quantity = body.carried_items[item.id].quantity
        body.remove_item(item.id, quantity)
        player.add_item(item, quantity)
        return ActionResult(
            verb=ActionVerb.TAKE,
            success=True,
            message=f"You take {item.name} from {body.name}.",
            items_gained=[item.id],
        )

    def _take_all_from_floor(self, session: GameSession) -> ActionResult:
        room = session.current_room
        takeable = [i for i in room.items if i.can_be_taken]
        if not takeable:
            raise ItemNotFound("There is nothing here to take.")
        for item in takeable:
            room.take_item(item.id)
            session.player.add_item(item)
        return ActionResult(
            verb=ActionVerb.TAKE,
            success=True,
            message=f"You take {', '.join(i.name for i in takeable)}.",
            items_gained=[i.id for i in takeable],
        )

    def _loot_body(self, session: GameSession, body: Character) -> ActionResult:
        if not body.carried_items:
            raise ItemNotFound(f"{body.name} has nothing left to take.")
        taken = []
        for carried in list(body.carried_items.values()):
            body.remove_item(carried.item.id, carried.quantity)
            session.player.add_item(carried.item, carried.quantity)
            taken.append(carried.item)
        return ActionResult(
            verb=ActionVerb.TAKE,
            success=True,
            message=f"You loot {body.name}: {', '.join(i.name for i in taken)}.",
            items_gained=[i.id for i in taken],
        )

    async def _drop(self, session: GameSession, target: str, details: str) -> ActionResult:
        player = session.player
        if not target:
            raise ItemNotFound("Drop what?")

        item = player.find_carried(target)
        if item is None:
            raise ItemNotFound(f"You don't have '{target}'.")

        was_equipped = player.slot_of(item.id) is not None
        player.remove_item(item.id)
        session.current_room.items.append(item)

        message = f"You drop {item.name}."
        if was_equipped and player.slot_of(item.id) is None:
            message = f"You unequip and drop {item.name}."

        return ActionResult(
            verb=ActionVerb.DROP,
            success=True,
            message=message,
            items_lost=[item.id],
        )

    # =========================================================================
    # Combat
    # =========================================================================

    async def _attack(self, session: GameSession, target: str, details: str) -> ActionResult:
        player = session.player

        if target:
            enemy = session.find_npc_in_room(target)
            if enemy is None:
                raise InvalidTarget(f"There is no '{target}' here to attack.")
        elif session.in_combat and session.combat_target is not None:
            enemy = session.combat_target
        else:
            raise InvalidTarget("Attack whom?")

        if not enemy.is_alive:
            raise InvalidTarget(f"{enemy.name} is already dead.")

        if session.combat_target_id != enemy.id:
            session.enter_combat(enemy.id)
            logger.info("Combat started with %s", enemy.name)

        slots = session.world.equipment_slots
        attack = resolve_attack(player, enemy, slots, self.combat)
        lines = [attack.message]
        result = ActionResult(
            verb=ActionVerb.ATTACK,
            success=True,
            damage_dealt=attack.damage_applied,
        )

        if attack.defender_defeated:
            experience = experience_for_defeat(enemy, self.combat)
            player.gain_experience(experience)
            session.end_combat()
            logger.info("%s defeated, %d experience awarded", enemy.name, experience)
            lines.append(f"You gain {experience} experience.")
            result.experience_gained = experience
            result.state_changes.append(f"defeated:{enemy.id}")
        else:
            lines.extend(self._counterattack(session, enemy, result))

        result.message = "\n".join(lines)
        return result

    async def _flee(self, session: GameSession, target: str, details: str) -> ActionResult:
        enemy = session.combat_target
        if not session.in_combat or enemy is None:
            raise InvalidTarget("You're not fighting anyone.")

        escape = attempt_flee(session.player, enemy, self.combat)
        result = ActionResult(verb=ActionVerb.FLEE, success=escape.success)
        lines = [escape.message]

        if escape.success:
            session.end_combat()
            result.state_changes.append("combat:ended")
        else:
            lines.extend(self._counterattack(session, enemy, result))

        result.message = "\n".join(lines)
        return result

    def _counterattack(
        self, session: GameSession, enemy: Character, result: ActionResult
    ) -> list[str]:
        """Enemy strikes back; records damage and handles player defeat."""
        player = session.player
        counter: AttackResult = resolve_attack(
            enemy, player, session.world.equipment_slots, self.combat
        )
        result.damage_taken += counter.damage_applied
        result.health_delta -= counter.damage_applied

        message = counter.message.replace(f"hits {player.name}", "hits you")
        lines = [message.replace(f"attacks {player.name}", "attacks you")]
        if counter.defender_defeated:
            session.end_combat()
            session.end(SessionOutcome.DEFEAT)
            logger.info("Player defeated by %s", enemy.name)
            lines.append("You have been defeated. Your adventure ends here.")
            result.state_changes.append("player:defeated")
        return lines

    # =========================================================================
    # Equipment
    # =========================================================================

    async def _equip(self, session: GameSession, target: str, details: str) -> ActionResult:
        if not target:
            raise ItemNotFound("Equip what?")
        equipped = equip_by_name(session.player, target, session.world.equipment_slots)
        return ActionResult(
            verb=ActionVerb.EQUIP,
            success=True,
            message=equipped.message,
            state_changes=[f"equip:{equipped.slot_id}:{equipped.item_id}"],
        )

    async def _unequip(self, session: GameSession, target: str, details: str) -> ActionResult:
        if not target:
            raise NotEquipped("Unequip what?")
        removed = unequip(session.player, target, session.world.equipment_slots)
        return ActionResult(
            verb=ActionVerb.UNEQUIP,
            success=True,
            message=removed.message,
            state_changes=[f"unequip:{removed.slot_id}:{removed.item_id}"],
        )

    async def _equipped(self, session: GameSession, target: str, details: str) -> ActionResult:
        return ActionResult(
            verb=ActionVerb.EQUIPPED,
            success=True,
            message=describe_equipment(session.player, session.world.equipment_slots),
        )

    # =========================================================================
    # Information
    # =========================================================================

    async def _inventory(self, session: GameSession, target: str, details: str) -> ActionResult:
        player = session.player
        if not player.carried_items:
            return ActionResult(
                verb=ActionVerb.INVENTORY, success=True, message="You are carrying nothing."
            )

        slots = session.world.equipment_slots
        lines = ["You are carrying:"]
        for carried in player.carried_items.values():
            line = f"  - {carried.item.name}"
            if carried.quantity > 1:
                line += f" x{carried.quantity}"
            slot_id = player.slot_of(carried.item.id)
            if slot_id is not None:
                slot = slots.get_slot(slot_id)
                line += f" (equipped: {slot.display_name if slot else slot_id})"
            lines.append(line)
        return ActionResult(verb=ActionVerb.INVENTORY, success=True, message="\n".join(lines))

    async def _status(self, session: GameSession, target: str, details: str) -> ActionResult:
        player = session.player
        lines = [
            f"=== {player.name} ===",
            f"Level {player.level} ({player.experience} XP)",
            f"Health: {health_bar(player)} {player.health}/{player.max_health}",
            f"Strength: {player.strength}  Agility: {player.agility}",
            f"Armor: {total_armor(player)}",
        ]

        enemy = session.combat_target
        if session.in_combat and enemy is not None:
            lines.append("")
            lines.append("=== COMBAT ===")
            lines.append(f"You:   {health_bar(player)} {player.health}/{player.max_health}")
            lines.append(f"{enemy.name}: {health_bar(enemy)} {enemy.health}/{enemy.max_health}")

        active = [q for q in session.world.quests.values() if not q.is_complete]
        if active:
            lines.append("")
            lines.append("=== Quests ===")
            for quest in active:
                lines.append(quest.title)
                for objective in quest.objectives:
                    mark = "x" if objective in quest.completed_objectives else " "
                    lines.append(f"  [{mark}] {objective}")

        return ActionResult(verb=ActionVerb.STATUS, success=True, message="\n".join(lines))

    async def _help(self, session: GameSession, target: str, details: str) -> ActionResult:
        if session.in_combat:
            message = COMBAT_HELP_TEXT
        else:
            message = HELP_TEXT
        return ActionResult(verb=ActionVerb.HELP, success=True, message=message)

    async def _quit(self, session: GameSession, target: str, details: str) -> ActionResult:
        session.end(SessionOutcome.QUIT)
        logger.info("Session ended by player")
        return ActionResult(verb=ActionVerb.QUIT, success=True, message="Farewell, adventurer.")

    async def _unknown(self, session: GameSession, target: str, details: str) -> ActionResult:
        return ActionResult(
            verb=ActionVerb.UNKNOWN,
            success=False,
            message=details or "I don't understand that. Type 'help' to see what you can do.",
            error="unknown_command",
        )


# =============================================================================
# Descriptions
# =============================================================================

HELP_TEXT = """Available commands:
  go <exit> / <exit>      Move through an exit (n, s, e, w, u, d also work)
  look [at <thing>]       Describe the room or something in it
  talk to <npc> [about <topic>]
  take <item> [from <body>] / loot <body>
  drop <item>
  attack <npc>
  equip <item> / unequip <item or slot>
  equipped                Show what you are wearing
  inventory (i)           Show what you carry
  status                  Show your health and quests
  help                    Show this list
  quit                    End the game"""

COMBAT_HELP_TEXT = """You are in combat!
  attack                  Strike your enemy
  flee                    Try to escape
  equip / unequip <item>  Change gear mid-fight
  status                  Check everyone's health
  talk to <npc>           Try words instead of steel"""


def describe_room(session: GameSession) -> str:
    room = session.current_room
    lines = [f"== {room.name} ==", room.description]

    exits = room.available_exits()
    if exits:
        lines.append(f"Exits: {', '.join(e.display_name for e in exits.values())}")

    living = []
    fallen = []
    for npc in session.npcs_in_room():
        (living if npc.is_alive else fallen).append(npc.name)
    if living:
        lines.append(f"You see: {', '.join(living)}")
    for name in fallen:
        lines.append(f"The body of {name} lies here.")

    if room.items:
        lines.append(f"On the ground: {', '.join(i.name for i in room.items)}")
    return "\n".join(lines)


def describe_npc(npc: Character) -> str:
    lines = [npc.name]
    if npc.description:
        lines.append(npc.description)
    if not npc.is_alive:
        lines.append(f"{npc.name} lies dead.")
        if npc.carried_items:
            names = ", ".join(c.item.name for c in npc.carried_items.values())
            lines.append(f"On the body: {names}")
    else:
        lines.append(f"Health: {health_bar(npc)}")
    return "\n".join(lines)


def describe_item(item: Item) -> str:
    lines = [item.name]
    if item.description:
        lines.append(item.description)
    if item.damage_bonus:
        lines.append(f"Damage bonus: +{item.damage_bonus}")
    if item.armor_bonus:
        lines.append(f"Armor bonus: +{item.armor_bonus}")
    return "\n".join(lines)
