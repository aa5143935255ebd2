"""
Win and quest evaluation.

Runs after every successful action: first ticks off quest objectives
whose triggers are now satisfied, then checks the world's win conditions
in their configured order.
"""

from __future__ import annotations

import logging

from src.engine.models import GameSession, SessionOutcome, Victory
from src.models.world import ObjectiveTrigger, ObjectiveType, WinCondition, WinConditionType

logger = logging.getLogger(__name__)


class WinEvaluator:
    """Checks quest triggers and win conditions against a session."""

    def update_quests(self, session: GameSession) -> list[str]:
        """
        Complete every objective whose trigger is satisfied.

        Returns:
            Messages for newly completed objectives and quests
        """
        messages: list[str] = []
        for quest in session.world.quests.values():
            if quest.is_complete:
                continue
            for objective, trigger in quest.triggers.items():
                if objective in quest.completed_objectives:
                    continue
                if self._trigger_met(session, trigger) and quest.complete_objective(objective):
                    messages.append(f"Objective complete: {objective}")
            # Only reached for quests that were incomplete on entry
            if quest.is_complete:
                logger.info("Quest completed: %s", quest.title)
                messages.append(f"Quest complete: {quest.title}")
        return messages

    def evaluate(self, session: GameSession) -> Victory | None:
        """
        Return the first satisfied win condition, if any.

        Narration is preferred over the plain victory message.
        """
        for condition in session.world.win_conditions:
            if self.is_satisfied(session, condition):
                logger.info("Win condition %s satisfied", condition.id)
                return Victory(condition_id=condition.id, message=condition.message)
        return None

    def apply(self, session: GameSession) -> tuple[list[str], Victory | None]:
        """Update quests, evaluate, and end the session on victory."""
        messages = self.update_quests(session)
        victory = self.evaluate(session)
        if victory is not None:
            session.end(SessionOutcome.VICTORY)
        return messages, victory

    def is_satisfied(self, session: GameSession, condition: WinCondition) -> bool:
        world = session.world
        if condition.type == WinConditionType.ROOM:
            return session.current_room_id == condition.target_id
        if condition.type == WinConditionType.ITEM:
            return condition.target_id in session.player.carried_items
        if condition.type == WinConditionType.NPC_DEFEAT:
            npc = world.npcs.get(condition.target_id)
            return npc is not None and npc.health <= 0
        if condition.type == WinConditionType.QUEST_COMPLETE:
            quest = world.quests.get(condition.target_id)
            return quest is not None and quest.is_complete
        return False

    def _trigger_met(self, session: GameSession, trigger: ObjectiveTrigger) -> bool:
        if trigger.type == ObjectiveType.REACH_LOCATION:
            return session.current_room_id == trigger.target_id
        if trigger.type == ObjectiveType.COLLECT_ITEM:
            return trigger.target_id in session.player.carried_items
        if trigger.type == ObjectiveType.DEFEAT_ENEMY:
            npc = session.world.npcs.get(trigger.target_id)
            return npc is not None and not npc.is_alive
        if trigger.type == ObjectiveType.TALK_TO_NPC:
            return trigger.target_id in session.talked_to
        return False
