"""
Game Engine.

The orchestration layer that processes player turns: build the intent
context, resolve the command into actions, dispatch them one by one and
evaluate win conditions after each success.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from src.engine.dispatcher import ActionDispatcher
from src.engine.errors import InvalidTarget
from src.engine.evaluator import WinEvaluator
from src.engine.intent import HybridIntentParser, LLMIntentParser
from src.engine.models import (
    ActionResult,
    EngineConfig,
    GameSession,
    IntentContext,
    TurnResult,
    Victory,
)
from src.models.world import World
from src.services.llm import LLMProvider, LLMService
from src.services.npc import NPCDialogueService

logger = logging.getLogger(__name__)


@dataclass
class GameEngine:
    """
    Main game engine orchestrating the turn loop.

    Coordinates:
    - Intent resolution (LLM first, pattern fallback)
    - Action dispatch (the exploring / combat state machine)
    - Win and quest evaluation

    One command is processed to completion before the next is accepted.
    """

    session: GameSession
    config: EngineConfig = field(default_factory=EngineConfig)
    llm: LLMService | None = None

    # Components (initialized in __post_init__)
    intent_parser: HybridIntentParser = field(init=False)
    dialogue: NPCDialogueService = field(init=False)
    dispatcher: ActionDispatcher = field(init=False)
    evaluator: WinEvaluator = field(init=False)

    _busy: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        """Initialize engine components."""
        self.session.history_limit = self.config.history_limit

        llm_parser = None
        if self.llm is not None:
            llm_parser = LLMIntentParser(
                self.llm,
                max_tokens=self.config.intent_max_tokens,
                temperature=self.config.intent_temperature,
            )
        self.intent_parser = HybridIntentParser(llm_parser=llm_parser)
        self.dialogue = NPCDialogueService(
            llm=self.llm,
            conversation_window=self.config.conversation_window,
            max_tokens=self.config.dialogue_max_tokens,
            temperature=self.config.dialogue_temperature,
        )
        self.dispatcher = ActionDispatcher(dialogue=self.dialogue, combat=self.config.combat)
        self.evaluator = WinEvaluator()

    def build_context(self) -> IntentContext:
        """Snapshot what the player can perceive right now."""
        session = self.session
        room = session.current_room
        enemy = session.combat_target
        exits = room.available_exits()

        return IntentContext(
            room_name=room.name,
            room_description=room.description,
            exits=[e.display_name for e in exits.values()],
            exit_keys={key: e.display_name for key, e in exits.items()},
            npcs=[n.name for n in session.npcs_in_room()],
            items=[i.name for i in room.items],
            inventory=[c.item.name for c in session.player.carried_items.values()],
            recent_commands=list(session.recent_commands),
            in_combat=session.in_combat,
            combat_target=enemy.name if enemy is not None else None,
        )

    async def process_turn(self, player_input: str) -> TurnResult:
        """
        Process one player command.

        Args:
            player_input: Raw text from the player

        Returns:
            TurnResult with every action taken and its outcome

        Raises:
            RuntimeError: If called while another turn is still running
        """
        if self._busy:
            raise RuntimeError("A turn is already being processed")

        session = self.session
        if session.is_over:
            return TurnResult(
                player_input=player_input,
                outcome=session.outcome,
                message="The game is over.",
                turn_number=session.turn_count,
            )

        self._busy = True
        start = time.perf_counter()
        try:
            context = self.build_context()
            session.add_recent_command(player_input)
            session.turn_count += 1

            actions = await self.intent_parser.resolve(player_input, context)

            results: list[ActionResult] = []
            messages: list[str] = []
            victory: Victory | None = None

            for action in actions:
                if session.is_over:
                    logger.debug("Session over, skipping %s", action.verb.value)
                    break

                result = await self.dispatcher.dispatch(session, action)
                results.append(result)
                if result.message:
                    messages.append(result.message)

                if result.success:
                    quest_messages, victory = self.evaluator.apply(session)
                    messages.extend(quest_messages)
                    if victory is not None:
                        messages.append(victory.message)
                        break

            return TurnResult(
                player_input=player_input,
                actions=actions,
                results=results,
                victory=victory,
                outcome=session.outcome,
                message="\n\n".join(messages),
                turn_number=session.turn_count,
                processing_time_ms=int((time.perf_counter() - start) * 1000),
            )
        finally:
            self._busy = False

    async def stream_talk(
        self,
        npc_name: str,
        message: str,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream an NPC's reply.

        Setting cancel stops the stream; a cancelled reply is not
        remembered by the NPC.

        Raises:
            InvalidTarget: No such living NPC here
            ServiceUnavailable: No LLM, or the stream failed
        """
        npc = self.session.find_npc_in_room(npc_name, alive_only=True)
        if npc is None or not npc.is_npc:
            raise InvalidTarget(f"There is no '{npc_name}' here to talk to.")

        async for chunk in self.dialogue.stream_response(npc, message, cancel):
            yield chunk

        if cancel is None or not cancel.is_set():
            self.session.talked_to.add(npc.id)


def create_engine(
    world: World,
    llm: LLMService | None = None,
    config: EngineConfig | None = None,
    provider: LLMProvider | None = None,
) -> GameEngine:
    """
    Factory function to start a game on a world snapshot.

    Args:
        world: Populated world
        llm: Optional LLM service; without one the fallback parser and
            template dialogue are used
        config: Engine configuration
        provider: Raw LLM provider, wrapped with the configured timeout and
            retry limits when no llm service is given

    Returns:
        A ready GameEngine
    """
    config = config or EngineConfig()
    if llm is None and provider is not None:
        llm = LLMService(
            provider=provider,
            timeout_seconds=config.llm_timeout_seconds,
            max_retries=config.llm_max_retries,
            backoff_seconds=config.llm_backoff_seconds,
        )
    session = GameSession.from_world(world, history_limit=config.history_limit)
    return GameEngine(session=session, config=config, llm=llm)
