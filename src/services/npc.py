"""
NPC Dialogue Service.

Turns a player's line into an in-character reply. Each NPC owns its own
conversation memory (NPCBehavior.conversation); a bounded window of it is
sent with every request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from src.engine.errors import InvalidTarget, ServiceUnavailable
from src.models.character import Alignment, Character, NPCBehavior
from src.services.llm import LLMService

logger = logging.getLogger(__name__)


def default_personality(npc: Character) -> str:
    """Persona prompt for NPCs that were authored without one."""
    items = ", ".join(c.item.name for c in npc.carried_items.values()) or "nothing"
    can_follow = (
        "You may agree to travel with the player."
        if npc.npc is not None and npc.npc.can_join_party
        else "You never leave your post to follow anyone."
    )
    return f"""You are {npc.name}, a character in a fantasy role-playing game.
{npc.description}

You are carrying: {items}
{can_follow}

Stay in character. Reply in 1-3 sentences. Never mention being an AI.
Never claim to have items you are not carrying."""


@dataclass
class NPCDialogueService:
    """
    Dialogue for NPCs, backed by an optional LLM.

    Without an LLM (or when it fails) NPCs answer with short template
    lines so the game never stalls on a conversation.
    """

    llm: LLMService | None = None
    conversation_window: int = 10
    max_tokens: int = 256
    temperature: float = 0.7

    def build_messages(self, npc: Character, player_message: str) -> list[dict[str, str]]:
        """System persona, recent history, then the new player line."""
        behavior = _behavior(npc)
        persona = behavior.personality or default_personality(npc)

        messages = [{"role": "system", "content": persona}]
        for entry in behavior.recent(self.conversation_window):
            messages.append({"role": entry.role, "content": entry.content})
        messages.append({"role": "user", "content": player_message})
        return messages

    async def respond(self, npc: Character, player_message: str) -> str:
        """
        Get a full reply and commit both lines to the NPC's memory.

        Falls back to a template line when the LLM is unavailable.
        """
        behavior = _behavior(npc)
        if not npc.is_alive:
            return f"{npc.name} lies motionless and says nothing."

        reply: str | None = None
        if self.llm is not None and self.llm.is_available:
            result = await self.llm.complete(
                self.build_messages(npc, player_message),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            if result.ok:
                reply = result.content.strip()
            else:
                logger.warning("Dialogue for %s fell back: %s", npc.name, result.error)

        if not reply:
            reply = self.fallback_reply(npc, player_message)

        behavior.remember("user", player_message)
        behavior.remember("assistant", reply)
        return reply

    async def stream_response(
        self,
        npc: Character,
        player_message: str,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream a reply chunk by chunk.

        Memory is only updated when the stream completes without being
        cancelled, so an abandoned reply leaves no trace.

        Raises:
            ServiceUnavailable: If no LLM is configured or the stream fails
        """
        behavior = _behavior(npc)
        if self.llm is None:
            raise ServiceUnavailable("No LLM configured for dialogue")

        parts: list[str] = []
        async for chunk in self.llm.stream(
            self.build_messages(npc, player_message),
            cancel=cancel,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        ):
            parts.append(chunk)
            yield chunk

        if cancel is not None and cancel.is_set():
            logger.debug("Dialogue stream for %s cancelled", npc.name)
            return

        behavior.remember("user", player_message)
        behavior.remember("assistant", "".join(parts).strip())

    def fallback_reply(self, npc: Character, player_message: str) -> str:
        """Template reply when the LLM cannot be reached."""
        text = player_message.lower()

        if npc.alignment == Alignment.EVIL:
            return f"{npc.name} glares at you. \"I have nothing to say to the likes of you.\""

        words = set(text.replace(",", " ").replace("!", " ").split())
        if words & {"hello", "hi", "greetings", "hey"} or "good morning" in text:
            return f"{npc.name} nods. \"Well met, traveler.\""

        if "?" in text or text.startswith(("who", "what", "where", "when", "why", "how")):
            return f"{npc.name} shrugs. \"I'm not sure I can help you with that.\""

        return f"*{npc.name} seems distracted and does not respond.*"


def _behavior(npc: Character) -> NPCBehavior:
    if npc.npc is None:
        raise InvalidTarget(f"{npc.name} is not someone you can talk to.")
    return npc.npc
