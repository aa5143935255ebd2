"""
Intent Resolution for the turn engine.

Converts free-text player input into an ordered list of Actions.
Uses an LLM first and falls back to deterministic pattern matching when
the model times out, errors, returns garbage, or returns nothing.
"""

from __future__ import annotations

import json
import logging
import re

from src.engine.errors import ParseFailure, ServiceUnavailable
from src.engine.models import Action, ActionSource, ActionVerb, IntentContext
from src.services.llm import LLMService

logger = logging.getLogger(__name__)


# =============================================================================
# Vocabulary
# =============================================================================

STOPWORDS = frozenset({"the", "a", "an", "my"})

MOVE_VERBS = ("go", "walk", "run", "move", "head", "travel", "enter")

DIRECTION_ABBREVIATIONS = {
    "n": "north",
    "s": "south",
    "e": "east",
    "w": "west",
    "u": "up",
    "d": "down",
}

FLEE_PHRASES = ("flee", "run away", "run", "escape", "retreat", "stop", "exit combat")

EQUIPPED_PHRASES = (
    "equipped",
    "equipment",
    "show equipment",
    "gear",
    "what am i wearing",
    "what's equipped",
)

INVENTORY_PHRASES = ("inventory", "inv", "i", "check inventory")
STATUS_PHRASES = ("status", "stats", "health", "hp")
HELP_PHRASES = ("help", "?", "commands")
QUIT_PHRASES = ("quit", "q", "exit game")

EQUIP_PATTERN = re.compile(r"^(?:equip|wear|wield)\b\s*(.*)$")
UNEQUIP_PATTERN = re.compile(r"^(?:unequip|remove|dequip|take off)\b\s*(.*)$")
TALK_PATTERN = re.compile(r"^(?:talk|speak|chat|ask)\b(?:\s+(?:to|with))?\s*(.*)$")
SAY_PATTERN = re.compile(r"^say\s+(.+?)\s+to\s+(.+)$")
ATTACK_PATTERN = re.compile(r"^(?:attack|fight|kill|hit|strike)\b\s*(.*)$")
TAKE_PATTERN = re.compile(r"^(?:take|get|grab|pick up|pick|loot)\b\s*(.*)$")
DROP_PATTERN = re.compile(r"^(?:drop|discard)\b\s*(.*)$")
LOOK_PATTERN = re.compile(r"^(?:look|examine|inspect|l|x)\b(?:\s+(?:at|around|in))?\s*(.*)$")

# First words that belong to some other command; such inputs are only
# read as an exit name when they equal one exactly.
COMMAND_WORDS = frozenset(
    {
        "equip", "wear", "wield", "unequip", "remove", "dequip",
        "talk", "speak", "chat", "ask", "say",
        "attack", "fight", "kill", "hit", "strike",
        "flee", "escape", "retreat", "stop",
        "take", "get", "grab", "pick", "loot", "drop", "discard",
        "look", "examine", "inspect", "l", "x",
        "inventory", "inv", "i", "status", "stats", "health", "hp",
        "help", "commands", "quit", "q",
    }
)  # fmt: skip

UNKNOWN_MESSAGE = "I don't understand '{text}'. Type 'help' to see what you can do."


def normalize(text: str) -> str:
    """Lowercase, collapse whitespace, and drop articles and 'my'."""
    cleaned = text.lower().strip().rstrip(".!")
    words = [w for w in cleaned.split() if w not in STOPWORDS]
    return " ".join(words)


def _resolve_name(phrase: str, names: list[str]) -> str:
    """Expand a partial name to a full name from context, if one fits."""
    needle = phrase.strip().lower()
    if not needle:
        return phrase
    for name in names:
        if name.lower() == needle:
            return name
    for name in names:
        if needle in name.lower():
            return name
    words = [w for w in needle.split() if len(w) > 2]
    for name in names:
        name_words = name.lower().split()
        if any(w in name_words for w in words):
            return name
    return phrase


# =============================================================================
# Fallback Parser
# =============================================================================


class FallbackIntentParser:
    """
    Deterministic parser used when the LLM path yields nothing usable.

    Patterns are tried in priority order and the first match wins. Never
    returns an empty list: unrecognised input becomes an UNKNOWN action.
    """

    def parse(self, player_input: str, context: IntentContext) -> list[Action]:
        """
        Parse player input into actions.

        Args:
            player_input: Raw text from the player
            context: What the player can currently see

        Returns:
            Exactly one Action
        """
        text = normalize(player_input)
        action = self._match(text, context)
        if action is None:
            action = self._action(
                ActionVerb.UNKNOWN,
                details=UNKNOWN_MESSAGE.format(text=player_input.strip()),
            )
        logger.debug("Fallback parsed %r as %s", player_input, action.verb.value)
        return [action]

    def _action(self, verb: ActionVerb, target: str = "", details: str = "") -> Action:
        return Action(verb=verb, target=target, details=details, source=ActionSource.FALLBACK)

    def _match(self, text: str, context: IntentContext) -> Action | None:
        if not text:
            return None

        if match := EQUIP_PATTERN.match(text):
            return self._action(ActionVerb.EQUIP, target=match.group(1).strip())

        if match := UNEQUIP_PATTERN.match(text):
            return self._action(ActionVerb.UNEQUIP, target=match.group(1).strip())

        if text in EQUIPPED_PHRASES:
            return self._action(ActionVerb.EQUIPPED)

        move = self._match_movement(text, context)
        if move is not None:
            return move

        if match := SAY_PATTERN.match(text):
            npc = _resolve_name(match.group(2), context.npcs)
            return self._action(ActionVerb.TALK, target=npc, details=match.group(1))

        if match := TALK_PATTERN.match(text):
            rest = match.group(1).strip()
            target, _, topic = rest.partition(" about ")
            return self._action(
                ActionVerb.TALK,
                target=_resolve_name(target.strip(), context.npcs),
                details=topic.strip(),
            )

        if match := ATTACK_PATTERN.match(text):
            target = match.group(1).strip()
            if not target and context.in_combat and context.combat_target:
                target = context.combat_target
            return self._action(ActionVerb.ATTACK, target=_resolve_name(target, context.npcs))

        if text in FLEE_PHRASES or text.startswith(("flee ", "escape ", "retreat ")):
            return self._action(ActionVerb.FLEE)

        if match := TAKE_PATTERN.match(text):
            rest = match.group(1).strip()
            if text.startswith("loot"):
                return self._action(
                    ActionVerb.TAKE, target="all", details=_resolve_name(rest, context.npcs)
                )
            if rest.startswith("up "):
                rest = rest[3:]
            target, _, source = rest.partition(" from ")
            details = _resolve_name(source.strip(), context.npcs) if source else ""
            return self._action(ActionVerb.TAKE, target=target.strip(), details=details)

        if match := DROP_PATTERN.match(text):
            return self._action(ActionVerb.DROP, target=match.group(1).strip())

        if match := LOOK_PATTERN.match(text):
            target = match.group(1).strip()
            if target:
                target = _resolve_name(target, context.npcs)
            return self._action(ActionVerb.LOOK, target=target)

        if text in INVENTORY_PHRASES:
            return self._action(ActionVerb.INVENTORY)
        if text in STATUS_PHRASES:
            return self._action(ActionVerb.STATUS)
        if text in HELP_PHRASES:
            return self._action(ActionVerb.HELP)
        if text in QUIT_PHRASES:
            return self._action(ActionVerb.QUIT)

        return None

    def _match_movement(self, text: str, context: IntentContext) -> Action | None:
        """Match input against the exits the player can currently use."""
        if text in FLEE_PHRASES:
            return None

        words = text.split()
        has_verb = words[0] in MOVE_VERBS
        phrase = " ".join(words[1:]) if has_verb else text
        for prefix in ("to ", "into ", "towards ", "through "):
            if phrase.startswith(prefix):
                phrase = phrase[len(prefix) :]
        phrase = DIRECTION_ABBREVIATIONS.get(phrase, phrase)

        # exit names go through the same normalization as the input
        exits = [(name, normalize(name)) for name in context.exits]
        for name, key in exits:
            if key == phrase:
                return self._action(ActionVerb.MOVE, target=name)
        for key, name in context.exit_keys.items():
            if normalize(key) == phrase:
                return self._action(ActionVerb.MOVE, target=name)

        if not has_verb and words[0] in COMMAND_WORDS:
            return None

        if phrase and (has_verb or len(phrase) >= 3):
            for name, key in exits:
                if phrase in key:
                    return self._action(ActionVerb.MOVE, target=name)
            for name, key in exits:
                if key and key in phrase:
                    return self._action(ActionVerb.MOVE, target=name)

        if has_verb:
            # "go to the moon": still a move, the dispatcher reports the bad exit
            return self._action(ActionVerb.MOVE, target=phrase)
        return None


# =============================================================================
# LLM Parser
# =============================================================================

INTENT_SYSTEM_PROMPT = """You are the command interpreter for a text adventure game.
Your ONLY job is to decide which game commands the player's input asks for.

RESPONSE FORMAT - Return ONLY a JSON array, no markdown, no explanation:
[{"action":"ACTION","target":"TARGET","details":"DETAILS"}]

Valid actions: move, look, talk, take, drop, attack, flee, equip, unequip, equipped, inventory, status, help, quit

Rules:
1. 'target' is the exact thing the player referred to. Use full NPC, item and exit names from the context.
2. 'details' holds extra text, such as what the player says to an NPC or which body to take an item from.
3. Only return several actions if the player explicitly asked for several things, in the order asked.
4. Do not add actions the player did not ask for.
5. If the command is unclear, return an empty array: []

Examples:
Player says 'go north' -> [{"action":"move","target":"north","details":""}]
Player says 'attack grak' -> [{"action":"attack","target":"Grak the Shaman","details":""}]
Player says 'ask barrick about the forest' -> [{"action":"talk","target":"Old Barrick","details":"Tell me about the forest"}]
Player says 'wear the helmet' -> [{"action":"equip","target":"helmet","details":""}]
Player says 'take off my boots' -> [{"action":"unequip","target":"boots","details":""}]
Player says 'what am I wearing' -> [{"action":"equipped","target":"","details":""}]
Player says 'grab the sword and equip it' -> [{"action":"take","target":"Iron Sword","details":""},{"action":"equip","target":"Iron Sword","details":""}]
Player says 'run away' -> [{"action":"flee","target":"","details":""}]
Player says 'look around' -> [{"action":"look","target":"","details":""}]"""

VERB_ALIASES = {
    "stop": "flee",
    "run": "flee",
    "escape": "flee",
    "examine": "look",
    "inspect": "look",
    "search": "look",
    "wear": "equip",
    "wield": "equip",
    "remove": "unequip",
    "go": "move",
    "walk": "move",
    "fight": "attack",
    "speak": "talk",
    "say": "talk",
    "get": "take",
    "pick_up": "take",
    "pickup": "take",
    "inv": "inventory",
    "stats": "status",
    "equipment": "equipped",
}

FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_llm_actions(content: str) -> list[Action]:
    """
    Turn raw model output into Actions.

    Accepts a JSON array (optionally fenced in markdown or surrounded by
    prose) or a single JSON object. Elements with unknown verbs are dropped.

    Raises:
        ParseFailure: If no JSON can be extracted
    """
    text = FENCE_PATTERN.sub("", content.strip()).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("["), text.rfind("]")
        if start < 0 or end <= start:
            raise ParseFailure(f"No JSON array in LLM output: {content[:80]!r}") from None
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise ParseFailure(f"Malformed JSON in LLM output: {e}") from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ParseFailure(f"Expected a JSON array, got {type(data).__name__}")

    actions: list[Action] = []
    for element in data:
        if not isinstance(element, dict):
            continue
        raw_verb = str(element.get("action", "")).strip().lower().replace(" ", "_")
        raw_verb = VERB_ALIASES.get(raw_verb, raw_verb)
        try:
            verb = ActionVerb(raw_verb)
        except ValueError:
            logger.debug("Dropping LLM action with unknown verb %r", raw_verb)
            continue
        actions.append(
            Action(
                verb=verb,
                target=str(element.get("target") or "").strip(),
                details=str(element.get("details") or "").strip(),
                source=ActionSource.LLM,
            )
        )
    return actions


class LLMIntentParser:
    """Asks the language model for a JSON action list."""

    def __init__(
        self,
        llm: LLMService,
        max_tokens: int = 256,
        temperature: float = 0.2,
    ) -> None:
        self.llm = llm
        self.max_tokens = max_tokens
        self.temperature = temperature

    def build_messages(self, player_input: str, context: IntentContext) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": INTENT_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"{context.render()}\n\nPlayer command: {player_input}",
            },
        ]

    async def parse(self, player_input: str, context: IntentContext) -> list[Action]:
        """
        Resolve input through the LLM.

        Raises:
            ServiceUnavailable: The model could not be reached in time
            ParseFailure: The model's answer was not usable JSON
        """
        result = await self.llm.complete(
            self.build_messages(player_input, context),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if not result.ok:
            raise ServiceUnavailable(result.error or "LLM call failed")
        return parse_llm_actions(result.content)


# =============================================================================
# Hybrid
# =============================================================================


class HybridIntentParser:
    """
    LLM-first intent resolution with a deterministic safety net.

    The fallback parser runs whenever the LLM path fails or returns no
    actions, so resolve() always yields at least one action.
    """

    def __init__(
        self,
        llm_parser: LLMIntentParser | None = None,
        fallback: FallbackIntentParser | None = None,
    ) -> None:
        self.llm_parser = llm_parser
        self.fallback = fallback or FallbackIntentParser()

    async def resolve(self, player_input: str, context: IntentContext) -> list[Action]:
        """
        Resolve player input into a non-empty ordered list of actions.

        Args:
            player_input: Raw text from the player
            context: What the player can currently see

        Returns:
            One or more Actions
        """
        if self.llm_parser is not None and player_input.strip():
            try:
                actions = await self.llm_parser.parse(player_input, context)
                if actions:
                    return actions
                logger.info("LLM returned no actions for %r, using fallback", player_input)
            except (ParseFailure, ServiceUnavailable) as e:
                logger.warning("LLM intent parsing failed, using fallback: %s", e)

        return self.fallback.parse(player_input, context)
