"""
Engine Data Models.

Defines the core data structures for the turn loop:
- Action: A validated verb + target produced by intent resolution
- IntentContext: What the intent resolver may see
- GameSession: The single mutable state of a running game
- ActionResult / TurnResult: What the engine hands to the narrator
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from src.engine.errors import InvariantViolation
from src.models.character import Character
from src.models.world import Room, World
from src.skills.combat import CombatConfig


class ActionVerb(str, Enum):
    """Closed set of verbs the dispatcher understands."""

    MOVE = "move"
    LOOK = "look"
    TALK = "talk"
    TAKE = "take"
    DROP = "drop"
    ATTACK = "attack"
    FLEE = "flee"
    EQUIP = "equip"
    UNEQUIP = "unequip"
    EQUIPPED = "equipped"
    INVENTORY = "inventory"
    STATUS = "status"
    HELP = "help"
    QUIT = "quit"
    UNKNOWN = "unknown"


class ActionSource(str, Enum):
    """Which intent path produced an action."""

    LLM = "llm"
    FALLBACK = "fallback"


class Action(BaseModel):
    """A single resolved player action."""

    model_config = {"frozen": True}

    verb: ActionVerb
    target: str = Field(default="", description="NPC, item, exit or slot")
    details: str = Field(default="", description="Free text, e.g. what to say")
    source: ActionSource = Field(default=ActionSource.FALLBACK)


class IntentContext(BaseModel):
    """Snapshot of what the player can perceive, for intent resolution."""

    room_name: str
    room_description: str = ""
    exits: list[str] = Field(default_factory=list)
    exit_keys: dict[str, str] = Field(
        default_factory=dict, description="Exit key -> display name, e.g. out -> Back To The Forest"
    )
    npcs: list[str] = Field(default_factory=list)
    items: list[str] = Field(default_factory=list)
    inventory: list[str] = Field(default_factory=list)
    recent_commands: list[str] = Field(default_factory=list)
    in_combat: bool = False
    combat_target: str | None = None

    def render(self) -> str:
        """Plain-text block for the language model prompt."""
        lines = [
            f"Location: {self.room_name}",
            f"Description: {self.room_description}",
            f"Exits: {', '.join(self.exits) if self.exits else 'none'}",
            f"People here: {', '.join(self.npcs) if self.npcs else 'nobody'}",
            f"Items here: {', '.join(self.items) if self.items else 'nothing'}",
            f"Inventory: {', '.join(self.inventory) if self.inventory else 'empty'}",
        ]
        if self.in_combat:
            lines.append(f"IN COMBAT with: {self.combat_target}")
        if self.recent_commands:
            lines.append(f"Recent commands: {' | '.join(self.recent_commands)}")
        return "\n".join(lines)


class SessionMode(str, Enum):
    EXPLORING = "exploring"
    IN_COMBAT = "in_combat"


class SessionOutcome(str, Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"
    QUIT = "quit"


class ActionResult(BaseModel):
    """Structured outcome of one dispatched action."""

    verb: ActionVerb
    success: bool
    message: str = ""
    error: str | None = Field(default=None, description="Error code on failure")

    # Combat
    damage_dealt: int = 0
    damage_taken: int = 0
    health_delta: int = 0
    experience_gained: int = 0

    # World changes
    room_changed: bool = False
    items_gained: list[str] = Field(default_factory=list)
    items_lost: list[str] = Field(default_factory=list)
    state_changes: list[str] = Field(default_factory=list)


class Victory(BaseModel):
    """A satisfied win condition."""

    condition_id: str
    message: str


class TurnResult(BaseModel):
    """Result returned to the narrator for one player command."""

    player_input: str
    actions: list[Action] = Field(default_factory=list)
    results: list[ActionResult] = Field(default_factory=list)
    victory: Victory | None = None
    outcome: SessionOutcome | None = None
    message: str = Field(default="", description="Plain fallback text")
    turn_number: int = 0
    processing_time_ms: int = 0

    @property
    def game_over(self) -> bool:
        return self.outcome is not None


class EngineConfig(BaseModel):
    """Engine configuration."""

    # History
    history_limit: int = Field(default=5, ge=1)
    conversation_window: int = Field(default=10, ge=1)

    # LLM settings
    llm_timeout_seconds: float = Field(default=15.0, gt=0)
    llm_max_retries: int = Field(default=2, ge=0)
    llm_backoff_seconds: float = Field(default=0.5, ge=0)
    intent_max_tokens: int = 256
    intent_temperature: float = 0.2
    dialogue_max_tokens: int = 256
    dialogue_temperature: float = 0.7

    combat: CombatConfig = Field(default_factory=CombatConfig)


class GameSession(BaseModel):
    """
    The one mutable state of a running game.

    Created from a World and passed explicitly to every engine operation.
    """

    world: World
    current_room_id: str
    mode: SessionMode = SessionMode.EXPLORING
    combat_target_id: str | None = None
    companion_ids: list[str] = Field(default_factory=list)
    talked_to: set[str] = Field(default_factory=set, description="NPC ids spoken with")

    recent_commands: list[str] = Field(default_factory=list)
    history_limit: int = Field(default=5, ge=1)

    turn_count: int = 0
    outcome: SessionOutcome | None = None

    @classmethod
    def from_world(cls, world: World, history_limit: int = 5) -> GameSession:
        return cls(
            world=world,
            current_room_id=world.starting_room_id,
            history_limit=history_limit,
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def player(self) -> Character:
        return self.world.player

    @property
    def current_room(self) -> Room:
        room = self.world.rooms.get(self.current_room_id)
        if room is None:
            raise InvariantViolation(f"Current room '{self.current_room_id}' does not exist")
        return room

    @property
    def in_combat(self) -> bool:
        return self.mode == SessionMode.IN_COMBAT

    @property
    def combat_target(self) -> Character | None:
        if self.combat_target_id is None:
            return None
        return self.world.npcs.get(self.combat_target_id)

    @property
    def is_over(self) -> bool:
        return self.outcome is not None

    def npcs_in_room(self) -> list[Character]:
        return [
            self.world.npcs[npc_id]
            for npc_id in self.current_room.npc_ids
            if npc_id in self.world.npcs
        ]

    def find_npc_in_room(self, text: str, alive_only: bool = False) -> Character | None:
        """Find an NPC in the current room by id or (partial) name."""
        needle = text.strip().lower()
        if not needle:
            return None
        candidates = [n for n in self.npcs_in_room() if n.is_alive or not alive_only]
        for npc in candidates:
            if npc.id.lower() == needle or npc.name.lower() == needle:
                return npc
        for npc in candidates:
            if needle in npc.name.lower():
                return npc
        # "grak the shaman" typed as "shaman grak"
        words = [w for w in needle.split() if len(w) > 2 and w not in ("the", "and")]
        for npc in candidates:
            name_words = npc.name.lower().split()
            if any(w in name_words for w in words):
                return npc
        return None

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_recent_command(self, command: str) -> None:
        """Record a command, evicting the oldest past the limit."""
        self.recent_commands.append(command)
        while len(self.recent_commands) > self.history_limit:
            self.recent_commands.pop(0)

    def enter_combat(self, npc_id: str) -> None:
        if npc_id not in self.world.npcs:
            raise InvariantViolation(f"Cannot fight unknown NPC '{npc_id}'")
        self.mode = SessionMode.IN_COMBAT
        self.combat_target_id = npc_id

    def end_combat(self) -> None:
        self.mode = SessionMode.EXPLORING
        self.combat_target_id = None

    def move_to(self, room_id: str) -> None:
        if room_id not in self.world.rooms:
            raise InvariantViolation(f"Cannot move to unknown room '{room_id}'")
        self.current_room_id = room_id

    def end(self, outcome: SessionOutcome) -> None:
        if self.outcome is None:
            self.outcome = outcome
