"""
Error taxonomy for the turn engine.

Every recoverable error carries a stable code so the dispatcher can turn
it into a failed ActionResult. InvariantViolation is fatal and is never
caught by the engine.
"""

from __future__ import annotations


class GameError(Exception):
    """Base class for engine errors."""

    code = "game_error"
    fatal = False

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ParseFailure(GameError):
    """LLM output could not be turned into actions."""

    code = "parse_failure"


class ServiceUnavailable(GameError):
    """The language model timed out, errored, or is not configured."""

    code = "service_unavailable"


class ItemNotFound(GameError):
    code = "item_not_found"


class NotEquippable(GameError):
    code = "not_equippable"


class SlotNotFound(GameError):
    code = "slot_not_found"


class NotEquipped(GameError):
    code = "not_equipped"


class InvalidExit(GameError):
    code = "invalid_exit"


class InvalidTarget(GameError):
    code = "invalid_target"


class InvariantViolation(GameError):
    """The session reached a state that should be impossible."""

    code = "invariant_violation"
    fatal = True
