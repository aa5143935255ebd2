"""
Service layer.

Services wrap the unreliable collaborators (the language model) behind
bounded, typed interfaces.
"""

from __future__ import annotations

from src.services.llm import (
    LLMProvider,
    LLMResult,
    LLMService,
    MockLLMProvider,
    OpenRouterProvider,
    create_llm_service,
)
from src.services.npc import NPCDialogueService

__all__ = [
    "LLMProvider",
    "LLMResult",
    "LLMService",
    "MockLLMProvider",
    "NPCDialogueService",
    "OpenRouterProvider",
    "create_llm_service",
]
