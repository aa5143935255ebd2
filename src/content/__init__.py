"""
Bundled world content.

Anything that produces a populated World can feed the engine; the
starter world here is built in code.
"""

from src.content.starter_world import create_starter_world

__all__ = ["create_starter_world"]
