"""
Core Engine.

The engine orchestrates:
- Intent resolution (src.engine.intent)
- Action dispatch (src.engine.dispatcher)
- Win and quest evaluation (src.engine.evaluator)
- The turn loop itself (src.engine.game)

Import from the submodules directly; skills and services depend on
src.engine.errors, so this package stays free of eager imports.
"""
