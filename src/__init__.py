"""RPG Turn Engine: a deterministic turn engine for LLM-assisted text adventures."""
