from core.memory.schema import (
    Base,
    RoadmapIngestionState,
    RoadmapManualState,
    RoadmapStatusSnapshot,
    create_memory_engine,
    create_session_factory,
)

__all__ = [
    "Base",
    "RoadmapIngestionState",
    "RoadmapManualState",
    "RoadmapStatusSnapshot",
    "create_memory_engine",
    "create_session_factory",
]
