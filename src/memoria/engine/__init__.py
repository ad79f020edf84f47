"""Engine package - the MemoryEngine interface and its MemorySystem implementation."""

from memoria.engine.base import MemoryEngine
from memoria.engine.memory_engine import MemorySystem, create_store

__all__ = ["MemoryEngine", "MemorySystem", "create_store"]
