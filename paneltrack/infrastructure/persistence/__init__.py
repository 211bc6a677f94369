from .in_memory_store import InMemoryKeyedStore

__all__ = ["InMemoryKeyedStore"]
