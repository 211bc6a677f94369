from .store import KeyedStore, Versioned

__all__ = ["KeyedStore", "Versioned"]
