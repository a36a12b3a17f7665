from .memory_store import InMemoryCatalogStore
from .mock_transport import ScriptedTransport

__all__ = ["InMemoryCatalogStore", "ScriptedTransport"]
