# Infrastructure Adapters Package
from .catalog import InMemoryCardCatalog
from .memory_store import InMemoryProgressStore
from .sqlite_store import SqliteProgressStore

__all__ = ["InMemoryCardCatalog", "InMemoryProgressStore", "SqliteProgressStore"]
