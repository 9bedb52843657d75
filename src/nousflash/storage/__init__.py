"""Memory storage backends."""

from nousflash.storage.base import MemoryRepository, RepositoryTransaction
from nousflash.storage.memory_store import InMemoryRepository


def create_repository(settings, dimension: int) -> MemoryRepository:
    """Build the repository selected by StorageSettings.backend."""
    if settings.backend == "memory":
        return InMemoryRepository()

    from nousflash.storage.postgres_store import PostgresMemoryRepository

    return PostgresMemoryRepository(settings=settings, dimension=dimension)


__all__ = [
    "MemoryRepository",
    "RepositoryTransaction",
    "InMemoryRepository",
    "create_repository",
]
