# Infrastructure Storage Adapters Package
from .local_store import LocalCardRepository
from .remote_store import RemoteCardRepository

__all__ = ["LocalCardRepository", "RemoteCardRepository"]
