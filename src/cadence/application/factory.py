"""
Card Repository Factory
Centralizes the logic for selecting the storage adapter.
"""

import logging

from cadence.application.config import AppConfig
from cadence.domain.ports import CardRepository
from cadence.infrastructure.adapters.local_store import LocalCardRepository
from cadence.infrastructure.adapters.remote_store import RemoteCardRepository

logger = logging.getLogger(__name__)


def get_local_repository(config: AppConfig) -> LocalCardRepository:
    return LocalCardRepository(config.data_file)


def get_card_repository(config: AppConfig, authenticated: bool | None = None) -> CardRepository:
    """
    Returns the repository for the current authentication state.

    Signed-in users with a configured hosted database get the remote store;
    everyone else gets the local file.
    """
    if authenticated is None:
        authenticated = config.is_authenticated

    if authenticated and config.remote_url and config.remote_api_key:
        logger.debug("Storage: remote")
        return RemoteCardRepository(
            url=config.remote_url,
            api_key=config.remote_api_key,
            access_token=config.access_token,
            table=config.remote_table,
        )

    if authenticated:
        logger.warning("Authenticated but no remote store configured; using local storage")
    logger.debug("Storage: local")
    return get_local_repository(config)


def get_fallback_repository(
    config: AppConfig, primary: CardRepository
) -> CardRepository | None:
    """Local store to park writes in when the primary is remote, else None."""
    if isinstance(primary, LocalCardRepository):
        return None
    return get_local_repository(config)
