"""
Store factory.

Builds a registered store on the JSON file backend from settings.
"""

import logging
from typing import Any

from regstore.backends.filesystem import JsonFileBackend
from regstore.codec import Codec
from regstore.core.config import StoreSettings
from regstore.store.registered import RegisteredStore

logger = logging.getLogger(__name__)


def create_backend(settings: StoreSettings) -> JsonFileBackend:
    """File backend configured from settings."""
    return JsonFileBackend(
        root=settings.root,
        hmac_key=settings.hmac_key,
        dir_mode=settings.dir_mode,
        fsync=settings.fsync,
    )


def open_store(
    settings: StoreSettings | None = None,
    codec: Codec | None = None,
    **overrides: Any,
) -> RegisteredStore:
    """
    Open a registered store.

    Args:
        settings: Store settings (default: loaded from the environment)
        codec: Value codec (default: shared record types)
        **overrides: Settings fields overriding the environment when
            settings is not given

    Returns:
        Configured store; the registry is loaded on first use
    """
    if settings is None:
        settings = StoreSettings.from_env(**overrides)

    logger.debug(f"Opening store at {settings.root} (update mode {settings.update_mode.value})")
    return RegisteredStore(
        create_backend(settings),
        codec=codec,
        update_mode=settings.update_mode,
    )
