import logging
from typing import List

from starlette.concurrency import run_in_threadpool

from suipic.core.config import settings
from suipic.core.errors import UpstreamFailure
from suipic.services.storage_interface import StorageInterface
from suipic.services.storage_providers.s3_service import S3Service

logger = logging.getLogger(__name__)

_PROVIDERS = {
    "s3": S3Service,
}

_storage_instances = {}


def get_storage_service(provider: str = None) -> StorageInterface:
    """
    Get storage provider instance.
    If provider is not specified, uses the default from settings.
    """
    if not provider:
        provider = settings.STORAGE_PROVIDER.lower()

    if provider in _storage_instances:
        return _storage_instances[provider]

    if provider not in _PROVIDERS:
        raise ValueError(f"Unknown storage provider '{provider}'")

    logger.info(f"Initializing Storage Provider: {provider}")
    instance = _PROVIDERS[provider]()
    _storage_instances[provider] = instance
    return instance


def get_storage() -> StorageInterface:
    """FastAPI dependency for the configured storage provider."""
    return get_storage_service()


async def delete_stored_objects(storage: StorageInterface, keys: List[str]) -> List[str]:
    """
    Best-effort removal of stored objects whose records are already deleted.

    Failures are logged and returned so the caller can report them; they
    never undo the record deletion.
    """
    failed = []
    for key in keys:
        try:
            await run_in_threadpool(storage.delete, key)
        except UpstreamFailure as e:
            logger.warning(f"Storage cleanup failed for {key}: {e.message}")
            failed.append(key)
    return failed


def cleanup_message(base: str, failed: List[str]) -> str:
    if not failed:
        return base
    return f"{base}; {len(failed)} stored file(s) could not be removed"
