from typing import Protocol


class StorageInterface(Protocol):
    """
    Object storage gateway used by the ingestion pipeline and image routes.

    Implementations are synchronous (boto3 style); async callers run them in
    the threadpool.

    Error contract:
        put         -> UpstreamFailure on network/service failure (not retried)
        get         -> NotFound when the key is absent, UpstreamFailure otherwise
        delete      -> UpstreamFailure; callers treat delete as best-effort
        signed_url  -> UpstreamFailure when signing is impossible
    """

    def put(self, key: str, data: bytes, content_type: str) -> None:
        """Store bytes under key, overwriting any existing object."""
        ...

    def get(self, key: str) -> bytes:
        """Download object content."""
        ...

    def delete(self, key: str) -> None:
        """Delete object at key."""
        ...

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        """
        Generate a fresh URL granting read access to key for exactly
        ttl_seconds from now. Never cached.
        """
        ...
