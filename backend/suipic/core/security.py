"""
Bearer token verification against the identity provider's signing keys.

The identity provider issues signed JWTs; this module only verifies them.
Keys come from the provider's JWKS endpoint and are held in a process-wide
`SigningKeyCache`:

* loaded lazily on first verification and reused afterwards;
* refetched when a token names a `kid` the cache does not know, at most
  once per `JWKS_MIN_REFRESH_SECONDS`, so key rotation is picked up without
  a restart and unknown-kid tokens cannot hammer the provider;
* dropped by `reset_identity_verifier()` on application shutdown.

Every verification failure (expired, wrong issuer, malformed, key fetch
error) fails closed with `Unauthenticated`.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging
import time

import requests
from jose import jwt, JWTError
from starlette.concurrency import run_in_threadpool

from suipic.core.config import settings
from suipic.core.errors import Unauthenticated

logger = logging.getLogger(__name__)

JwksFetcher = Callable[[], Dict[str, Any]]


@dataclass(frozen=True)
class VerifiedIdentity:
    """Subject and claims of a token that passed verification."""

    subject: str
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def email(self) -> Optional[str]:
        return self.claims.get("email")


def fetch_jwks(url: str = None, timeout: int = None) -> Dict[str, Any]:
    """Download the JWKS document (blocking)."""
    response = requests.get(
        url or settings.idp_jwks_url,
        timeout=timeout or settings.JWKS_FETCH_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    return response.json()


class SigningKeyCache:
    """Process-scoped JWKS holder with initialize-once and rate-limited refresh."""

    def __init__(
        self,
        fetcher: JwksFetcher,
        min_refresh_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._min_refresh_seconds = min_refresh_seconds
        self._clock = clock
        self._keys: Optional[List[Dict[str, Any]]] = None
        self._fetched_at: Optional[float] = None

    @property
    def loaded(self) -> bool:
        return self._keys is not None

    async def _load(self) -> None:
        document = await run_in_threadpool(self._fetcher)
        keys = document.get("keys")
        if not isinstance(keys, list):
            raise ValueError("JWKS document has no 'keys' list")
        self._keys = keys
        self._fetched_at = self._clock()
        logger.info(f"Loaded {len(keys)} identity provider signing keys")

    async def get_keys(self, kid: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return the cached key set, loading or refreshing it when needed."""
        if self._keys is None:
            await self._load()
        elif kid is not None and not self._has_kid(kid) and self._may_refresh():
            logger.info(f"Signing key {kid} not cached, refreshing JWKS")
            await self._load()
        return self._keys

    def _has_kid(self, kid: str) -> bool:
        return any(key.get("kid") == kid for key in self._keys or [])

    def _may_refresh(self) -> bool:
        return self._fetched_at is None or self._clock() - self._fetched_at >= self._min_refresh_seconds

    def clear(self) -> None:
        self._keys = None
        self._fetched_at = None


class IdentityVerifier:
    """Verifies bearer tokens against a `SigningKeyCache`."""

    def __init__(
        self,
        key_cache: SigningKeyCache,
        issuer: str,
        algorithms: List[str],
        audience: Optional[str] = None,
    ):
        self.key_cache = key_cache
        self.issuer = issuer
        self.algorithms = algorithms
        self.audience = audience

    async def verify(self, token: str) -> VerifiedIdentity:
        try:
            header = jwt.get_unverified_header(token)
            keys = await self.key_cache.get_keys(header.get("kid"))
            payload = jwt.decode(
                token,
                {"keys": keys},
                algorithms=self.algorithms,
                issuer=self.issuer,
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            raise Unauthenticated("Invalid or expired token")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Signing key fetch failed: {e}")
            raise Unauthenticated("Unable to verify token")

        subject = payload.get("sub")
        if not subject:
            raise Unauthenticated("Invalid token payload")
        return VerifiedIdentity(subject=subject, claims=payload)


_identity_verifier: Optional[IdentityVerifier] = None


def get_identity_verifier() -> IdentityVerifier:
    """Process-wide verifier, created on first use."""
    global _identity_verifier

    if _identity_verifier is None:
        _identity_verifier = IdentityVerifier(
            key_cache=SigningKeyCache(fetch_jwks, min_refresh_seconds=settings.JWKS_MIN_REFRESH_SECONDS),
            issuer=settings.idp_issuer,
            algorithms=settings.idp_algorithms_list,
            audience=settings.IDP_AUDIENCE,
        )
    return _identity_verifier


def reset_identity_verifier() -> None:
    """Drop the cached verifier and its keys."""
    global _identity_verifier

    if _identity_verifier is not None:
        _identity_verifier.key_cache.clear()
    _identity_verifier = None
