# cargo_tracker/auth/google.py
"""
Google ID token verification.

Used by the identity middleware to validate the bearer token on every request.
Responsibilities:
- Lazy JWKS fetching (no network calls on import or start-up)
- Optional in-memory JWKS caching (JWKS_CACHE_SECONDS; 0 fetches per verification)
- Clear typed exceptions for verification failures
- Audience (OAUTH_CLIENT_ID) and issuer (OAUTH_ISSUERS) checks
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any

import httpx
from jose import JWTError, jwk, jwt

from cargo_tracker.core.config import Settings


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TokenVerificationError(Exception):
    """Base exception for ID token verification failures."""


class VerifierNotConfiguredError(TokenVerificationError):
    """Raised when the OAuth client id is not configured."""


class JWKSFetchError(TokenVerificationError):
    """Raised when the provider's JWKS cannot be fetched or is unusable."""


class MalformedTokenError(TokenVerificationError):
    """Raised when the token header cannot even be decoded."""


class InvalidTokenError(TokenVerificationError):
    """Raised for general token validation failures."""


class TokenExpiredError(TokenVerificationError):
    """Raised when the token has expired."""


class InvalidSignatureError(TokenVerificationError):
    """Raised when the token signature is invalid."""


class IssuerMismatchError(TokenVerificationError):
    """Raised when the token issuer is not one of the configured issuers."""


class AudienceMismatchError(TokenVerificationError):
    """Raised when the token audience is not our OAuth client id."""


# ---------------------------------------------------------------------------
# JWKS Cache
# ---------------------------------------------------------------------------


class _JWKSCache:
    """
    Thread-safe in-memory cache for the provider JWKS.

    With a TTL of 0 every lookup refetches, so a rotated key is picked up on
    the very next request. A kid that is missing from a cached set forces one
    refresh before giving up. The lock only guards the cached set and fetches
    run outside it.
    """

    def __init__(self, jwks_url: str, ttl_seconds: int, timeout: float) -> None:
        self._jwks_url = jwks_url
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._lock = threading.Lock()
        self._keys: dict[str, Any] | None = None
        self._fetched_at: float = 0.0

    def get_signing_key(self, kid: str) -> Any:
        keys = self._cached_keys()
        refreshed = False
        if keys is None:
            keys = self._refresh_keys()
            refreshed = True

        if kid not in keys and not refreshed:
            # Key not found; maybe keys rotated. Try one refresh.
            keys = self._refresh_keys()

        if kid not in keys:
            raise InvalidTokenError(f"Signing key not found for kid: {kid}")

        return keys[kid]

    def _cached_keys(self) -> dict[str, Any] | None:
        if self._ttl <= 0:
            return None
        with self._lock:
            if self._keys is None or (time.time() - self._fetched_at) > self._ttl:
                return None
            return self._keys

    def _refresh_keys(self) -> dict[str, Any]:
        keys = self._fetch_keys()
        if self._ttl > 0:
            with self._lock:
                self._keys = keys
                self._fetched_at = time.time()
        return keys

    def _fetch_keys(self) -> dict[str, Any]:
        if not self._jwks_url:
            raise VerifierNotConfiguredError("OAUTH_JWKS_URL not configured")

        try:
            logger.debug("Fetching JWKS from %s", self._jwks_url)
            resp = httpx.get(self._jwks_url, timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch JWKS: %s", e)
            raise JWKSFetchError(f"Failed to fetch JWKS: {e}") from e

        keys_list = data.get("keys", []) if isinstance(data, dict) else []
        if not keys_list:
            raise JWKSFetchError("JWKS response contains no keys")

        keys: dict[str, Any] = {}
        for key_data in keys_list:
            kid = key_data.get("kid")
            if kid:
                try:
                    keys[kid] = jwk.construct(key_data)
                except JWTError as e:
                    logger.warning("Failed to construct key for kid=%s: %s", kid, e)

        logger.debug("Fetched %d signing keys", len(keys))
        return keys

    def clear(self) -> None:
        with self._lock:
            self._keys = None
            self._fetched_at = 0.0


# ---------------------------------------------------------------------------
# Token Verification
# ---------------------------------------------------------------------------


class GoogleTokenVerifier:
    """
    Verifies Google-issued ID tokens.

    One instance lives on ``app.state.token_verifier`` for the life of the
    process; it holds the only cross-request state (the JWKS cache).
    """

    def __init__(
        self,
        *,
        client_id: str,
        issuers: tuple[str, ...],
        jwks_url: str,
        cache_seconds: int = 0,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id
        self.issuers = issuers
        self._cache = _JWKSCache(jwks_url, cache_seconds, timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> GoogleTokenVerifier:
        return cls(
            client_id=settings.OAUTH_CLIENT_ID,
            issuers=settings.OAUTH_ISSUERS,
            jwks_url=settings.OAUTH_JWKS_URL,
            cache_seconds=settings.JWKS_CACHE_SECONDS,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    def clear_cache(self) -> None:
        self._cache.clear()

    def verify(self, token: str) -> dict[str, Any]:
        """
        Verify an ID token and return its claims.

        Validates:
        - Signature (RS256) via the JWKS key named by the header ``kid``
        - exp / iat / nbf claims
        - Issuer is one of the configured issuers
        - Audience is the configured OAuth client id

        Raises:
            MalformedTokenError: the token header is not decodable
            JWKSFetchError: the key set could not be fetched
            TokenExpiredError, InvalidSignatureError, IssuerMismatchError,
            AudienceMismatchError, InvalidTokenError: the token is not acceptable
        """
        if not self.client_id:
            raise VerifierNotConfiguredError("OAUTH_CLIENT_ID not configured")

        # Decode header to get kid (without verifying signature yet)
        try:
            unverified_header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise MalformedTokenError(f"Invalid token header: {e}") from e

        kid = unverified_header.get("kid")
        if not kid:
            raise InvalidTokenError("Token header missing 'kid' claim")

        signing_key = self._cache.get_signing_key(kid)

        try:
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=self.issuers,
                # Google ID tokens carry at_hash but we never receive the access token here.
                options={"verify_at_hash": False},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.JWTClaimsError as e:
            error_msg = str(e).lower()
            if "issuer" in error_msg:
                raise IssuerMismatchError(f"Issuer mismatch: {e}") from e
            if "audience" in error_msg:
                raise AudienceMismatchError(f"Audience mismatch: {e}") from e
            raise InvalidTokenError(f"Claims validation failed: {e}") from e
        except JWTError as e:
            raise InvalidSignatureError(f"Signature verification failed: {e}") from e

        if not claims.get("sub"):
            raise InvalidTokenError("Token missing subject")

        return claims
