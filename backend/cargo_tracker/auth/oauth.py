from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx

from cargo_tracker.core.config import Settings

logger = logging.getLogger(__name__)

EXCHANGE_OK = "ok"
EXCHANGE_REFRESH_ATTEMPT = "refresh_attempt"
EXCHANGE_PROVIDER_ERROR = "provider_error"

# Google answers a reused or expired authorization code with 400 invalid_grant.
_REFRESH_ERRORS = {"invalid_grant"}


class ProfileFetchError(Exception):
    """Raised when the People API call fails or returns an unusable profile."""


@dataclass(frozen=True)
class TokenExchangeResult:
    kind: str
    tokens: dict[str, Any] = field(default_factory=dict)
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.kind == EXCHANGE_OK

    @property
    def access_token(self) -> str | None:
        return self.tokens.get("access_token")

    @property
    def id_token(self) -> str | None:
        return self.tokens.get("id_token")


def new_state() -> str:
    """Anti-forgery value for the OAuth round trip (32 random bytes, hex)."""
    return secrets.token_hex(32)


def authorize_url(settings: Settings, redirect_uri: str, state: str) -> str:
    params = {
        "client_id": settings.OAUTH_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": settings.OAUTH_SCOPE,
        "access_type": "online",
        "state": state,
    }
    return f"{settings.OAUTH_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(settings: Settings, code: str, redirect_uri: str) -> TokenExchangeResult:
    """
    Trade an authorization code for tokens.

    Never raises for provider or transport problems; the outcome is in
    ``TokenExchangeResult.kind``.
    """
    data = {
        "client_id": settings.OAUTH_CLIENT_ID,
        "client_secret": settings.OAUTH_CLIENT_SECRET,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": redirect_uri,
    }

    try:
        response = httpx.post(settings.OAUTH_TOKEN_URL, data=data, timeout=settings.HTTP_TIMEOUT_SECONDS)
    except httpx.HTTPError as exc:
        logger.error("Token exchange failed: %s", exc)
        return TokenExchangeResult(EXCHANGE_PROVIDER_ERROR, detail=str(exc))

    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    if response.status_code >= 400:
        error = str(payload.get("error") or "")
        if response.status_code == 400 and error in _REFRESH_ERRORS:
            logger.info("Authorization code rejected (%s); treating as refresh", error)
            return TokenExchangeResult(EXCHANGE_REFRESH_ATTEMPT, detail=error)
        logger.error("Token endpoint returned %s: %s", response.status_code, error or response.text[:200])
        return TokenExchangeResult(EXCHANGE_PROVIDER_ERROR, detail=error or f"HTTP {response.status_code}")

    if not payload.get("access_token"):
        logger.error("Token endpoint response had no access_token")
        return TokenExchangeResult(EXCHANGE_PROVIDER_ERROR, detail="missing access_token")

    return TokenExchangeResult(EXCHANGE_OK, tokens=payload)


def fetch_profile(settings: Settings, access_token: str) -> dict[str, str]:
    """
    Read the caller's name from the People API.

    Returns ``{"sub", "firstName", "lastName"}`` where ``sub`` is the profile
    source id, which matches the ID token subject.
    """
    try:
        response = httpx.get(
            settings.OAUTH_PROFILE_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise ProfileFetchError(f"Profile lookup failed: {exc}") from exc

    try:
        name = payload["names"][0]
        return {
            "sub": str(name["metadata"]["source"]["id"]),
            "firstName": name.get("givenName") or "",
            "lastName": name.get("familyName") or "",
        }
    except (KeyError, IndexError, TypeError) as exc:
        raise ProfileFetchError("Profile response has no usable name") from exc
