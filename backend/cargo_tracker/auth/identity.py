# cargo_tracker/auth/identity.py
"""
Canonical request identity.

Built once per request by the identity middleware and read by the route
dependencies. It answers two questions: is the bearer token valid (and for
whom), and has that subject signed up.

The Identity object is INTERNAL ONLY and is never returned to clients.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MALFORMED_TOKEN = "malformed"


@dataclass(frozen=True)
class Identity:
    """
    Attributes:
        sub: The provider ``sub`` claim, or None when unauthenticated.
        is_authenticated: The token verified against the provider keys.
        is_registered: A User record exists for ``sub``.
        token_error: Set to ``"malformed"`` when a token was sent but could not
                     even be decoded. Everything else is plain unauthenticated.
        raw_claims: Verified claims, for logging only.
    """

    sub: str | None = None
    is_authenticated: bool = False
    is_registered: bool = False
    token_error: str | None = None
    raw_claims: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def unauthenticated(cls, token_error: str | None = None) -> Identity:
        return cls(token_error=token_error)

    @classmethod
    def verified(cls, sub: str, *, registered: bool = False, raw_claims: dict[str, Any] | None = None) -> Identity:
        return cls(
            sub=sub,
            is_authenticated=True,
            is_registered=registered,
            raw_claims=raw_claims or {},
        )

    @property
    def token_malformed(self) -> bool:
        return self.token_error == MALFORMED_TOKEN

    def to_debug_dict(self) -> dict[str, Any]:
        return {
            "sub": self.sub,
            "is_authenticated": self.is_authenticated,
            "is_registered": self.is_registered,
            "token_error": self.token_error,
        }
