from __future__ import annotations

from fastapi import Depends, Request

from cargo_tracker.auth.identity import Identity
from cargo_tracker.core.errors import Forbidden, Unauthenticated, ValidationError

INVALID_JWT = "The JWT you submitted was invalid."
MUST_REGISTER = "You must register before using this endpoint."


def get_identity(request: Request) -> Identity:
    """The identity the middleware attached; unauthenticated if it never ran."""
    return getattr(request.state, "identity", None) or Identity.unauthenticated()


def require_authenticated(identity: Identity = Depends(get_identity)) -> Identity:
    """
    Validates:
      - a bearer token was sent and verified
    Raises:
      - 400 if the token could not even be decoded
      - 401 otherwise
    """
    if identity.is_authenticated:
        return identity
    if identity.token_malformed:
        raise ValidationError(INVALID_JWT)
    raise Unauthenticated()


def require_registered(identity: Identity = Depends(require_authenticated)) -> Identity:
    if not identity.is_registered:
        raise Forbidden(MUST_REGISTER)
    return identity
