from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from cargo_tracker.auth.google import (
    GoogleTokenVerifier,
    JWKSFetchError,
    MalformedTokenError,
    TokenExpiredError,
    TokenVerificationError,
    VerifierNotConfiguredError,
)
from cargo_tracker.auth.identity import MALFORMED_TOKEN, Identity
from cargo_tracker.services.users import is_registered
from cargo_tracker.store.base import DocumentStore, DocumentStoreError

logger = logging.getLogger(__name__)

PROVIDER_UNAVAILABLE = "Unable to reach the identity provider to verify your token. Please try again."
STORE_UNAVAILABLE = "The data store is unavailable. Please try again."


def bearer_token(header: str | None) -> str | None:
    """
    The token from ``Authorization: Bearer <token>``.

    The scheme is matched case-insensitively and the header must be exactly
    two space-separated parts; anything else counts as no token.
    """
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]


def resolve_identity(verifier: GoogleTokenVerifier, store: DocumentStore, token: str) -> Identity:
    """
    Verify ``token`` and look its subject up in the User collection.

    Token problems collapse to an unauthenticated identity. JWKSFetchError and
    DocumentStoreError propagate so the caller can answer 502 / 503.
    """
    try:
        claims = verifier.verify(token)
    except MalformedTokenError as exc:
        logger.info("Rejected malformed token: %s", exc)
        return Identity.unauthenticated(MALFORMED_TOKEN)
    except JWKSFetchError:
        raise
    except TokenExpiredError:
        logger.info("ID token expired")
        return Identity.unauthenticated()
    except VerifierNotConfiguredError as exc:
        logger.warning("Token verification is not configured: %s", exc)
        return Identity.unauthenticated()
    except TokenVerificationError as exc:
        logger.info("Rejected ID token: %s", exc)
        return Identity.unauthenticated()

    sub = str(claims["sub"])
    return Identity.verified(sub, registered=is_registered(store, sub), raw_claims=claims)


def register_identity_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def identity_middleware(request: Request, call_next):
        """
        Tag every request with an Identity.

        Never rejects a request for lack of a token; route dependencies decide
        what they require. The only early answers are provider (502) and store
        (503) failures while resolving a token that was sent.
        """
        request.state.identity = Identity.unauthenticated()

        # Allow CORS preflight to flow through CORSMiddleware unchanged
        if request.method.upper() == "OPTIONS":
            return await call_next(request)

        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            return await call_next(request)

        verifier = request.app.state.token_verifier
        store = request.app.state.store
        try:
            identity = await run_in_threadpool(resolve_identity, verifier, store, token)
        except JWKSFetchError as exc:
            logger.error("JWKS unavailable: %s", exc)
            return JSONResponse(status_code=502, content={"Error": PROVIDER_UNAVAILABLE})
        except DocumentStoreError as exc:
            logger.error("Registration lookup failed: %s", exc)
            return JSONResponse(status_code=503, content={"Error": STORE_UNAVAILABLE})

        logger.debug("Request identity: %s", identity.to_debug_dict())
        request.state.identity = identity
        return await call_next(request)
