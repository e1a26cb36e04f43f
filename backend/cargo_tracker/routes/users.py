from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from cargo_tracker.auth.oauth import (
    EXCHANGE_REFRESH_ATTEMPT,
    ProfileFetchError,
    authorize_url,
    exchange_code,
    fetch_profile,
    new_state,
)
from cargo_tracker.core.config import Settings
from cargo_tracker.core.errors import UpstreamError, ValidationError
from cargo_tracker.dependencies.content import require_json_accept
from cargo_tracker.dependencies.store import get_base_url, get_settings, get_store
from cargo_tracker.models.user import User
from cargo_tracker.schemas.user import ProfileOut
from cargo_tracker.services import users as user_service
from cargo_tracker.store.base import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(require_json_accept)])

STATE_COOKIE = "state"
STATE_MISMATCH = "The state returned by the identity provider does not match the state we sent."
ATTEMPTED_REFRESH = "This sign-in link has already been used. Please start the sign-in again."
PROVIDER_FAILED = "The identity provider could not complete the sign-in. Please try again."

NOT_REGISTERED_REDIRECT = "/?e=2"
ALREADY_REGISTERED_REDIRECT = "/?e=1"


def _redirect_uri(request: Request) -> str:
    return str(request.url.replace(query=""))


def _redirect_to_provider(request: Request, settings: Settings) -> RedirectResponse:
    state = request.cookies.get(STATE_COOKIE) or new_state()
    response = RedirectResponse(authorize_url(settings, _redirect_uri(request), state), status_code=303)
    if STATE_COOKIE not in request.cookies:
        response.set_cookie(STATE_COOKIE, state, httponly=True, samesite="lax")
    return response


def _complete_handshake(request: Request, settings: Settings, code: str, state: str | None) -> ProfileOut:
    """Check the anti-forgery state, exchange the code and read the profile."""
    sent_state = request.cookies.get(STATE_COOKIE)
    if not sent_state or state != sent_state:
        raise ValidationError(STATE_MISMATCH)

    result = exchange_code(settings, code, _redirect_uri(request))
    if result.kind == EXCHANGE_REFRESH_ATTEMPT:
        raise ValidationError(ATTEMPTED_REFRESH)
    if not result.ok:
        raise UpstreamError(PROVIDER_FAILED)

    try:
        profile = fetch_profile(settings, result.access_token)
    except ProfileFetchError as exc:
        logger.error("Sign-in profile lookup failed: %s", exc)
        raise UpstreamError(PROVIDER_FAILED) from exc

    return ProfileOut(id_token=result.id_token, **profile)


@router.get("/login")
def login(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    if not code:
        return _redirect_to_provider(request, settings)

    profile = _complete_handshake(request, settings, code, state)
    if not user_service.is_registered(store, profile.sub):
        return RedirectResponse(NOT_REGISTERED_REDIRECT, status_code=303)
    return profile.model_dump()


@router.get("/signup")
def signup(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    if not code:
        return _redirect_to_provider(request, settings)

    profile = _complete_handshake(request, settings, code, state)
    if user_service.is_registered(store, profile.sub):
        return RedirectResponse(ALREADY_REGISTERED_REDIRECT, status_code=303)

    user_service.create_user(store, User.from_profile(profile.model_dump()))
    return JSONResponse(status_code=201, content=profile.model_dump())


@router.get("")
def list_users(
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    users = [u.to_wire(base_url) for u in user_service.list_users(store, base_url)]
    users.append({"totalUsers": user_service.count_users(store)})
    return users


@router.get("/{user_id}")
def get_user(
    user_id: str,
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    user = user_service.require_user(store, user_service.parse_user_key(user_id), base_url)
    return user.to_wire(base_url)
