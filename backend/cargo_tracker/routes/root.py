from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from cargo_tracker.auth.oauth import new_state
from cargo_tracker.dependencies.store import get_base_url
from cargo_tracker.routes.users import STATE_COOKIE

router = APIRouter(tags=["root"])

SIGN_IN_ERRORS = {
    "1": "You are already registered. Please log in instead.",
    "2": "You are not registered yet. Please sign up first.",
}


@router.get("/")
def index(request: Request, e: str | None = None, base_url: str = Depends(get_base_url)):
    """Entry point of the sign-in flow. Hands out the anti-forgery state cookie."""
    body = {
        "login": f"{base_url}/users/login",
        "signup": f"{base_url}/users/signup",
    }
    if e in SIGN_IN_ERRORS:
        body["message"] = SIGN_IN_ERRORS[e]

    response = JSONResponse(content=body)
    state = request.cookies.get(STATE_COOKIE) or new_state()
    response.set_cookie(STATE_COOKIE, state, httponly=True, samesite="lax")
    return response
