# cargo_tracker/dependencies/content.py
"""
Content negotiation for the JSON API.

- require_json_accept: 406 unless the client accepts application/json
- json_body(allowed): 415 for non-JSON bodies, 400 for malformed JSON or
  attributes the endpoint does not know. Keys are lower-cased first.
"""
from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Iterable

from fastapi import Request

from cargo_tracker.core.errors import NotAcceptable, UnsupportedMediaType, ValidationError

NOT_ACCEPTABLE = (
    "This endpoint only supports a Content-Type of application/json, "
    "please check your HTTP Accept headers."
)
MALFORMED_JSON = (
    "A Content-Type of application/json was specified in the header but "
    "there was a Syntax Error in the body of the request."
)
NOT_AN_OBJECT = "The request body must be a JSON object."

_JSON_RANGES = {"application/json", "application/*", "*/*"}


def _media_type(value: str) -> str:
    return value.split(";", 1)[0].strip().lower()


def _quality(range_: str) -> float:
    for param in range_.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "q":
            try:
                return float(value.strip())
            except ValueError:
                return 0.0
    return 1.0


def accepts_json(accept: str | None) -> bool:
    """A missing or empty Accept header means anything goes."""
    if not accept or not accept.strip():
        return True
    for range_ in accept.split(","):
        media = _media_type(range_)
        if (media in _JSON_RANGES or media.endswith("+json")) and _quality(range_) > 0:
            return True
    return False


def is_json_content_type(content_type: str | None) -> bool:
    media = _media_type(content_type or "")
    return media == "application/json" or media.endswith("+json")


def require_json_accept(request: Request) -> None:
    if not accepts_json(request.headers.get("accept")):
        raise NotAcceptable(NOT_ACCEPTABLE)


def unknown_attribute(key: str) -> str:
    return f"{key} is not a valid property for this endpoint. Check your request body for extra attributes."


def json_body(allowed: Iterable[str]) -> Callable[[Request], Awaitable[dict[str, Any]]]:
    """Build a dependency that parses the body into a dict restricted to ``allowed`` keys."""
    allowed_keys = frozenset(allowed)

    async def parse_json_body(request: Request) -> dict[str, Any]:
        content_type = request.headers.get("content-type")
        raw = await request.body()

        if not raw.strip() and not content_type:
            return {}
        if not is_json_content_type(content_type):
            raise UnsupportedMediaType(f"Content-Type of {content_type} is not supported by this endpoint.")

        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            raise ValidationError(MALFORMED_JSON)
        if not isinstance(data, dict):
            raise ValidationError(NOT_AN_OBJECT)

        fields = {str(key).lower(): value for key, value in data.items()}
        for key in fields:
            if key not in allowed_keys:
                raise ValidationError(unknown_attribute(key))
        return fields

    return parse_json_body
