from __future__ import annotations

import math
import re
from typing import Any, Mapping


NAME_PATTERN = re.compile(r"^[0-9a-zA-Z][0-9a-zA-Z ]{0,39}$")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
MAX_STORED_INT = 10**38 - 1


class InvalidNumber:
    """Marker left in an integer field when the client sent something that is not a number."""

    _instance: "InvalidNumber | None" = None

    def __new__(cls) -> "InvalidNumber":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INVALID_NUMBER"

    def __bool__(self) -> bool:
        return False


INVALID_NUMBER = InvalidNumber()


def coerce_int(value: Any) -> int | InvalidNumber | None:
    """
    Parse a base-10 integer the lenient way clients expect: "28", 28, 28.9 and
    "28ft" all give 28. Missing stays None; anything else becomes INVALID_NUMBER.
    """
    if value is None:
        return None
    if isinstance(value, InvalidNumber):
        return value
    if isinstance(value, bool):
        return INVALID_NUMBER
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return INVALID_NUMBER
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            try:
                return int(match.group(1), 10)
            except ValueError:
                # Past the interpreter's int digit limit.
                return INVALID_NUMBER
    return INVALID_NUMBER


def is_valid_int(value: Any) -> bool:
    """True for integers the store can keep exactly (DynamoDB numbers carry 38 digits)."""
    number = coerce_int(value)
    return isinstance(number, int) and abs(number) <= MAX_STORED_INT


def is_valid_name(value: Any) -> bool:
    return isinstance(value, str) and NAME_PATTERN.match(value) is not None


def has_all_fields(fields: Mapping[str, Any], required: tuple[str, ...]) -> bool:
    return all(fields.get(name) is not None for name in required)
