from __future__ import annotations

from pydantic import BaseModel, Field


class UserOut(BaseModel):
    id: str
    sub: str
    firstName: str
    lastName: str
    self_url: str = Field(serialization_alias="self")


class ProfileOut(BaseModel):
    """What the login/signup handshake hands back to the browser."""

    sub: str
    firstName: str
    lastName: str
    id_token: str | None = None
