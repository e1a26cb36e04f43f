from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from cargo_tracker.models.fields import has_all_fields
from cargo_tracker.models.links import user_url
from cargo_tracker.schemas.user import UserOut
from cargo_tracker.store.base import Entity, StoreKey


@dataclass
class User:
    """A registered account. Written once at signup and never updated."""

    REQUIRED_FIELDS = ("sub", "firstName", "lastName")

    sub: str
    firstName: str
    lastName: str
    key: StoreKey | None = None
    self_url: str | None = None

    @classmethod
    def from_profile(cls, profile: Mapping[str, Any]) -> User:
        if not has_all_fields(profile, cls.REQUIRED_FIELDS):
            raise ValueError("Profile is missing sub, firstName or lastName")
        return cls(
            sub=str(profile["sub"]),
            firstName=str(profile["firstName"]),
            lastName=str(profile["lastName"]),
        )

    @classmethod
    def from_entity(cls, entity: Entity, base_url: str | None = None) -> User:
        return cls(
            sub=entity.data.get("sub"),
            firstName=entity.data.get("firstName") or "",
            lastName=entity.data.get("lastName") or "",
            key=entity.key,
            self_url=user_url(base_url, entity.key) if base_url else None,
        )

    @property
    def id(self) -> str | None:
        return str(self.key.id) if self.key else None

    def to_document(self) -> dict[str, Any]:
        return {"sub": self.sub, "firstName": self.firstName, "lastName": self.lastName}

    def to_entity(self) -> Entity:
        if self.key is None:
            raise ValueError("User has no key yet")
        return Entity(key=self.key, data=self.to_document())

    def to_wire(self, base_url: str) -> dict[str, Any]:
        out = UserOut(
            id=self.id,
            sub=self.sub,
            firstName=self.firstName,
            lastName=self.lastName,
            self_url=self.self_url or user_url(base_url, self.key),
        )
        return out.model_dump(by_alias=True)
