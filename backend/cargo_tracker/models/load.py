from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from cargo_tracker.models.fields import InvalidNumber, coerce_int, has_all_fields
from cargo_tracker.models.links import load_url
from cargo_tracker.schemas.load import LoadDetailOut, LoadOut
from cargo_tracker.store.base import Entity, StoreKey

if TYPE_CHECKING:
    from cargo_tracker.models.boat import Boat


@dataclass
class Load:
    REQUIRED_FIELDS = ("volume", "content", "creation_date")
    UPDATABLE_FIELDS = REQUIRED_FIELDS

    volume: int | InvalidNumber | None
    content: Any
    creation_date: Any
    carrier: StoreKey | None = None
    key: StoreKey | None = None
    self_url: str | None = None

    @classmethod
    def from_request(cls, fields: Mapping[str, Any]) -> Load:
        """A new, unsaved load. New loads are never on a boat."""
        return cls(
            volume=coerce_int(fields.get("volume")),
            content=fields.get("content"),
            creation_date=fields.get("creation_date"),
            carrier=None,
        )

    @classmethod
    def from_entity(cls, entity: Entity, base_url: str | None = None) -> Load:
        return cls(
            volume=coerce_int(entity.data.get("volume")),
            content=entity.data.get("content"),
            creation_date=entity.data.get("creation_date"),
            carrier=entity.data.get("carrier"),
            key=entity.key,
            self_url=load_url(base_url, entity.key) if base_url else None,
        )

    @property
    def id(self) -> str | None:
        return str(self.key.id) if self.key else None

    @classmethod
    def has_all_fields(cls, fields: Mapping[str, Any]) -> bool:
        return has_all_fields(fields, cls.REQUIRED_FIELDS)

    def update_fields(self, fields: Mapping[str, Any]) -> bool:
        applicable = [name for name in fields if name in self.UPDATABLE_FIELDS]
        if not applicable:
            return False
        for name in applicable:
            setattr(self, name, fields[name])
        self.volume = coerce_int(self.volume)
        return True

    def update_all_fields(self, fields: Mapping[str, Any]) -> bool:
        if not self.has_all_fields(fields):
            return False
        return self.update_fields(fields)

    def to_document(self) -> dict[str, Any]:
        return {
            "volume": self.volume,
            "content": self.content,
            "creation_date": self.creation_date,
            "carrier": self.carrier,
        }

    def to_entity(self) -> Entity:
        if self.key is None:
            raise ValueError("Load has no key yet")
        return Entity(key=self.key, data=self.to_document())

    def to_wire(self, base_url: str, carrier: Boat | None = None) -> dict[str, Any]:
        """
        Wire format. ``carrier`` is the loaded carrier Boat, if any; only its
        {id, name, self} summary is emitted.
        """
        out = LoadOut(
            id=self.id,
            volume=self.volume,
            carrier=carrier.summary(base_url) if carrier is not None else None,
            content=self.content,
            creation_date=self.creation_date,
            self_url=self.self_url or load_url(base_url, self.key),
        )
        return out.model_dump(by_alias=True)

    def to_wire_without_carrier(self, base_url: str) -> dict[str, Any]:
        out = LoadDetailOut(
            id=self.id,
            volume=self.volume,
            content=self.content,
            creation_date=self.creation_date,
            self_url=self.self_url or load_url(base_url, self.key),
        )
        return out.model_dump(by_alias=True)
