# cargo_tracker/models/boat.py
"""
Boat entity.

Stored document: {name, type, length, owner, loads: [Load key, ...]}
Wire format:     {id, name, type, length, owner, loads: [{id, self}], self}
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from cargo_tracker.models.fields import InvalidNumber, coerce_int, has_all_fields
from cargo_tracker.models.links import boat_url, load_url
from cargo_tracker.schemas.boat import BoatOut, LoadSummary
from cargo_tracker.schemas.load import CarrierSummary
from cargo_tracker.store.base import Entity, StoreKey, key_equals


@dataclass
class Boat:
    REQUIRED_FIELDS = ("name", "type", "length")
    UPDATABLE_FIELDS = REQUIRED_FIELDS

    name: Any
    type: Any
    length: int | InvalidNumber | None
    owner: str
    loads: list[StoreKey] = field(default_factory=list)
    key: StoreKey | None = None
    self_url: str | None = None

    @classmethod
    def from_request(cls, fields: Mapping[str, Any], owner: str) -> Boat:
        """A new, unsaved boat. The owner always comes from the authenticated subject."""
        return cls(
            name=fields.get("name"),
            type=fields.get("type"),
            length=coerce_int(fields.get("length")),
            owner=owner,
            loads=[],
        )

    @classmethod
    def from_entity(cls, entity: Entity, base_url: str | None = None) -> Boat:
        return cls(
            name=entity.data.get("name"),
            type=entity.data.get("type"),
            length=coerce_int(entity.data.get("length")),
            owner=entity.data.get("owner"),
            loads=list(entity.data.get("loads") or []),
            key=entity.key,
            self_url=boat_url(base_url, entity.key) if base_url else None,
        )

    @property
    def id(self) -> str | None:
        return str(self.key.id) if self.key else None

    @classmethod
    def has_all_fields(cls, fields: Mapping[str, Any]) -> bool:
        return has_all_fields(fields, cls.REQUIRED_FIELDS)

    def update_fields(self, fields: Mapping[str, Any]) -> bool:
        """
        Apply the recognised attributes in ``fields``.

        Returns False, without touching the boat, when nothing applies.
        """
        applicable = [name for name in fields if name in self.UPDATABLE_FIELDS]
        if not applicable:
            return False
        for name in applicable:
            setattr(self, name, fields[name])
        self.length = coerce_int(self.length)
        return True

    def update_all_fields(self, fields: Mapping[str, Any]) -> bool:
        """Full replacement. Every required attribute must be present or nothing changes."""
        if not self.has_all_fields(fields):
            return False
        return self.update_fields(fields)

    def carries(self, load_key: StoreKey) -> bool:
        return any(key_equals(k, load_key) for k in self.loads)

    def add_load(self, load_key: StoreKey) -> None:
        self.loads.append(load_key)

    def remove_load(self, load_key: StoreKey) -> None:
        self.loads = [k for k in self.loads if not key_equals(k, load_key)]

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "length": self.length,
            "owner": self.owner,
            "loads": list(self.loads),
        }

    def to_entity(self) -> Entity:
        if self.key is None:
            raise ValueError("Boat has no key yet")
        return Entity(key=self.key, data=self.to_document())

    def to_wire(self, base_url: str) -> dict[str, Any]:
        out = BoatOut(
            id=self.id,
            name=self.name,
            type=self.type,
            length=self.length,
            owner=self.owner,
            loads=[LoadSummary(id=str(k.id), self_url=load_url(base_url, k)) for k in self.loads],
            self_url=self.self_url or boat_url(base_url, self.key),
        )
        return out.model_dump(by_alias=True)

    def summary(self, base_url: str) -> CarrierSummary:
        """Boat as seen from one of its loads: {id, name, self}."""
        return CarrierSummary(id=self.id, name=self.name, self_url=boat_url(base_url, self.key))
