from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CarrierSummary(BaseModel):
    id: str
    name: str
    self_url: str = Field(serialization_alias="self")


class LoadOut(BaseModel):
    id: str
    volume: int
    carrier: Optional[CarrierSummary] = None
    content: str
    creation_date: str
    self_url: str = Field(serialization_alias="self")


class LoadDetailOut(BaseModel):
    """A load as listed under its boat: the carrier is implied, so it is left out."""

    id: str
    volume: int
    content: str
    creation_date: str
    self_url: str = Field(serialization_alias="self")
