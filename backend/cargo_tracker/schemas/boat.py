from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class LoadSummary(BaseModel):
    id: str
    self_url: str = Field(serialization_alias="self")


class BoatOut(BaseModel):
    id: str
    name: str
    type: str
    length: int
    owner: str
    loads: List[LoadSummary] = []
    self_url: str = Field(serialization_alias="self")
