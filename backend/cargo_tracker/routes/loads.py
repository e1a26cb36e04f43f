from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from cargo_tracker.auth.identity import Identity
from cargo_tracker.core.config import Settings
from cargo_tracker.core.errors import MethodNotAllowed
from cargo_tracker.dependencies.auth import require_authenticated, require_registered
from cargo_tracker.dependencies.content import json_body, require_json_accept
from cargo_tracker.dependencies.store import get_base_url, get_settings, get_store
from cargo_tracker.models.links import LOADS, load_url
from cargo_tracker.models.load import Load
from cargo_tracker.services import loads as load_service
from cargo_tracker.services.pagination import next_link, paginate, parse_page, with_sentinels
from cargo_tracker.store.base import DocumentStore

router = APIRouter(prefix="/loads", tags=["loads"], dependencies=[Depends(require_json_accept)])

load_body = json_body(Load.UPDATABLE_FIELDS)


@router.post("", status_code=201)
def create_load(
    identity: Identity = Depends(require_registered),
    fields: dict[str, Any] = Depends(load_body),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    load = load_service.create_load(store, fields)
    return load.to_wire(base_url)


@router.get("")
def list_loads(
    page: str | None = None,
    identity: Identity = Depends(require_authenticated),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    base_url: str = Depends(get_base_url),
):
    page_number = parse_page(page)
    entities, has_next = paginate(store, load_service.loads_query(), page_number, settings.LOADS_PAGE_SIZE)

    entries = []
    for entity in entities:
        load = Load.from_entity(entity, base_url)
        entries.append(load.to_wire(base_url, carrier=load_service.get_carrier(store, load)))

    return with_sentinels(
        entries,
        next_url=next_link(base_url, LOADS, page_number) if has_next else None,
        totals={"totalLoads": load_service.count_loads(store)},
    )


@router.api_route("", methods=["PUT", "PATCH", "DELETE"], include_in_schema=False)
def loads_collection_not_allowed():
    raise MethodNotAllowed(["GET", "POST"])


@router.get("/{load_id}")
def get_load(
    load_id: str,
    identity: Identity = Depends(require_authenticated),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    load = load_service.require_load(store, load_service.parse_load_key(load_id), base_url)
    return load.to_wire(base_url, carrier=load_service.get_carrier(store, load))


@router.patch("/{load_id}")
def patch_load(
    load_id: str,
    identity: Identity = Depends(require_registered),
    fields: dict[str, Any] = Depends(load_body),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    load = load_service.require_load(store, load_service.parse_load_key(load_id), base_url)
    carrier = load_service.require_carrier_access(store, load, identity.sub)
    load_service.update_load(store, load, fields, replace=False)
    return load.to_wire(base_url, carrier=carrier)


@router.put("/{load_id}", status_code=303)
def put_load(
    load_id: str,
    identity: Identity = Depends(require_registered),
    fields: dict[str, Any] = Depends(load_body),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    load = load_service.require_load(store, load_service.parse_load_key(load_id), base_url)
    load_service.require_carrier_access(store, load, identity.sub)
    load_service.update_load(store, load, fields, replace=True)
    return Response(status_code=303, headers={"Location": load_url(base_url, load.key)})


@router.delete("/{load_id}", status_code=204)
def delete_load(
    load_id: str,
    identity: Identity = Depends(require_authenticated),
    store: DocumentStore = Depends(get_store),
):
    load = load_service.require_load(store, load_service.parse_load_key(load_id))
    carrier = load_service.require_carrier_access(store, load, identity.sub)
    load_service.delete_load(store, load, carrier)
    return Response(status_code=204)
