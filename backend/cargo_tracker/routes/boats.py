from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from cargo_tracker.auth.identity import Identity
from cargo_tracker.core.config import Settings
from cargo_tracker.core.errors import MethodNotAllowed, Unauthenticated
from cargo_tracker.dependencies.auth import get_identity, require_authenticated, require_registered
from cargo_tracker.dependencies.content import json_body, require_json_accept
from cargo_tracker.dependencies.store import get_base_url, get_settings, get_store
from cargo_tracker.models.boat import Boat
from cargo_tracker.models.links import BOATS, boat_url
from cargo_tracker.services import boats as boat_service
from cargo_tracker.services import loads as load_service
from cargo_tracker.services import relationships
from cargo_tracker.services.pagination import next_link, paginate, parse_page, with_sentinels
from cargo_tracker.store.base import DocumentStore

router = APIRouter(prefix="/boats", tags=["boats"], dependencies=[Depends(require_json_accept)])

boat_body = json_body(Boat.UPDATABLE_FIELDS)


@router.post("", status_code=201)
def create_boat(
    identity: Identity = Depends(require_registered),
    fields: dict[str, Any] = Depends(boat_body),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    boat = boat_service.create_boat(store, fields, owner=identity.sub)
    return boat.to_wire(base_url)


@router.get("")
def list_boats(
    page: str | None = None,
    identity: Identity = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    base_url: str = Depends(get_base_url),
):
    """
    Authenticated callers see their own boats. Anyone else gets the public
    listing of every boat, if it is enabled.
    """
    if identity.is_authenticated:
        owner = identity.sub
    elif settings.BOATS_PUBLIC_LISTING:
        owner = None
    else:
        raise Unauthenticated()

    page_number = parse_page(page)
    query = boat_service.boats_query(owner)
    entities, has_next = paginate(store, query, page_number, settings.BOATS_PAGE_SIZE)

    entries = [Boat.from_entity(e, base_url).to_wire(base_url) for e in entities]
    return with_sentinels(
        entries,
        next_url=next_link(base_url, BOATS, page_number) if has_next else None,
        totals={"totalBoats": boat_service.count_boats(store, owner)},
    )


@router.api_route("", methods=["PUT", "PATCH", "DELETE"], include_in_schema=False)
def boats_collection_not_allowed():
    raise MethodNotAllowed(["GET", "POST"])


@router.get("/{boat_id}")
def get_boat(
    boat_id: str,
    identity: Identity = Depends(require_authenticated),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    boat = boat_service.require_boat(store, boat_service.parse_boat_key(boat_id), base_url)
    boat_service.require_owner(boat, identity.sub)
    return boat.to_wire(base_url)


@router.get("/{boat_id}/loads")
def list_boat_loads(
    boat_id: str,
    identity: Identity = Depends(require_authenticated),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    boat = boat_service.require_boat(store, boat_service.parse_boat_key(boat_id), base_url)
    boat_service.require_owner(boat, identity.sub)
    return [load.to_wire_without_carrier(base_url) for load in load_service.loads_on_boat(store, boat, base_url)]


@router.patch("/{boat_id}")
def patch_boat(
    boat_id: str,
    identity: Identity = Depends(require_registered),
    fields: dict[str, Any] = Depends(boat_body),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    boat = boat_service.require_boat(store, boat_service.parse_boat_key(boat_id), base_url)
    boat_service.require_owner(boat, identity.sub)
    boat_service.update_boat(store, boat, fields, replace=False)
    return boat.to_wire(base_url)


@router.put("/{boat_id}", status_code=303)
def put_boat(
    boat_id: str,
    identity: Identity = Depends(require_registered),
    fields: dict[str, Any] = Depends(boat_body),
    store: DocumentStore = Depends(get_store),
    base_url: str = Depends(get_base_url),
):
    boat = boat_service.require_boat(store, boat_service.parse_boat_key(boat_id), base_url)
    boat_service.require_owner(boat, identity.sub)
    boat_service.update_boat(store, boat, fields, replace=True)
    return Response(status_code=303, headers={"Location": boat_url(base_url, boat.key)})


@router.delete("/{boat_id}", status_code=204)
def delete_boat(
    boat_id: str,
    identity: Identity = Depends(require_authenticated),
    store: DocumentStore = Depends(get_store),
):
    boat = boat_service.require_boat(store, boat_service.parse_boat_key(boat_id))
    boat_service.require_owner(boat, identity.sub)
    boat_service.delete_boat(store, boat)
    return Response(status_code=204)


@router.put("/{boat_id}/loads/{load_id}", status_code=204)
def add_load_to_boat(
    boat_id: str,
    load_id: str,
    identity: Identity = Depends(require_authenticated),
    store: DocumentStore = Depends(get_store),
):
    relationships.link(
        store,
        boat_service.parse_boat_key(boat_id),
        load_service.parse_load_key(load_id),
        identity.sub,
    )
    return Response(status_code=204)


@router.delete("/{boat_id}/loads/{load_id}", status_code=204)
def remove_load_from_boat(
    boat_id: str,
    load_id: str,
    identity: Identity = Depends(require_authenticated),
    store: DocumentStore = Depends(get_store),
):
    relationships.unlink(
        store,
        boat_service.parse_boat_key(boat_id),
        load_service.parse_load_key(load_id),
        identity.sub,
    )
    return Response(status_code=204)
