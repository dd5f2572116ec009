# app/service_layer/property_addresses.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Union

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.addresses import AddressRepository
from ..adapters.repos.properties import PropertyRepository
from ..config import settings
from ..domain.errors import AddressNotFound, MissingRequiredField, PropertyAddressStateError
from ..domain.parsing import get_first
from ..models import Address, Property
from ..schemas import AddressOut, GeoPoint, PropertyOut

log = logging.getLogger(__name__)


# -----------------------------
# Property address shapes
# -----------------------------
@dataclass(frozen=True)
class EmbeddedAddress:
    """Legacy row: address stored inline on the property."""

    data: dict[str, Any]


@dataclass(frozen=True)
class ReferencedAddress:
    """Current row: pointer to a canonical Address. `address` is None if not joined."""

    address_id: int
    address: Address | None = None


AddressState = Union[EmbeddedAddress, ReferencedAddress]


def address_state(prop: Property) -> AddressState:
    """
    Which shape this property is in. Raises PropertyAddressStateError for a
    row with both shapes or with neither.
    """
    has_ref = prop.address_id is not None
    has_embedded = prop.embedded_address is not None

    if has_ref and has_embedded:
        raise PropertyAddressStateError(
            f"property {prop.id} holds both an embedded address and address_id={prop.address_id}"
        )
    if has_embedded:
        return EmbeddedAddress(data=dict(prop.embedded_address))
    if not has_ref:
        raise PropertyAddressStateError(f"property {prop.id} has no address")

    resolved: Address | None = None
    if "canonical_address" not in inspect(prop).unloaded:
        resolved = prop.canonical_address
        if resolved is not None and resolved.id != prop.address_id:
            resolved = None
    return ReferencedAddress(address_id=prop.address_id, address=resolved)


# -----------------------------
# Read views
# -----------------------------
def address_view(address: Address) -> AddressOut:
    return AddressOut(
        id=address.id,
        street=address.street,
        number=address.number,
        unit=address.unit,
        building_name=address.building_name,
        block=address.block,
        floor=address.floor,
        city=address.city,
        state=address.state,
        postal_code=address.postal_code,
        country=address.country,
        country_code=address.country_code,
        neighborhood=address.neighborhood,
        district=address.district,
        address_lines=list(address.address_lines or []),
        land_plot=dict(address.land_plot or {}),
        extras=dict(address.extras or {}),
        coordinates=GeoPoint(coordinates=[address.longitude, address.latitude]),
        zipCode=address.postal_code,
        countryCode=address.country_code,
        fullAddress=address.full_address,
        location=address.location_label,
        created_at=address.created_at,
        updated_at=address.updated_at,
    )


def property_view(prop: Property, *, include_address_id: bool | None = None) -> dict[str, Any]:
    """
    API-facing dict for a property, with its address under the legacy
    top-level `address` key.

    - referenced + resolved: `address` is the canonical Address view
    - referenced, not resolved: no `address` key; `addressId` always present
    - embedded (not migrated yet): `address` is the stored embedded dict
    """
    include = settings.PROPERTY_VIEW_INCLUDE_ADDRESS_ID if include_address_id is None else include_address_id
    state = address_state(prop)

    fields: dict[str, Any] = {
        "id": prop.id,
        "title": prop.title,
        "showAddressNumber": True if prop.show_address_number is None else prop.show_address_number,
        "created_at": prop.created_at,
        "updated_at": prop.updated_at,
    }

    if isinstance(state, EmbeddedAddress):
        fields["address"] = state.data
    else:
        if state.address is not None:
            fields["address"] = address_view(state.address)
        if include or state.address is None:
            fields["addressId"] = state.address_id

    out = PropertyOut(**fields).model_dump(mode="json")
    # absent, not null, when not produced above
    for key in ("address", "addressId"):
        if key not in fields:
            out.pop(key, None)
    return out


# -----------------------------
# Writes
# -----------------------------
def _raw_address(data: Mapping[str, Any]) -> dict[str, Any] | None:
    raw = data.get("address")
    if not isinstance(raw, Mapping) or not raw:
        return None

    out = dict(raw)
    # clients send the point next to the address as `location` (GeoJSON) or `coordinates`
    if out.get("coordinates") is None and out.get("location") is None:
        point = get_first(data, "coordinates", "location")
        if point is not None:
            out["coordinates"] = point
    return out


def _show_address_number(data: Mapping[str, Any]) -> bool | None:
    v = get_first(data, "show_address_number", "showAddressNumber")
    return None if v is None else bool(v)


def _touches_address(data: Mapping[str, Any]) -> bool:
    return any(k in data for k in ("address", "address_id", "addressId"))


async def resolve_address_reference(session: AsyncSession, data: Mapping[str, Any]) -> Address:
    """
    Address for a property write. Raw `address` fields go through
    find_or_create; otherwise an `addressId` is taken as-is once it exists.
    Raw fields win when both are given.
    """
    addresses = AddressRepository(session)

    raw = _raw_address(data)
    if raw is not None:
        address, _ = await addresses.find_or_create(raw)
        return address

    ref = get_first(data, "address_id", "addressId")
    if ref is None:
        raise MissingRequiredField(["address"])

    address = await addresses.get(int(ref))
    if address is None:
        raise AddressNotFound(int(ref))
    return address


async def create_property(session: AsyncSession, data: Mapping[str, Any]) -> Property:
    """
    New property pointing at a canonical address. Does not commit.
    """
    address = await resolve_address_reference(session, data)
    show = _show_address_number(data)

    prop = Property(
        title=data.get("title"),
        show_address_number=True if show is None else show,
        address_id=address.id,
        embedded_address=None,
    )
    prop.canonical_address = address
    await PropertyRepository(session).add(prop)

    log.info("property created id=%s address_id=%s", prop.id, address.id)
    return prop


async def update_property(session: AsyncSession, prop: Property, data: Mapping[str, Any]) -> Property:
    """
    Apply a partial update. Any address input replaces the current shape
    (embedded or referenced) with a reference. Does not commit.
    """
    if "title" in data:
        prop.title = data["title"]

    show = _show_address_number(data)
    if show is not None:
        prop.show_address_number = show

    if _touches_address(data):
        address = await resolve_address_reference(session, data)
        prop.address_id = address.id
        prop.canonical_address = address
        prop.embedded_address = None

    await session.flush()
    return prop


async def get_property(session: AsyncSession, property_id: int, *, resolve: bool = True) -> Property | None:
    return await PropertyRepository(session).get(property_id, resolve_address=resolve)
