import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.domain.errors import AddressNotFound, MissingCoordinates, MissingRequiredField, PropertyAddressStateError
from app.models import Address, Property
from app.service_layer.property_addresses import (
    EmbeddedAddress,
    ReferencedAddress,
    address_state,
    create_property,
    get_property,
    property_view,
    update_property,
)


def _listing(**overrides) -> dict:
    data = {
        "title": "Sunny flat",
        "address": {"street": "Gran Via", "city": "Barcelona", "zipCode": "08014", "country": "Spain"},
        "location": {"type": "Point", "coordinates": [2.17, 41.38]},
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_create_property_references_canonical_address(session):
    prop = await create_property(session, _listing(showAddressNumber=False))
    await session.commit()

    assert prop.address_id is not None
    assert prop.embedded_address is None

    view = property_view(prop)
    assert view["showAddressNumber"] is False
    assert view["addressId"] == prop.address_id
    addr = view["address"]
    assert addr["id"] == prop.address_id
    assert addr["postal_code"] == "08014"
    assert addr["zipCode"] == "08014"
    assert addr["countryCode"] == "ES"
    assert addr["coordinates"] == {"type": "Point", "coordinates": [2.17, 41.38]}
    assert addr["fullAddress"] == "Gran Via, Barcelona, 08014"
    assert addr["location"] == "Barcelona, Spain"
    # defaulted fields are still present
    assert addr["address_lines"] == []
    assert addr["land_plot"] == {}
    assert addr["unit"] is None


@pytest.mark.asyncio
async def test_listings_share_one_address(session):
    p1 = await create_property(session, _listing(showAddressNumber=False))
    p2 = await create_property(
        session,
        _listing(
            title="Room",
            address={"calle": "GRAN VIA", "ciudad": "barcelona", "cp": "08014", "pais": "Spain"},
            location=None,
            coordinates=[2.171, 41.381],
        ),
    )
    await session.commit()

    assert p1.address_id == p2.address_id
    assert (p1.show_address_number, p2.show_address_number) == (False, True)
    count = (await session.execute(select(func.count()).select_from(Address))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_create_property_by_address_id(session):
    first = await create_property(session, _listing())
    second = await create_property(session, {"title": "Same building", "addressId": first.address_id})
    await session.commit()
    assert second.address_id == first.address_id


@pytest.mark.asyncio
async def test_create_property_unknown_address_id(session):
    with pytest.raises(AddressNotFound) as ei:
        await create_property(session, {"title": "Ghost", "address_id": 999})
    assert ei.value.address_id == 999


@pytest.mark.asyncio
async def test_create_property_without_address(session):
    with pytest.raises(MissingRequiredField):
        await create_property(session, {"title": "Nowhere"})


@pytest.mark.asyncio
async def test_create_property_without_coordinates_stores_nothing(session):
    with pytest.raises(MissingCoordinates):
        await create_property(session, _listing(location=None))
    assert (await session.execute(select(func.count()).select_from(Property))).scalar_one() == 0
    assert (await session.execute(select(func.count()).select_from(Address))).scalar_one() == 0


@pytest.mark.asyncio
async def test_view_of_unresolved_reference(async_session_maker):
    async with async_session_maker() as s:
        prop = await create_property(s, _listing())
        await s.commit()
        prop_id, address_id = prop.id, prop.address_id

    async with async_session_maker() as s:
        loaded = await get_property(s, prop_id, resolve=False)
        state = address_state(loaded)
        assert state == ReferencedAddress(address_id=address_id, address=None)

        view = property_view(loaded, include_address_id=False)
        assert "address" not in view
        assert view["addressId"] == address_id


@pytest.mark.asyncio
async def test_view_of_resolved_reference_can_hide_address_id(async_session_maker):
    async with async_session_maker() as s:
        prop = await create_property(s, _listing())
        await s.commit()
        prop_id = prop.id

    async with async_session_maker() as s:
        loaded = await get_property(s, prop_id)
        view = property_view(loaded, include_address_id=False)
        assert "addressId" not in view
        assert view["address"]["street"] == "Gran Via"


@pytest.mark.asyncio
async def test_view_of_embedded_property(session):
    embedded = {"street": "123 Main St", "city": "Birmingham", "zipCode": "48009", "showAddressNumber": True}
    prop = Property(title="Legacy", embedded_address=embedded)
    session.add(prop)
    await session.commit()

    assert address_state(prop) == EmbeddedAddress(data=embedded)
    view = property_view(prop)
    assert view["address"] == embedded
    assert "addressId" not in view


@pytest.mark.asyncio
async def test_update_replaces_embedded_address(async_session_maker):
    async with async_session_maker() as s:
        legacy = Property(title="Legacy", embedded_address={"street": "Gran Via", "city": "Barcelona"})
        s.add(legacy)
        await s.commit()
        prop_id = legacy.id

    async with async_session_maker() as s:
        prop = await get_property(s, prop_id)
        await update_property(s, prop, {**_listing(), "title": "Renamed", "show_address_number": False})
        await s.commit()

    async with async_session_maker() as s:
        prop = await get_property(s, prop_id)
        assert prop.embedded_address is None
        assert prop.title == "Renamed"
        assert prop.show_address_number is False
        assert isinstance(address_state(prop), ReferencedAddress)
        assert property_view(prop)["address"]["city"] == "Barcelona"


@pytest.mark.asyncio
async def test_update_without_address_keeps_reference(session):
    prop = await create_property(session, _listing())
    address_id = prop.address_id
    await update_property(session, prop, {"title": "Only the title"})
    await session.commit()
    assert prop.address_id == address_id


def test_address_state_rejects_both_and_neither():
    both = Property(id=1, address_id=5, embedded_address={"street": "Gran Via"})
    with pytest.raises(PropertyAddressStateError):
        address_state(both)

    neither = Property(id=2)
    with pytest.raises(PropertyAddressStateError):
        address_state(neither)


@pytest.mark.asyncio
async def test_database_refuses_both_shapes(session):
    prop = await create_property(session, _listing())
    await session.commit()

    session.add(Property(title="Broken", address_id=prop.address_id, embedded_address={"street": "Gran Via"}))
    with pytest.raises(IntegrityError):
        await session.commit()
