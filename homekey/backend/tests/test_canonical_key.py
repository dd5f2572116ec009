import re

import pytest

from app.domain.address import normalize_address_input
from app.domain.canonical_key import canonical_key, identity_values
from app.domain.errors import EmptyAddressIdentity


def _key(payload: dict) -> str:
    return canonical_key(normalize_address_input(payload))


def test_key_is_sha256_hex():
    k = _key({"street": "Gran Via", "city": "Barcelona", "postal_code": "08014", "country_code": "ES"})
    assert re.fullmatch(r"[0-9a-f]{64}", k)


def test_alias_spellings_share_a_key():
    a = _key({"street": "Gran Via", "city": "Barcelona", "zip": "08014", "country": "Spain"})
    b = _key({"calle": "Gran Via", "ciudad": "Barcelona", "postalCode": "08014", "countryCode": "es"})
    assert a == b


def test_case_and_whitespace_do_not_matter():
    a = _key({"street": "Gran Via", "city": "Barcelona", "zip": "08014", "country_code": "ES"})
    b = _key({"street": "  GRAN VIA ", "city": "barcelona", "zip": " 08014", "country_code": "es"})
    assert a == b


def test_different_city_changes_key():
    a = _key({"street": "Main St", "city": "Springfield", "zip": "00001", "country_code": "US"})
    b = _key({"street": "Main St", "city": "Shelbyville", "zip": "00001", "country_code": "US"})
    assert a != b


def test_unit_is_part_of_identity():
    base = {"street": "Main St", "number": "10", "city": "Springfield", "zip": "00001", "country_code": "US"}
    assert _key(base) != _key({**base, "apt": "4B"})


def test_non_identity_fields_are_ignored():
    base = {"street": "Main St", "city": "Springfield", "zip": "00001", "country_code": "US"}
    noisy = {
        **base,
        "coordinates": [-89.65, 39.78],
        "floor": "2",
        "neighborhood": "Downtown",
        "line1": "Rear entrance",
        "extras": {"gate": "blue"},
    }
    assert _key(base) == _key(noisy)


def test_identity_values_skip_blanks_in_key_order():
    values = identity_values({"city": "Madrid", "street": "Calle Mayor", "unit": "  ", "country_code": "ES"})
    assert values == ["calle mayor", "madrid", "es"]


def test_empty_identity_raises():
    with pytest.raises(EmptyAddressIdentity):
        canonical_key({})
    with pytest.raises(EmptyAddressIdentity):
        canonical_key({"street": "   ", "floor": "3"})
