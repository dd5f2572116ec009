from app.domain.address import normalize_address_input, require_address_identity
from app.domain.countries import infer_country_code
from app.domain.errors import MissingRequiredField

import pytest


def test_postal_code_synonyms_map_to_one_field():
    for key in ("zip", "postcode", "postal_code", "zipCode", "codigo_postal"):
        out = normalize_address_input({key: "08001"})
        assert out == {"postal_code": "08001"}


def test_spanish_and_english_synonyms():
    out = normalize_address_input(
        {
            "calle": "Calle Mayor",
            "numero": 12,
            "piso": "3B",
            "torre": "A",
            "planta": "3",
            "ciudad": "Madrid",
            "provincia": "Madrid",
            "cp": "28013",
            "pais": "España",
        }
    )
    assert out == {
        "street": "Calle Mayor",
        "number": "12",
        "unit": "3B",
        "block": "A",
        "floor": "3",
        "city": "Madrid",
        "state": "Madrid",
        "postal_code": "28013",
        "country": "España",
        "country_code": "ES",
    }


def test_canonical_name_beats_synonyms():
    out = normalize_address_input({"zip": "11111", "postal_code": "22222", "postcode": "33333"})
    assert out["postal_code"] == "22222"


def test_earlier_synonym_beats_later_one():
    # unit: ("unit", "apartment", "apt", "suite", "piso", ...)
    out = normalize_address_input({"piso": "2", "apt": "7", "suite": "9"})
    assert out["unit"] == "7"


def test_blank_canonical_value_falls_through_to_synonym():
    out = normalize_address_input({"postal_code": "  ", "zip": "08014"})
    assert out["postal_code"] == "08014"


def test_unknown_fields_dropped_and_values_trimmed():
    out = normalize_address_input({"street": "  Main St ", "color": "blue", "city": ""})
    assert out == {"street": "Main St"}


def test_country_code_explicit_is_uppercased_and_wins():
    out = normalize_address_input({"country": "Spain", "countryCode": "pt"})
    assert out["country_code"] == "PT"


def test_country_code_inferred_from_table_and_fallback():
    assert normalize_address_input({"country": "United States"})["country_code"] == "US"
    assert infer_country_code(" Germany ") == "DE"
    # lossy fallback: first two letters
    assert infer_country_code("Ireland") == "IR"
    assert infer_country_code("japan") == "JA"


def test_address_lines_from_numbered_keys():
    out = normalize_address_input({"line1": "Flat 4", "line2": "  ", "address_line3": "Rear entrance"})
    assert out["address_lines"] == ["Flat 4", "Rear entrance"]


def test_address_lines_list_capped_at_five():
    out = normalize_address_input({"address_lines": ["a", "b", "", "c", "d", "e", "f"]})
    assert out["address_lines"] == ["a", "b", "c", "d", "e"]


def test_land_plot_and_extras():
    out = normalize_address_input({"manzana": "12", "lote": "7", "parcel": "0042", "extras": {"gate": "blue"}})
    assert out["land_plot"] == {"block": "12", "lot": "7", "parcel": "0042"}
    assert out["extras"] == {"gate": "blue"}
    # plot block is not the building block
    assert "block" not in out


def test_require_address_identity_lists_missing_fields():
    with pytest.raises(MissingRequiredField) as ei:
        require_address_identity(normalize_address_input({"street": "Main St"}))
    assert ei.value.fields == ["city", "postal_code", "country_code"]
