# app/domain/address.py
from __future__ import annotations

from typing import Any, Mapping

from .countries import infer_country_code
from .errors import MissingRequiredField
from .parsing import clean_text, get_first_text

# Canonical scalar fields -> accepted input names.
# Precedence: the canonical name first, then synonyms left to right.
# The first non-empty value wins; later names never overwrite it.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "street": ("street", "streetAddress", "street_address", "street_name", "calle"),
    "number": ("number", "street_number", "streetNumber", "house_number", "numero"),
    "unit": ("unit", "apartment", "apt", "suite", "piso", "puerta", "door"),
    "building_name": ("building_name", "buildingName", "edificio"),
    "block": ("block", "tower", "building", "bloque", "torre", "portal"),
    "floor": ("floor", "level", "planta", "nivel"),
    "city": ("city", "town", "locality", "ciudad", "localidad", "municipio"),
    "state": ("state", "stateCode", "state_code", "region", "province", "provincia"),
    "postal_code": (
        "postal_code",
        "postalCode",
        "postcode",
        "post_code",
        "zip",
        "zipcode",
        "zipCode",
        "zip_code",
        "codigo_postal",
        "cp",
    ),
    "country": ("country", "pais"),
    "country_code": ("country_code", "countryCode", "iso2"),
    "neighborhood": ("neighborhood", "neighbourhood", "barrio"),
    "district": ("district", "distrito"),
}

MAX_ADDRESS_LINES = 5

_LINE_LIST_KEYS = ("address_lines", "addressLines")
_LINE_PREFIXES = ("line", "address_line", "addressLine")

LAND_PLOT_ALIASES: dict[str, tuple[str, ...]] = {
    "block": ("plot_block", "manzana"),
    "lot": ("lot", "lote"),
    "parcel": ("parcel", "parcela"),
}

CANONICAL_FIELDS: tuple[str, ...] = (*FIELD_ALIASES, "address_lines", "land_plot", "extras")

# Required after normalization for an address to be stored.
REQUIRED_FIELDS: tuple[str, ...] = ("street", "city", "postal_code", "country_code")


def _address_lines(payload: Mapping[str, Any]) -> list[str]:
    for k in _LINE_LIST_KEYS:
        v = payload.get(k)
        if isinstance(v, (list, tuple)):
            lines = [s for s in (clean_text(x) for x in v) if s]
            return lines[:MAX_ADDRESS_LINES]

    lines: list[str] = []
    for i in range(1, MAX_ADDRESS_LINES + 1):
        s = get_first_text(payload, *(f"{p}{i}" for p in _LINE_PREFIXES))
        if s:
            lines.append(s)
    return lines


def _land_plot(payload: Mapping[str, Any]) -> dict[str, str]:
    given = payload.get("land_plot")
    src: Mapping[str, Any] = given if isinstance(given, Mapping) else {}

    plot: dict[str, str] = {}
    for field, aliases in LAND_PLOT_ALIASES.items():
        v = clean_text(src.get(field)) or get_first_text(payload, *aliases)
        if v:
            plot[field] = v
    return plot


def normalize_address_input(payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map a raw address payload (any supported naming, English/Spanish) onto the
    canonical field set.

    Pure: no I/O, never raises. Unknown keys are dropped, blank values are
    left out rather than stored as "". country_code is upper-cased and, when
    only a country name is given, inferred from it.
    """
    out: dict[str, Any] = {}

    for field, aliases in FIELD_ALIASES.items():
        v = get_first_text(payload, *aliases)
        if v is not None:
            out[field] = v

    if "country_code" in out:
        out["country_code"] = out["country_code"].upper()
    elif "country" in out:
        out["country_code"] = infer_country_code(out["country"])

    lines = _address_lines(payload)
    if lines:
        out["address_lines"] = lines

    plot = _land_plot(payload)
    if plot:
        out["land_plot"] = plot

    extras = payload.get("extras")
    if isinstance(extras, Mapping) and extras:
        out["extras"] = dict(extras)

    return out


def require_address_identity(normalized: Mapping[str, Any]) -> None:
    """
    Raises MissingRequiredField naming every required field that is absent.
    """
    missing = [f for f in REQUIRED_FIELDS if not normalized.get(f)]
    if missing:
        raise MissingRequiredField(missing)
