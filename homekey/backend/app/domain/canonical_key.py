# app/domain/canonical_key.py
from __future__ import annotations

import hashlib
from typing import Any, Mapping

from .errors import EmptyAddressIdentity

# Order matters: it is part of the key.
KEY_FIELDS: tuple[str, ...] = (
    "street",
    "number",
    "unit",
    "building_name",
    "block",
    "city",
    "state",
    "postal_code",
    "country_code",
)

KEY_SEPARATOR = "|"


def identity_values(normalized: Mapping[str, Any]) -> list[str]:
    """
    Lower-cased, trimmed identity values in KEY_FIELDS order.
    Empty/absent fields are dropped, not replaced with placeholders.
    """
    out: list[str] = []
    for field in KEY_FIELDS:
        v = normalized.get(field)
        if v is None:
            continue
        s = str(v).strip().lower()
        if s:
            out.append(s)
    return out


def canonical_key(normalized: Mapping[str, Any]) -> str:
    """
    SHA-256 hex digest identifying "this physical address".

    Takes a normalized payload (see domain.address.normalize_address_input).
    Coordinates never take part: GPS noise must not split one address into two.
    """
    values = identity_values(normalized)
    if not values:
        raise EmptyAddressIdentity()
    return hashlib.sha256(KEY_SEPARATOR.join(values).encode("utf-8")).hexdigest()
