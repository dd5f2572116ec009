# app/domain/countries.py
from __future__ import annotations

# Country name -> ISO 3166-1 alpha-2. Exact (trimmed) names only: changing how a
# name maps changes canonical keys of addresses already stored.
COUNTRY_CODES: dict[str, str] = {
    "USA": "US",
    "United States": "US",
    "United States of America": "US",
    "Canada": "CA",
    "United Kingdom": "GB",
    "Great Britain": "GB",
    "England": "GB",
    "Spain": "ES",
    "España": "ES",
    "France": "FR",
    "Germany": "DE",
    "Deutschland": "DE",
    "Italy": "IT",
    "Italia": "IT",
    "Mexico": "MX",
    "México": "MX",
    "Brazil": "BR",
    "Brasil": "BR",
    "Argentina": "AR",
    "Colombia": "CO",
    "Chile": "CL",
    "Peru": "PE",
    "Perú": "PE",
    "Portugal": "PT",
    "Netherlands": "NL",
    "Belgium": "BE",
    "Austria": "AT",
    "Switzerland": "CH",
    "Sweden": "SE",
    "Norway": "NO",
    "Denmark": "DK",
    "Finland": "FI",
}


def infer_country_code(country: str) -> str:
    """
    ISO-2 code for a country name.

    Unknown names fall back to their first two letters upper-cased. That is
    wrong for plenty of countries ("Austria" is in the table, "Australia"
    becomes "AU" by luck, "Ireland" becomes "IR" = Iran), but stored keys
    depend on it, so it stays.
    """
    name = country.strip()
    code = COUNTRY_CODES.get(name)
    if code:
        return code
    return name[:2].upper()
