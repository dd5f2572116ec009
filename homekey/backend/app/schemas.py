from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Literal


class GeoPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(..., min_length=2, max_length=2)


class AddressOut(BaseModel):
    """
    Canonical address in the shape older API consumers expect under
    property.address: canonical names plus the legacy zipCode/countryCode.
    """
    id: int

    street: str
    number: str | None = None
    unit: str | None = None
    building_name: str | None = None
    block: str | None = None
    floor: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str | None = None
    country_code: str

    neighborhood: str | None = None
    district: str | None = None
    address_lines: list[str] = Field(default_factory=list)
    land_plot: dict[str, str] = Field(default_factory=dict)
    extras: dict[str, Any] = Field(default_factory=dict)

    coordinates: GeoPoint

    # legacy names
    zipCode: str
    countryCode: str
    fullAddress: str
    location: str

    created_at: datetime | None = None
    updated_at: datetime | None = None


class PropertyOut(BaseModel):
    id: int
    title: str | None = None
    showAddressNumber: bool = True

    # Only set when the caller wants the reference id exposed.
    addressId: int | None = None
    # Resolved canonical address, or the legacy embedded dict. Left unset when
    # the reference was not resolved.
    address: AddressOut | dict[str, Any] | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


class MigrationFailureOut(BaseModel):
    property_id: int
    error: str


class MigrationStatusOut(BaseModel):
    state: Literal["fully_migrated", "partially_migrated"]
    total_properties: int = Field(..., ge=0)
    embedded: int = Field(..., ge=0)
    referenced: int = Field(..., ge=0)
    both: int = Field(..., ge=0)
    neither: int = Field(..., ge=0)
    total_addresses: int = Field(..., ge=0)


class MigrationReportOut(BaseModel):
    scanned: int = Field(..., ge=0)
    migrated: int = Field(..., ge=0)
    addresses_created: int = Field(..., ge=0)
    addresses_reused: int = Field(..., ge=0)
    skipped: int = Field(0, ge=0)
    failures: list[MigrationFailureOut]
    status: MigrationStatusOut | None = None
