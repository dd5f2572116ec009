# app/models.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .domain.canonical_key import KEY_FIELDS, canonical_key
from .domain.errors import StaleCanonicalKey
from .domain.geo import Point


class Base(DeclarativeBase):
    pass


# -----------------------------
# Models
# -----------------------------
class Address(Base):
    """
    Canonical address. One row per real-world location, keyed by normalized_key.
    Only AddressRepository.find_or_create inserts these.
    """
    __tablename__ = "addresses"
    __table_args__ = (
        UniqueConstraint("normalized_key", name="uq_address_normalized_key"),
        Index("ix_addresses_city_state", "city", "state"),
        Index("ix_addresses_postal_code", "postal_code"),
        Index("ix_addresses_lat_lng", "latitude", "longitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_address_longitude"),
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_address_latitude"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # identity
    street: Mapped[str] = mapped_column(String(200))
    number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)
    building_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    block: Mapped[str | None] = mapped_column(String(50), nullable=True)
    floor: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str] = mapped_column(String(100))
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[str] = mapped_column(String(20))
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country_code: Mapped[str] = mapped_column(String(2))

    # free-form
    neighborhood: Mapped[str | None] = mapped_column(String(100), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address_lines: Mapped[list[str]] = mapped_column(JSON, default=list)
    land_plot: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    extras: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    longitude: Mapped[float] = mapped_column(Float)
    latitude: Mapped[float] = mapped_column(Float)

    normalized_key: Mapped[str] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def point(self) -> Point:
        return Point(longitude=self.longitude, latitude=self.latitude)

    @property
    def full_address(self) -> str:
        head = ", ".join(p for p in (self.street, self.city) if p)
        tail = " ".join(p for p in (self.state, self.postal_code) if p)
        return f"{head}, {tail}" if tail else head

    @property
    def location_label(self) -> str:
        parts = [p for p in (self.city, self.state) if p]
        if self.country and self.country != "USA":
            parts.append(self.country)
        return ", ".join(parts)

    def identity(self) -> dict[str, Any]:
        return {f: getattr(self, f) for f in KEY_FIELDS}

    def get_coordinates(self) -> dict[str, float] | None:
        if self.longitude is None or self.latitude is None:
            return None
        return {"longitude": self.longitude, "latitude": self.latitude}

    def set_location(self, longitude: float, latitude: float) -> "Address":
        # location only; not part of the canonical key
        self.longitude = longitude
        self.latitude = latitude
        return self


class Property(Base):
    """
    Listing that points at a canonical Address.

    Legacy rows carry the address inline (`address` column) until the
    migration rewrites them to `address_id`. A row never holds both.
    """
    __tablename__ = "properties"
    __table_args__ = (
        CheckConstraint(
            "NOT (address_id IS NOT NULL AND address IS NOT NULL)",
            name="ck_property_single_address_shape",
        ),
        Index("ix_properties_address_id", "address_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)

    address_id: Mapped[int | None] = mapped_column(ForeignKey("addresses.id"), nullable=True)
    embedded_address: Mapped[dict[str, Any] | None] = mapped_column(
        "address", JSON(none_as_null=True), nullable=True
    )

    # Display preference per listing; several properties can share one Address.
    show_address_number: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    canonical_address: Mapped[Address | None] = relationship(lazy="raise")


@event.listens_for(Address, "before_update")
def _guard_canonical_key(mapper, connection, target: Address) -> None:
    if canonical_key(target.identity()) != target.normalized_key:
        raise StaleCanonicalKey(
            f"address {target.id}: identity fields changed without recomputing normalized_key"
        )
