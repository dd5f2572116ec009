# app/adapters/repos/addresses.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from sqlalchemy import func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...domain.address import FIELD_ALIASES, normalize_address_input, require_address_identity
from ...domain.canonical_key import KEY_FIELDS, canonical_key
from ...domain.errors import AddressConflict, EmptyAddressIdentity, PersistenceFailure
from ...domain.geo import Point, bounding_box, coordinates_from_payload, haversine_m
from ...models import Address

log = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO NOTHING. Others use a savepoint.
_CONFLICT_AWARE_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


@contextmanager
def _storage_errors(op: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError:
        raise
    except (DBAPIError, PoolTimeoutError) as exc:
        raise PersistenceFailure(f"{op} failed: {exc}") from exc


@dataclass
class DuplicateReport:
    """Detection only; nothing is merged."""

    scanned: int = 0
    # recomputed key -> address ids that share it
    groups: dict[str, list[int]] = field(default_factory=dict)
    # ids whose stored normalized_key no longer matches their fields
    stale: list[int] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.groups and not self.stale


class AddressRepository:
    """
    Sole write path for canonical addresses.

    At most one row per canonical key; the unique constraint on
    addresses.normalized_key decides races, this class only recovers from them.
    Never commits: the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession, max_attempts: int | None = None):
        self.session = session
        self.max_attempts = max_attempts or settings.FIND_OR_CREATE_MAX_ATTEMPTS

    # -----------------------------
    # find-or-create
    # -----------------------------
    async def find_or_create(self, raw: Mapping[str, Any]) -> tuple[Address, bool]:
        """
        Existing address for this input's canonical key, or a new one.

        Returns (address, created). An existing row is returned untouched even
        when the incoming free-form fields or coordinates differ.
        """
        point = coordinates_from_payload(raw)
        fields = normalize_address_input(raw)
        require_address_identity(fields)
        key = canonical_key(fields)

        for attempt in range(1, self.max_attempts + 1):
            existing = await self.get_by_key(key)
            if existing is not None:
                return existing, False

            if await self._insert(fields, point, key):
                created = await self.get_by_key(key)
                if created is not None:
                    log.info("address created id=%s key=%s", created.id, key[:12])
                    return created, True
            else:
                log.info("address key=%s claimed concurrently, re-reading (attempt %d)", key[:12], attempt)

        raise PersistenceFailure(
            f"address key={key[:12]} conflicted {self.max_attempts} times but no row is visible"
        )

    async def _insert(self, fields: Mapping[str, Any], point: Point, key: str) -> bool:
        """
        Try to claim `key`. True if this call inserted the row, False if it lost.
        """
        values: dict[str, Any] = {
            "address_lines": [],
            "land_plot": {},
            "extras": {},
            **fields,
            "longitude": point.longitude,
            "latitude": point.latitude,
            "normalized_key": key,
        }

        dialect = self.session.get_bind().dialect.name
        make_insert = _CONFLICT_AWARE_INSERTS.get(dialect)

        with _storage_errors("address insert"):
            if make_insert is not None:
                stmt = (
                    make_insert(Address.__table__)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["normalized_key"])
                )
                res = await self.session.execute(stmt)
                return res.rowcount == 1

            try:
                async with self.session.begin_nested():
                    self.session.add(Address(**values))
            except IntegrityError:
                return False
            return True

    # -----------------------------
    # reads
    # -----------------------------
    async def get(self, address_id: int) -> Address | None:
        with _storage_errors("address read"):
            return await self.session.get(Address, address_id)

    async def get_by_key(self, key: str) -> Address | None:
        q = select(Address).where(Address.normalized_key == key)
        with _storage_errors("address read"):
            return (await self.session.execute(q)).scalars().first()

    async def count(self) -> int:
        with _storage_errors("address count"):
            return int((await self.session.execute(select(func.count()).select_from(Address))).scalar_one())

    async def search(self, query: str, *, limit: int = 10, page: int = 1) -> tuple[list[Address], int]:
        """
        Case-insensitive substring match on street/city/neighborhood/postal code,
        newest first. Returns (page of rows, total matches).
        """
        q = query.strip()
        cond = or_(
            Address.street.icontains(q, autoescape=True),
            Address.city.icontains(q, autoescape=True),
            Address.neighborhood.icontains(q, autoescape=True),
            Address.postal_code.icontains(q, autoescape=True),
        )
        offset = (max(page, 1) - 1) * limit

        rows_q = select(Address).where(cond).order_by(Address.created_at.desc(), Address.id.desc()).offset(offset).limit(limit)
        total_q = select(func.count()).select_from(Address).where(cond)

        with _storage_errors("address search"):
            rows = list((await self.session.execute(rows_q)).scalars().all())
            total = int((await self.session.execute(total_q)).scalar_one())
        return rows, total

    async def nearby(
        self,
        longitude: float,
        latitude: float,
        *,
        radius_m: float | None = None,
        limit: int = 20,
    ) -> list[tuple[Address, float]]:
        """
        Addresses within radius_m of the point, nearest first, as (address, meters).
        """
        center = Point(longitude=longitude, latitude=latitude)
        radius = settings.NEARBY_DEFAULT_RADIUS_M if radius_m is None else radius_m
        limit = max(1, min(limit, settings.NEARBY_MAX_LIMIT))

        min_lng, min_lat, max_lng, max_lat = bounding_box(center, radius)
        q = select(Address).where(Address.latitude >= min_lat).where(Address.latitude <= max_lat)
        # box crossing the antimeridian: keep the latitude band only
        if min_lng >= -180.0 and max_lng <= 180.0:
            q = q.where(Address.longitude >= min_lng).where(Address.longitude <= max_lng)

        with _storage_errors("address nearby"):
            candidates = (await self.session.execute(q)).scalars().all()

        hits = [(a, haversine_m(center, a.point)) for a in candidates]
        hits = [(a, d) for a, d in hits if d <= radius]
        hits.sort(key=lambda t: (t[1], t[0].id))
        return hits[:limit]

    # -----------------------------
    # identity maintenance
    # -----------------------------
    async def update_identity(self, address: Address, changes: Mapping[str, Any]) -> Address:
        """
        Change identity/free-form fields of a stored address.

        The key is recomputed and re-validated before anything is written;
        AddressConflict if another address already owns the new key.
        Passing None under any accepted name of a field clears it, unless
        another name for the same field carries a value.
        """
        current = {f: getattr(address, f) for f in FIELD_ALIASES}
        update = normalize_address_input(changes)
        cleared = [
            f
            for f, aliases in FIELD_ALIASES.items()
            if f not in update and any(k in changes and changes[k] is None for k in aliases)
        ]

        merged = {**current, **update}
        for k in cleared:
            merged[k] = None
        require_address_identity(merged)
        key = canonical_key(merged)

        if key != address.normalized_key:
            other = await self.get_by_key(key)
            if other is not None and other.id != address.id:
                raise AddressConflict(address.id, other.id, key)

        for f in FIELD_ALIASES:
            setattr(address, f, merged.get(f))
        for f in ("address_lines", "land_plot", "extras"):
            if f in update:
                setattr(address, f, update[f])
        if "coordinates" in changes or "location" in changes:
            point = coordinates_from_payload(changes)
            address.set_location(point.longitude, point.latitude)
        address.normalized_key = key

        with _storage_errors("address update"):
            await self.session.flush()
        return address

    async def find_duplicates(self) -> DuplicateReport:
        """
        Recompute every stored key from its fields and report collisions and
        stale keys. Read-only.
        """
        cols = [Address.id, Address.normalized_key, *(getattr(Address, f) for f in KEY_FIELDS)]
        q = select(*cols).order_by(Address.id)

        report = DuplicateReport()
        by_key: dict[str, list[int]] = {}

        with _storage_errors("duplicate scan"):
            rows = (await self.session.execute(q)).all()

        for row in rows:
            report.scanned += 1
            identity = {f: getattr(row, f) for f in KEY_FIELDS}
            try:
                key = canonical_key(identity)
            except EmptyAddressIdentity:
                report.stale.append(row.id)
                continue
            if key != row.normalized_key:
                report.stale.append(row.id)
            by_key.setdefault(key, []).append(row.id)

        report.groups = {k: ids for k, ids in by_key.items() if len(ids) > 1}
        return report
