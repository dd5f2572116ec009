# app/service_layer/address_migration.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..adapters.repos.addresses import AddressRepository
from ..adapters.repos.properties import PropertyRepository
from ..config import settings
from ..domain.address import FIELD_ALIASES, normalize_address_input
from ..domain.canonical_key import KEY_FIELDS
from ..domain.errors import AddressError, PropertyAddressStateError
from ..domain.parsing import get_first_text

log = logging.getLogger(__name__)

FULLY_MIGRATED = "fully_migrated"
PARTIALLY_MIGRATED = "partially_migrated"

@dataclass(frozen=True)
class MigrationFailure:
    property_id: int
    error: str


@dataclass(frozen=True)
class MigrationStatus:
    total_properties: int
    embedded: int
    referenced: int
    both: int
    neither: int
    total_addresses: int

    @property
    def fully_migrated(self) -> bool:
        return self.embedded == 0 and self.both == 0

    @property
    def state(self) -> str:
        return FULLY_MIGRATED if self.fully_migrated else PARTIALLY_MIGRATED

    def as_dict(self) -> dict[str, Any]:
        return {"state": self.state, **asdict(self)}


@dataclass
class MigrationReport:
    scanned: int = 0
    migrated: int = 0
    addresses_created: int = 0
    addresses_reused: int = 0
    # rows that were migrated by someone else between our read and our update
    skipped: int = 0
    failures: list[MigrationFailure] = field(default_factory=list)
    status: MigrationStatus | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "scanned": self.scanned,
            "migrated": self.migrated,
            "addresses_created": self.addresses_created,
            "addresses_reused": self.addresses_reused,
            "skipped": self.skipped,
            "failures": [asdict(f) for f in self.failures],
            "status": self.status.as_dict() if self.status else None,
        }


def legacy_address_input(embedded: Mapping[str, Any], default_country: str | None = None) -> dict[str, Any]:
    """
    Raw find_or_create input from a legacy embedded address. Legacy rows
    defaulted the country, so a missing one gets the same default here.
    """
    raw = {k: v for k, v in embedded.items() if k != "showAddressNumber"}
    if not get_first_text(raw, *FIELD_ALIASES["country"], *FIELD_ALIASES["country_code"]):
        raw["country"] = default_country or settings.LEGACY_DEFAULT_COUNTRY
    return raw


def embedded_dedup_key(raw: Mapping[str, Any]) -> tuple[str, ...]:
    """
    In-run cache key: the alias-normalized identity fields, one slot per
    KEY_FIELDS entry. Two rows with the same key resolve to the same address
    without a second repository call.
    """
    normalized = normalize_address_input(raw)
    return tuple(str(normalized.get(f) or "").strip().lower() for f in KEY_FIELDS)


def _show_flag(embedded: Mapping[str, Any]) -> bool | None:
    v = embedded.get("showAddressNumber")
    return v if isinstance(v, bool) else None


async def migration_status(session: AsyncSession) -> MigrationStatus:
    """
    Read-only snapshot of how far the embedded -> referenced migration got.
    """
    counts = await PropertyRepository(session).address_shape_counts()
    total_addresses = await AddressRepository(session).count()
    return MigrationStatus(
        total_properties=counts["total"],
        embedded=counts["embedded"],
        referenced=counts["referenced"],
        both=counts["both"],
        neither=counts["neither"],
        total_addresses=total_addresses,
    )


async def migrate_embedded_addresses(
    session_maker: async_sessionmaker[AsyncSession],
    *,
    batch_size: int | None = None,
    limit: int | None = None,
    default_country: str | None = None,
) -> MigrationReport:
    """
    Rewrite properties that still embed their address to reference a
    canonical Address.

    - pages through candidates by id, `batch_size` at a time
    - one find_or_create per distinct embedded address in the run
    - one UPDATE per property sets address_id and clears the embedded copy
    - each property commits on its own; a failure is recorded and the run
      moves on, so stopping between properties leaves nothing half-done
    - re-running after completion finds nothing to do

    `limit` caps how many properties are scanned (partial runs).
    """
    size = batch_size or settings.MIGRATION_BATCH_SIZE
    report = MigrationReport()
    cache: dict[tuple[str, ...], int] = {}
    last_id = 0
    batch_no = 0

    while limit is None or report.scanned < limit:
        take = size if limit is None else min(size, limit - report.scanned)

        async with session_maker() as session:
            props = PropertyRepository(session)
            addresses = AddressRepository(session)

            rows = await props.embedded_batch(after_id=last_id, limit=take)
            if not rows:
                break
            batch_no += 1

            for row in rows:
                last_id = row.property_id
                report.scanned += 1

                created = False

                try:
                    if not isinstance(row.address, Mapping):
                        raise PropertyAddressStateError(
                            f"property {row.property_id} embedded address is not an object: {type(row.address).__name__}"
                        )
                    raw = legacy_address_input(row.address, default_country)
                    cache_key = embedded_dedup_key(raw)
                    address_id = cache.get(cache_key)

                    if address_id is None:
                        address, created = await addresses.find_or_create(raw)
                        address_id = address.id

                    updated = await props.set_address_reference(
                        row.property_id,
                        address_id,
                        show_address_number=_show_flag(row.address),
                        only_if_unmigrated=True,
                    )
                    await session.commit()
                except (AddressError, SQLAlchemyError) as exc:
                    await session.rollback()
                    report.failures.append(MigrationFailure(property_id=row.property_id, error=str(exc)))
                    log.warning("property %s not migrated: %s", row.property_id, exc)
                    continue

                # only cache ids that are committed
                cache[cache_key] = address_id
                if created:
                    report.addresses_created += 1

                if not updated:
                    report.skipped += 1
                    continue

                report.migrated += 1
                if not created:
                    report.addresses_reused += 1

        log.info(
            "batch %d done: scanned=%d migrated=%d created=%d reused=%d failures=%d",
            batch_no,
            report.scanned,
            report.migrated,
            report.addresses_created,
            report.addresses_reused,
            len(report.failures),
        )

    async with session_maker() as session:
        report.status = await migration_status(session)

    log.info("address migration finished: %s", report.status.state)
    return report
