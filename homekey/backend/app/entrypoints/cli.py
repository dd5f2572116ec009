# app/entrypoints/cli.py
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..adapters.repos.addresses import AddressRepository
from ..config import settings
from ..db import engine as default_engine
from ..db import make_engine, make_session_maker
from ..schemas import MigrationReportOut, MigrationStatusOut
from ..service_layer.address_migration import migrate_embedded_addresses, migration_status

log = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="homekey-addresses",
        description="Embedded -> referenced address migration for properties.",
    )
    ap.add_argument("--db", default=None, help=f"SQLAlchemy async URL (default: {settings.HOMEKEY_DB_URL})")
    ap.add_argument("--json", action="store_true", help="Print the result as JSON")

    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Read-only migration status")

    mig = sub.add_parser("migrate", help="Move embedded addresses to the canonical address store")
    mig.add_argument("--batch-size", type=int, default=settings.MIGRATION_BATCH_SIZE)
    mig.add_argument("--limit", type=int, default=None, help="Stop after scanning this many properties")

    sub.add_parser("duplicates", help="Report addresses whose fields collide or whose key is stale")
    return ap


async def cmd_status(session_maker: async_sessionmaker[AsyncSession], as_json: bool = False) -> int:
    async with session_maker() as session:
        st = await migration_status(session)

    if as_json:
        print(MigrationStatusOut(**st.as_dict()).model_dump_json(indent=2))
        return 0

    print(f"[addresses] total properties: {st.total_properties}")
    print(f"[addresses] with embedded address: {st.embedded}")
    print(f"[addresses] with address reference: {st.referenced}")
    if st.both:
        print(f"[addresses] WARNING holding both shapes: {st.both}")
    if st.neither:
        print(f"[addresses] without any address: {st.neither}")
    print(f"[addresses] canonical addresses: {st.total_addresses}")
    print(f"[addresses] state: {st.state}")
    return 0


async def cmd_migrate(
    session_maker: async_sessionmaker[AsyncSession],
    batch_size: int,
    limit: int | None,
    as_json: bool = False,
) -> int:
    report = await migrate_embedded_addresses(session_maker, batch_size=batch_size, limit=limit)
    assert report.status is not None
    code = 0 if report.status.fully_migrated else 1

    if as_json:
        print(MigrationReportOut(**report.as_dict()).model_dump_json(indent=2))
        return code

    print(
        f"[addresses] scanned={report.scanned} migrated={report.migrated} "
        f"created={report.addresses_created} reused={report.addresses_reused} skipped={report.skipped}"
    )
    for f in report.failures:
        print(f"[addresses] FAILED property {f.property_id}: {f.error}")

    print(f"[addresses] state: {report.status.state} (embedded remaining: {report.status.embedded})")
    return code


async def cmd_duplicates(session_maker: async_sessionmaker[AsyncSession]) -> int:
    async with session_maker() as session:
        report = await AddressRepository(session).find_duplicates()

    print(f"[addresses] scanned {report.scanned} addresses")
    for key, ids in sorted(report.groups.items()):
        print(f"[addresses] duplicate key {key[:12]}: ids={ids}")
    if report.stale:
        print(f"[addresses] stale normalized_key: ids={report.stale}")
    if report.clean:
        print("[addresses] no duplicates found")
    return 0


async def run(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    bind = make_engine(args.db) if args.db else default_engine
    session_maker = make_session_maker(bind)
    try:
        if args.command == "status":
            return await cmd_status(session_maker, args.json)
        if args.command == "migrate":
            return await cmd_migrate(session_maker, args.batch_size, args.limit, args.json)
        return await cmd_duplicates(session_maker)
    finally:
        await bind.dispose()


def main(argv: Sequence[str] | None = None) -> None:
    _configure_logging()
    raise SystemExit(asyncio.run(run(argv)))


if __name__ == "__main__":
    main()
