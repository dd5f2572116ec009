from __future__ import annotations

import argparse
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import AsyncSessionLocal, engine, init_models
from app.models import Property

# Pre-migration rows: address embedded on the property, two of them the same place.
LEGACY_ROWS = [
    {
        "title": "Sunny flat near Passeig de Gracia",
        "address": {
            "street": "Gran Via",
            "city": "Barcelona",
            "state": "Catalonia",
            "zipCode": "08014",
            "country": "Spain",
            "coordinates": {"lat": 41.38, "lng": 2.17},
            "showAddressNumber": False,
        },
    },
    {
        "title": "Room in shared flat, Gran Via",
        "address": {
            "street": "gran via ",
            "city": "Barcelona",
            "state": "Catalonia",
            "zipCode": "08014",
            "country": "Spain",
            "coordinates": {"lat": 41.381, "lng": 2.171},
        },
    },
    {
        "title": "Craftsman bungalow",
        "address": {
            "street": "123 Main St",
            "city": "Birmingham",
            "state": "MI",
            "zipCode": "48009",
            "coordinates": {"type": "Point", "coordinates": [-83.2113, 42.5467]},
        },
    },
]


async def _seed_row(session: AsyncSession, row: dict) -> bool:
    # naive idempotent behavior: uniqueness on title
    existing = (await session.execute(select(Property).where(Property.title == row["title"]))).scalars().first()
    if existing:
        return False
    session.add(Property(title=row["title"], embedded_address=row["address"]))
    await session.flush()
    return True


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--skip-create", action="store_true", help="Assume tables already exist")
    args = parser.parse_args()

    if not args.skip_create:
        await init_models()

    added = 0
    async with AsyncSessionLocal() as session:
        for row in LEGACY_ROWS:
            added += int(await _seed_row(session, row))
        await session.commit()

    await engine.dispose()
    print(f"Seeded {added} legacy properties with embedded addresses.")


if __name__ == "__main__":
    asyncio.run(main())
