# app/adapters/repos/properties.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ...models import Property


@dataclass(frozen=True)
class EmbeddedRow:
    property_id: int
    # raw JSON value; not guaranteed to be an object
    address: Any


class PropertyRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, property_id: int, *, resolve_address: bool = True) -> Property | None:
        """
        resolve_address=True joins the canonical Address into memory;
        False leaves only address_id (unresolved reference).
        """
        q = select(Property).where(Property.id == property_id)
        if resolve_address:
            q = q.options(selectinload(Property.canonical_address))
        return (await self.session.execute(q)).scalars().first()

    async def add(self, prop: Property) -> Property:
        self.session.add(prop)
        await self.session.flush()
        return prop

    async def set_address_reference(
        self,
        property_id: int,
        address_id: int,
        *,
        show_address_number: bool | None = None,
        only_if_unmigrated: bool = False,
    ) -> bool:
        """
        One UPDATE: point at address_id and drop the embedded copy together,
        so the row is never seen with neither shape.
        """
        values: dict[Any, Any] = {Property.address_id: address_id, Property.embedded_address: None}
        if show_address_number is not None:
            values[Property.show_address_number] = show_address_number

        stmt = update(Property).where(Property.id == property_id)
        if only_if_unmigrated:
            stmt = stmt.where(Property.address_id.is_(None))
        # Property objects already in this session are not refreshed.
        stmt = stmt.values(values).execution_options(synchronize_session=False)

        res = await self.session.execute(stmt)
        return res.rowcount == 1

    async def embedded_batch(self, *, after_id: int, limit: int) -> list[EmbeddedRow]:
        """
        Next page (by id) of properties still holding an embedded address and no reference.
        """
        q = (
            select(Property.id, Property.embedded_address)
            .where(Property.embedded_address.is_not(None))
            .where(Property.address_id.is_(None))
            .where(Property.id > after_id)
            .order_by(Property.id.asc())
            .limit(limit)
        )
        rows = (await self.session.execute(q)).all()
        return [EmbeddedRow(property_id=r.id, address=r.embedded_address) for r in rows]

    async def address_shape_counts(self) -> dict[str, int]:
        embedded = Property.embedded_address.is_not(None)
        referenced = Property.address_id.is_not(None)

        async def _count(*conds) -> int:
            q = select(func.count()).select_from(Property)
            for c in conds:
                q = q.where(c)
            return int((await self.session.execute(q)).scalar_one())

        return {
            "total": await _count(),
            "embedded": await _count(embedded, Property.address_id.is_(None)),
            "referenced": await _count(referenced, Property.embedded_address.is_(None)),
            "both": await _count(and_(embedded, referenced)),
            "neither": await _count(Property.embedded_address.is_(None), Property.address_id.is_(None)),
        }
