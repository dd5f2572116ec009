# app/service_layer/unit_of_work.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..adapters.repos.addresses import AddressRepository
from ..adapters.repos.properties import PropertyRepository
from ..db import AsyncSessionLocal


class SqlAlchemyUnitOfWork:
    """
    One transaction around the address and property repositories.
    Commits on clean exit, rolls back on error.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_maker = session_maker or AsyncSessionLocal
        self.session: AsyncSession | None = None
        self.addresses: AddressRepository | None = None
        self.properties: PropertyRepository | None = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self._session_maker()
        self.addresses = AddressRepository(self.session)
        self.properties = PropertyRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc:
                await self.rollback()
            else:
                await self.commit()
        finally:
            if self.session:
                await self.session.close()

    async def commit(self) -> None:
        assert self.session is not None
        await self.session.commit()

    async def rollback(self) -> None:
        assert self.session is not None
        await self.session.rollback()
