from uuid import UUID

from dishka import Provider, Scope, provide
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.saldo import Saldo


class SaldoRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, saldo_id: UUID) -> Saldo | None:
        return await self.session.get(Saldo, saldo_id)

    async def get_for_update(self, saldo_id: UUID) -> Saldo | None:
        query = (
            select(Saldo)
            .where(Saldo.id == saldo_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(query)

    async def save(self, saldo: Saldo) -> Saldo:
        self.session.add(saldo)
        await self.session.flush()
        return saldo


class SaldoServicesProvider(Provider):
    scope = Scope.REQUEST

    repository = provide(SaldoRepository)
