import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from dishka import Provider, Scope, provide
from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.enums import TransactionType
from app.models.transaction import Transaction
from app.services.filters import FilterType, Page, PaginatedSchema, apply_pagination
from category_classifier import TrainingExample
from category_classifier.config import UNKNOWN_CATEGORY

logger = logging.getLogger(__name__)

STORED_ORDER = (Transaction.created_at, Transaction.id)


@dataclass
class PeriodTotal:
    period: int | None
    type: TransactionType
    total: Decimal


def to_training_example(transaction: Transaction) -> TrainingExample:
    label = transaction.category.name if transaction.category else UNKNOWN_CATEGORY
    return TrainingExample.from_transaction(
        transaction.description, str(transaction.type), label
    )


class TransactionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, transaction_id: UUID) -> Transaction | None:
        return await self.session.get(Transaction, transaction_id)

    async def all(
        self, filters: FilterType | None = None, page: PaginatedSchema | None = None
    ) -> Page[Transaction]:
        page = page or PaginatedSchema()
        query = select(Transaction)
        if filters is not None:
            query = query.where(filters)
        query = apply_pagination(
            query,
            page,
            default_ordering=[Transaction.created_at.desc(), Transaction.id],
        )
        items = list(await self.session.scalars(query))
        return Page(
            items=items,
            total=await self.count_all(filters),
            limit=page.limit,
            offset=page.offset,
        )

    async def find_page(self, offset: int, limit: int) -> list[Transaction]:
        query = (
            select(Transaction)
            .options(selectinload(Transaction.category))
            .order_by(*STORED_ORDER)
            .offset(offset)
            .limit(limit)
        )
        return list(await self.session.scalars(query))

    async def count_all(self, filters: FilterType | None = None) -> int:
        query = select(func.count()).select_from(Transaction)
        if filters is not None:
            query = query.where(filters)
        return int(await self.session.scalar(query) or 0)

    async def create(self, transaction: Transaction) -> Transaction:
        self.session.add(transaction)
        await self.session.flush()
        return transaction

    async def delete(self, transaction: Transaction) -> None:
        await self.session.delete(transaction)
        await self.session.flush()

    async def iter_training_examples(
        self, page_size: int
    ) -> AsyncIterator[list[TrainingExample]]:
        offset = 0
        while True:
            transactions = await self.find_page(offset, page_size)
            if not transactions:
                break
            yield [to_training_example(transaction) for transaction in transactions]
            offset += page_size

    async def labelled_sample(self, limit: int) -> list[TrainingExample]:
        transactions = await self.find_page(0, limit)
        return [
            to_training_example(transaction)
            for transaction in transactions
            if transaction.category is not None
        ]

    async def aggregate_sum_by_period(
        self, start: datetime, end: datetime, *, by_month: bool = False
    ) -> list[PeriodTotal]:
        group_columns = [Transaction.type]
        if by_month:
            group_columns.insert(0, extract("month", Transaction.created_at).label("period"))
        query = (
            select(*group_columns, func.sum(Transaction.amount).label("total"))
            .where(Transaction.created_at >= start, Transaction.created_at < end)
            .group_by(*group_columns)
        )
        rows = (await self.session.execute(query)).all()
        return [
            PeriodTotal(
                period=int(row.period) if by_month else None,
                type=TransactionType(row.type),
                total=Decimal(str(row.total or 0)),
            )
            for row in rows
        ]


class TransactionServicesProvider(Provider):
    scope = Scope.REQUEST

    repository = provide(TransactionRepository)
