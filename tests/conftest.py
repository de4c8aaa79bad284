from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.db import new_session_maker
from app.models import BaseModel, Category, Saldo, Transaction, User
from app.models.enums import TransactionType
from app.services.categories import CategoryRepository, CategoryResolver
from app.services.ledger import BalanceLedgerManager, SaldoLockRegistry
from app.services.saldos import SaldoRepository
from app.services.transactions import TransactionRepository
from app.settings.ml import ModelSettings


class StubClassifier:
    """Классификатор, который всегда отвечает заданной меткой."""

    def __init__(self, label: str = "groceries", ready: bool = True):
        self.label = label
        self.ready = ready
        self.calls: list[tuple[str, TransactionType]] = []

    @property
    def is_ready(self) -> bool:
        return self.ready

    async def predict(self, description: str, transaction_type: TransactionType) -> str:
        self.calls.append((description, transaction_type))
        return self.label


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return new_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def user(session_maker):
    async with session_maker() as session:
        user = User(email="owner@example.com", name="Owner")
        session.add(user)
        await session.commit()
    return user


@pytest.fixture
def make_saldo(session_maker):
    async def _make(amount: str = "0", name: str = "Main") -> Saldo:
        saldo = Saldo(name=name, amount=Decimal(amount), description=f"{name} account")
        async with session_maker() as session:
            session.add(saldo)
            await session.commit()
        return saldo

    return _make


@pytest.fixture
def make_category(session_maker):
    async def _make(name: str, category_type: TransactionType) -> Category:
        category = Category(name=name, type=category_type, description=name)
        async with session_maker() as session:
            session.add(category)
            await session.commit()
        return category

    return _make


@pytest.fixture
def add_transactions(session_maker, user):
    """Пишет транзакции напрямую, с возрастающим created_at, в обход баланса."""

    async def _add(saldo: Saldo, rows: list[tuple[str, TransactionType, Category]]):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        async with session_maker() as session:
            session.add_all(
                Transaction(
                    user_id=user.id,
                    saldo_id=saldo.id,
                    category_id=category.id,
                    amount=Decimal("10"),
                    description=description,
                    type=transaction_type,
                    created_at=start + timedelta(minutes=offset),
                )
                for offset, (description, transaction_type, category) in enumerate(rows)
            )
            await session.commit()

    return _add


@pytest.fixture
def model_settings(tmp_path) -> ModelSettings:
    return ModelSettings(
        model_path=tmp_path / "model.json",
        backup_path=tmp_path / "model_backup.json",
        report_path=tmp_path / "evaluation_report.json",
        training_page_size=3,
    )


def build_ledger(session, classifier, locks: SaldoLockRegistry | None = None):
    categories = CategoryRepository(session)
    return BalanceLedgerManager(
        session=session,
        transactions=TransactionRepository(session),
        saldos=SaldoRepository(session),
        categories=categories,
        resolver=CategoryResolver(categories),
        classifier=classifier,
        locks=locks or SaldoLockRegistry(),
    )


async def current_balance(session_maker, saldo_id) -> Decimal:
    async with session_maker() as session:
        return (await session.get(Saldo, saldo_id)).amount
