from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.models import Transaction
from app.models.enums import TransactionType
from app.services.dashboard import DashboardInteractor
from app.services.errors import ValidationError
from app.services.transactions import TransactionRepository

EXPENSE = TransactionType.EXPENSE
INCOME = TransactionType.INCOME


@pytest.fixture
async def dated_transactions(session_maker, user, make_saldo, make_category):
    saldo = await make_saldo("1000")
    category = await make_category("misc", EXPENSE)
    rows = [
        (datetime(2024, 1, 15, tzinfo=timezone.utc), INCOME, "1000"),
        (datetime(2024, 1, 20, tzinfo=timezone.utc), EXPENSE, "200"),
        (datetime(2024, 1, 25, tzinfo=timezone.utc), EXPENSE, "50.25"),
        (datetime(2024, 3, 1, tzinfo=timezone.utc), EXPENSE, "10"),
        (datetime(2023, 12, 31, tzinfo=timezone.utc), INCOME, "999"),
    ]
    async with session_maker() as session:
        session.add_all(
            Transaction(
                user_id=user.id,
                saldo_id=saldo.id,
                category_id=category.id,
                amount=Decimal(amount),
                description="row",
                type=transaction_type,
                created_at=created_at,
            )
            for created_at, transaction_type, amount in rows
        )
        await session.commit()


async def test_year_chart_is_zero_filled(session, dated_transactions):
    chart = await DashboardInteractor(TransactionRepository(session)).year_chart(2024)

    assert len(chart.income) == len(chart.expense) == 12
    assert chart.income[0].date == "Jan 2024"
    assert chart.expense[11].date == "Dec 2024"
    assert chart.income[0].total == Decimal("1000")
    assert chart.expense[0].total == Decimal("250.25")
    assert chart.expense[2].total == Decimal("10")
    assert chart.income[1].total == Decimal("0")


async def test_monthly_summary(session, dated_transactions):
    dashboard = DashboardInteractor(TransactionRepository(session))

    january = await dashboard.monthly_summary(1, 2024)
    assert (january.income, january.expense) == (Decimal("1000"), Decimal("250.25"))

    december = await dashboard.monthly_summary(12, 2023)
    assert (december.income, december.expense) == (Decimal("999"), Decimal("0"))


@pytest.mark.parametrize("month, year", [(0, 2024), (13, 2024), (1, 1900)])
async def test_monthly_summary_rejects_bad_period(session, month, year):
    with pytest.raises(ValidationError):
        await DashboardInteractor(TransactionRepository(session)).monthly_summary(month, year)
