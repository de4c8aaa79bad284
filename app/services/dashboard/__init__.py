from datetime import datetime, timezone
from decimal import Decimal

from dishka import Provider, Scope, provide

from app.models.enums import TransactionType
from app.schemas.dashboard import ChartPointSchema, MonthlySummarySchema, YearChartSchema
from app.services.errors import ValidationError
from app.services.transactions import TransactionRepository

MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
MIN_YEAR = 1970
MAX_YEAR = 9998


def _validate_year(year: int) -> None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"Некорректный год: {year}")


class DashboardInteractor:
    def __init__(self, transactions: TransactionRepository):
        self.transactions = transactions

    async def year_chart(self, year: int) -> YearChartSchema:
        _validate_year(year)
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        totals = {
            (row.period, row.type): row.total
            for row in await self.transactions.aggregate_sum_by_period(
                start, end, by_month=True
            )
        }

        def series(transaction_type: TransactionType) -> list[ChartPointSchema]:
            return [
                ChartPointSchema(
                    date=f"{MONTH_NAMES[month - 1]} {year}",
                    total=totals.get((month, transaction_type), Decimal("0")),
                )
                for month in range(1, 13)
            ]

        return YearChartSchema(
            income=series(TransactionType.INCOME),
            expense=series(TransactionType.EXPENSE),
        )

    async def monthly_summary(self, month: int, year: int) -> MonthlySummarySchema:
        if not 1 <= month <= 12:
            raise ValidationError(f"Некорректный месяц: {month}")
        _validate_year(year)
        start = datetime(year, month, 1, tzinfo=timezone.utc)
        if month == 12:
            end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        else:
            end = datetime(year, month + 1, 1, tzinfo=timezone.utc)

        totals = {
            row.type: row.total
            for row in await self.transactions.aggregate_sum_by_period(start, end)
        }
        return MonthlySummarySchema(
            income=totals.get(TransactionType.INCOME, Decimal("0")),
            expense=totals.get(TransactionType.EXPENSE, Decimal("0")),
            month=month,
            year=year,
        )


class DashboardServicesProvider(Provider):
    scope = Scope.REQUEST

    dashboard = provide(DashboardInteractor)
