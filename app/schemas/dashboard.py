from decimal import Decimal

from app.schemas.base import BaseSchema


class ChartPointSchema(BaseSchema):
    date: str
    total: Decimal


class YearChartSchema(BaseSchema):
    income: list[ChartPointSchema]
    expense: list[ChartPointSchema]


class MonthlySummarySchema(BaseSchema):
    income: Decimal
    expense: Decimal
    month: int
    year: int
