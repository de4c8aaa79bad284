from typing import Annotated

from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter, Query

from app.schemas.dashboard import MonthlySummarySchema, YearChartSchema
from app.services.dashboard import DashboardInteractor

router = APIRouter(prefix="/transactions", tags=["dashboard"], route_class=DishkaRoute)


@router.get("/chart/{year}")
async def year_chart(
    year: int, dashboard: FromDishka[DashboardInteractor]
) -> YearChartSchema:
    """Суммы доходов и расходов по месяцам за год."""
    return await dashboard.year_chart(year)


@router.get("/summary")
async def monthly_summary(
    month: Annotated[int, Query()],
    year: Annotated[int, Query()],
    dashboard: FromDishka[DashboardInteractor],
) -> MonthlySummarySchema:
    return await dashboard.monthly_summary(month, year)
