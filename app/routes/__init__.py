from apscheduler.schedulers.base import BaseScheduler
from dishka import FromDishka
from fastapi import APIRouter
from dishka.integrations.fastapi import DishkaRoute

from app.schemas.health import HealthSchema, JobSchema
from app.routes.dashboard import router as dashboard_router
from app.routes.ml import router as ml_router
from app.routes.transactions import router as transactions_router
from app.services.providers.protocols.category_classifier import ICategoryClassifier


router = APIRouter(route_class=DishkaRoute)
# static /transactions/* paths go before /transactions/{transaction_id}
router.include_router(dashboard_router)
router.include_router(transactions_router)
router.include_router(ml_router)


@router.get("/health")
async def health(
    scheduler: FromDishka[BaseScheduler],
    classifier: FromDishka[ICategoryClassifier],
) -> HealthSchema:
    jobs = [
        JobSchema(id=job.id, next_run_time=job.next_run_time, name=job.name)
        for job in scheduler.get_jobs()
    ]
    return HealthSchema(
        status="ok",
        classifier_ready=classifier.is_ready,
        jobs=jobs,
    )
