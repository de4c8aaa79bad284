import contextlib
import logging
from typing import Any, Awaitable, Callable, TypeVar

from apscheduler.schedulers.base import BaseScheduler
from dishka import AsyncContainer
from dishka.integrations.fastapi import setup_dishka
from fastapi import FastAPI

from app.deps import create_container
from app.routes import router as api_router
from app.services.errors import TrainingInProgressError
from app.services.exception_handler import register_exception_handlers
from app.services.ml.service import CategoryClassifierService
from app.settings.app import AppSettings
from app.settings.ml import ModelSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def service_runner(
    container: AsyncContainer,
    target: type[T],
    action: Callable[[T], Awaitable[Any]],
) -> None:
    service = await container.get(target)
    try:
        await action(service)
    except TrainingInProgressError:
        logger.info("Scheduled training skipped, another run is in progress")
    except Exception:
        logger.exception("Background service error")


async def _train(classifier: CategoryClassifierService) -> None:
    await classifier.train()


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    container: AsyncContainer = app.state.dishka_container
    classifier = await container.get(CategoryClassifierService)
    classifier.load()

    settings = await container.get(ModelSettings)
    scheduler = await container.get(BaseScheduler)
    scheduler.start()
    if settings.retrain_interval_minutes:
        scheduler.add_job(
            service_runner,
            args=(container, CategoryClassifierService, _train),
            trigger="interval",
            id="background-model-training",
            minutes=settings.retrain_interval_minutes,
        )
    yield
    scheduler.shutdown(wait=False)
    await container.close()


def create_app() -> FastAPI:
    settings = AppSettings()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)

    container = create_container()
    app = FastAPI(lifespan=lifespan, title=settings.app_name)
    register_exception_handlers(app)
    setup_dishka(container, app=app)
    app.include_router(api_router)
    return app
