from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from dishka import AsyncContainer, Provider, Scope, make_async_container
from dishka.integrations.fastapi import FastapiProvider
from pydantic_settings import BaseSettings

from app.deps.db import DbConnectionProvider
from app.deps.ml import MlProvider
from app.services.categories import CategoryServicesProvider
from app.services.dashboard import DashboardServicesProvider
from app.services.ledger import LedgerServicesProvider
from app.services.ml.evaluation import EvaluationServicesProvider
from app.services.saldos import SaldoServicesProvider
from app.services.transactions import TransactionServicesProvider
from app.settings.app import AppSettings
from app.settings.db import DatabaseSettings
from app.settings.ml import ModelSettings


class AppProvider(Provider):
    def register_settings(self, settings: type[BaseSettings]):
        self.provide(lambda: settings(), scope=Scope.APP, provides=settings)


def create_container() -> AsyncContainer:
    provider = AppProvider()
    provider.register_settings(DatabaseSettings)
    provider.register_settings(AppSettings)
    provider.register_settings(ModelSettings)

    provider.provide(
        lambda: AsyncIOScheduler(), provides=BaseScheduler, scope=Scope.APP
    )

    container = make_async_container(
        provider,
        DbConnectionProvider(),
        MlProvider(),
        TransactionServicesProvider(),
        SaldoServicesProvider(),
        CategoryServicesProvider(),
        LedgerServicesProvider(),
        EvaluationServicesProvider(),
        DashboardServicesProvider(),
        FastapiProvider(),
    )
    return container
