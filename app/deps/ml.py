from dishka import Provider, Scope, provide
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.ml.model_store import FileModelStore
from app.services.ml.service import CategoryClassifierService
from app.services.providers.protocols.category_classifier import ICategoryClassifier
from app.services.providers.protocols.model_store import IModelStore
from app.settings.ml import ModelSettings


class MlProvider(Provider):
    scope = Scope.APP

    @provide
    def get_model_store(self, settings: ModelSettings) -> IModelStore:
        return FileModelStore(settings.model_path, settings.backup_path)

    @provide
    def get_classifier_service(
        self,
        store: IModelStore,
        session_maker: async_sessionmaker[AsyncSession],
        settings: ModelSettings,
    ) -> CategoryClassifierService:
        """Синглтон: модель живёт один на процесс."""
        return CategoryClassifierService(store, session_maker, settings)

    @provide
    def get_category_classifier(
        self, service: CategoryClassifierService
    ) -> ICategoryClassifier:
        return service
