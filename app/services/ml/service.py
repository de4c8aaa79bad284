import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.enums import TransactionType
from app.schemas import ml as ml_schemas
from app.services.errors import ModelCorruptError, PersistenceError, TrainingInProgressError
from app.services.providers.protocols.category_classifier import ICategoryClassifier
from app.services.providers.protocols.model_store import IModelStore
from app.services.transactions import TransactionRepository
from app.settings.ml import ModelSettings
from category_classifier import (
    UNCATEGORIZED,
    ModelFormatError,
    NaiveBayesClassifier,
    PredictionResponse,
    build_input_text,
)

logger = logging.getLogger(__name__)


class ClassifierState(StrEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    TRAINING = "training"
    READY = "ready"


class CategoryClassifierService(ICategoryClassifier):
    """
    Владелец «боевой» модели категоризации транзакций.

    Живёт один на процесс (APP-скоуп контейнера) и хранит ссылку на текущую
    модель вместе с метаданными готовности. Жизненный цикл:

    - :meth:`load` при старте поднимает модель из хранилища, при
      повреждении откатывается на бэкап;
    - :meth:`train` строит новую модель по всем транзакциям постранично и
      подменяет ссылку целиком, после чего сохраняет её;
    - :meth:`predict` никогда не бросает исключений: если модель не готова,
      пробует обучиться, иначе возвращает ``"uncategorized"``;
    - :meth:`reset` удаляет файлы и возвращает сервис в исходное состояние.

    Одновременно выполняется не больше одного обучения. Явный повторный
    вызов :meth:`train` во время обучения отклоняется, а ленивое обучение из
    :meth:`predict` дожидается уже идущего.
    """

    def __init__(
        self,
        store: IModelStore,
        session_maker: async_sessionmaker[AsyncSession],
        settings: ModelSettings,
    ) -> None:
        self.store = store
        self.session_maker = session_maker
        self.settings = settings
        self._model = NaiveBayesClassifier()
        self._state = ClassifierState.UNINITIALIZED
        self._ready = False
        self._last_trained_at: datetime | None = None
        self._training_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def state(self) -> ClassifierState:
        return self._state

    @property
    def last_trained_at(self) -> datetime | None:
        return self._last_trained_at

    @property
    def model(self) -> NaiveBayesClassifier:
        return self._model

    def _settle_state(self) -> None:
        self._state = ClassifierState.READY if self._ready else ClassifierState.UNINITIALIZED

    def _parse(self, payload: str | None, source: str) -> NaiveBayesClassifier | None:
        if payload is None:
            logger.info("No model found at %s", source)
            return None
        try:
            return NaiveBayesClassifier.loads(payload)
        except ModelFormatError as exc:
            logger.error("Failed to load model from %s: %s", source, exc)
            return None

    def _read_primary(self) -> NaiveBayesClassifier | None:
        try:
            return self._parse(self.store.read(), self.store.location)
        except ModelCorruptError as exc:
            logger.error("Failed to read model: %s", exc.detail)
            return None

    def _read_backup(self) -> NaiveBayesClassifier | None:
        try:
            return self._parse(self.store.read_backup(), self.store.backup_location)
        except ModelCorruptError as exc:
            logger.error("Failed to read model backup: %s", exc.detail)
            return None

    def load(self) -> bool:
        """Поднимает модель из хранилища. Не бросает исключений."""
        self._state = ClassifierState.LOADING
        try:
            model = self._read_primary()
            if model is None:
                model = self._read_backup()
                if model is not None:
                    logger.info("Backup model loaded from %s", self.store.backup_location)
                    try:
                        self.store.restore_backup()
                        logger.info("Restored %s from backup", self.store.location)
                    except PersistenceError:
                        logger.exception("Failed to restore model file from backup")
        except Exception:
            logger.exception("Unexpected error while loading model")
            model = None

        if model is None:
            self._fall_back_to_empty()
            return False

        self._model = model
        self._ready = True
        self._settle_state()
        logger.info(
            "Model loaded from %s (%d categories)",
            self.store.location,
            len(model.labels),
        )
        return True

    def _fall_back_to_empty(self) -> None:
        had_artifacts = self.store.exists() or self.store.backup_exists()
        if self.store.exists():
            try:
                self.store.discard()
                logger.info("Deleted corrupt model file %s", self.store.location)
            except PersistenceError:
                logger.exception("Failed to delete corrupt model file")
        if had_artifacts:
            logger.warning(
                "Model and its backup are unusable, starting with an empty classifier; "
                "previously trained state is lost until the next training run"
            )
        self._model = NaiveBayesClassifier()
        self._ready = False
        self._settle_state()

    async def train(self) -> ml_schemas.TrainingResult:
        if self._training_lock.locked():
            raise TrainingInProgressError()
        async with self._training_lock:
            return await self._train()

    async def _train(self) -> ml_schemas.TrainingResult:
        logger.info("Training model...")
        started = time.monotonic()
        self._state = ClassifierState.TRAINING
        try:
            model = NaiveBayesClassifier()
            examples = 0
            categories: set[str] = set()
            async with self.session_maker() as session:
                repository = TransactionRepository(session)
                async for batch in repository.iter_training_examples(
                    self.settings.training_page_size
                ):
                    examples += model.learn_many(batch)
                    categories.update(example.label for example in batch)

            if not examples:
                logger.info("No transactions found for training.")
                return ml_schemas.TrainingResult(
                    trained=False, last_trained_at=self._last_trained_at
                )

            self._model = model
            self._ready = True
            persisted = await asyncio.to_thread(self.persist)
            self._last_trained_at = datetime.now(timezone.utc)
        except Exception:
            logger.exception("Model training failed")
            raise
        finally:
            self._settle_state()

        duration = time.monotonic() - started
        logger.info("Model training completed in %.2fs", duration)
        logger.info("Trained with %d transactions", examples)
        logger.info("Categories used: %s", ", ".join(sorted(categories)))
        return ml_schemas.TrainingResult(
            trained=True,
            examples=examples,
            categories=sorted(categories),
            duration_seconds=duration,
            persisted=persisted,
            last_trained_at=self._last_trained_at,
        )

    def persist(self) -> bool:
        try:
            self.store.save(self._model.dumps())
        except PersistenceError:
            logger.exception("Failed to save model to %s", self.store.location)
            return False
        logger.info("Model saved to %s", self.store.location)
        return True

    async def _ensure_ready(self) -> None:
        async with self._training_lock:
            if self._ready:
                return
            logger.warning("Model not ready - attempting to train...")
            await self._train()

    async def predict(self, description: str, transaction_type: TransactionType) -> str:
        try:
            if not self._ready:
                await self._ensure_ready()
            if not self._ready:
                return UNCATEGORIZED
            text = build_input_text(description, str(transaction_type))
            label = self._model.categorize(text)
            logger.debug("Prediction: %r -> %r", text, label)
            return label or UNCATEGORIZED
        except Exception:
            logger.exception("Prediction failed")
            return UNCATEGORIZED

    async def explain(
        self, description: str, transaction_type: TransactionType
    ) -> PredictionResponse:
        category = await self.predict(description, transaction_type)
        text = build_input_text(description, str(transaction_type))
        return PredictionResponse(category=category, proba=self._model.predict_proba(text))

    async def reset(self) -> None:
        """Сбрасывает модель в памяти, затем удаляет файлы; ошибка удаления пробрасывается."""
        async with self._training_lock:
            self._model = NaiveBayesClassifier()
            self._ready = False
            self._last_trained_at = None
            self._settle_state()
            await asyncio.to_thread(self.store.clear)
        logger.info("Model reset")

    def status(self) -> ml_schemas.ClassifierStatus:
        return ml_schemas.ClassifierStatus(
            is_ready=self._ready,
            state=self._state.value,
            last_trained_at=self._last_trained_at,
            model_path=self.store.location,
            model_exists=self.store.exists(),
            backup_path=self.store.backup_location,
            backup_exists=self.store.backup_exists(),
            total_categories=len(self._model.labels) if self._ready else 0,
        )
