import asyncio
import threading

import pytest

from app.models.enums import TransactionType
from app.services.errors import PersistenceError, TrainingInProgressError
from app.services.ml.model_store import FileModelStore, InMemoryModelStore
from app.services.ml.service import CategoryClassifierService, ClassifierState
from app.services.transactions import TransactionRepository
from category_classifier import UNCATEGORIZED, NaiveBayesClassifier, TrainingExample

EXPENSE = TransactionType.EXPENSE
INCOME = TransactionType.INCOME


def _trained_payload(label: str = "food") -> str:
    model = NaiveBayesClassifier()
    model.learn_many([TrainingExample.from_transaction("coffee", "expense", label)])
    return model.dumps()


class BrokenStore(InMemoryModelStore):
    def save(self, payload: str) -> None:
        raise PersistenceError("disk full")


class HalfClearStore(InMemoryModelStore):
    def clear(self) -> None:
        self.primary = None
        raise PersistenceError("backup is read-only")


class ThreadRecordingStore(InMemoryModelStore):
    def __init__(self):
        super().__init__()
        self.save_threads: list[int] = []

    def save(self, payload: str) -> None:
        self.save_threads.append(threading.get_ident())
        super().save(payload)


@pytest.fixture
def paused_paging(monkeypatch):
    """Останавливает обучение после первой страницы до release.set()."""
    reached = asyncio.Event()
    release = asyncio.Event()
    original = TransactionRepository.iter_training_examples

    async def paused(self, page_size):
        async for batch in original(self, page_size):
            yield batch
            reached.set()
            await release.wait()

    monkeypatch.setattr(TransactionRepository, "iter_training_examples", paused)
    return reached, release


@pytest.fixture
async def seeded(make_saldo, make_category, add_transactions):
    saldo = await make_saldo("1000")
    food = await make_category("food", EXPENSE)
    salary = await make_category("salary", INCOME)
    await add_transactions(
        saldo,
        [
            ("Coffee shop", EXPENSE, food),
            ("Grocery store", EXPENSE, food),
            ("Monthly salary", INCOME, salary),
            ("Salary bonus", INCOME, salary),
            ("Bakery coffee", EXPENSE, food),
        ],
    )
    return saldo


def test_load_valid_primary(session_maker, model_settings):
    store = InMemoryModelStore(primary=_trained_payload())
    service = CategoryClassifierService(store, session_maker, model_settings)
    assert service.load()
    assert service.is_ready
    assert service.state == ClassifierState.READY


def test_load_falls_back_to_backup_and_restores_primary(tmp_path, session_maker, model_settings):
    store = FileModelStore(tmp_path / "model.json", tmp_path / "model_backup.json")
    store.primary_path.write_text("{corrupted", encoding="utf-8")
    store.backup_path.write_text(_trained_payload("backup-label"), encoding="utf-8")

    service = CategoryClassifierService(store, session_maker, model_settings)
    assert service.load()
    assert service.is_ready
    assert service.model.labels == ["backup-label"]
    assert NaiveBayesClassifier.loads(store.read()).labels == ["backup-label"]


def test_load_missing_primary_uses_backup(session_maker, model_settings):
    store = InMemoryModelStore(backup=_trained_payload())
    service = CategoryClassifierService(store, session_maker, model_settings)
    assert service.load()
    assert store.read() == store.read_backup()


def test_load_with_everything_corrupt_starts_empty(tmp_path, session_maker, model_settings):
    store = FileModelStore(tmp_path / "model.json", tmp_path / "model_backup.json")
    store.primary_path.write_text("", encoding="utf-8")
    store.backup_path.write_text("garbage", encoding="utf-8")

    service = CategoryClassifierService(store, session_maker, model_settings)
    assert not service.load()
    assert not service.is_ready
    assert service.state == ClassifierState.UNINITIALIZED
    assert service.model.is_empty
    assert not store.exists()


def test_load_with_no_files(session_maker, model_settings):
    service = CategoryClassifierService(InMemoryModelStore(), session_maker, model_settings)
    assert not service.load()
    assert not service.is_ready


async def test_train_on_empty_store_keeps_readiness(session_maker, model_settings):
    store = InMemoryModelStore(primary=_trained_payload())
    service = CategoryClassifierService(store, session_maker, model_settings)
    service.load()

    result = await service.train()
    assert not result.trained
    assert service.is_ready
    assert service.model.labels == ["food"]
    assert service.last_trained_at is None


async def test_train_builds_and_persists_model(seeded, session_maker, model_settings):
    store = InMemoryModelStore()
    service = CategoryClassifierService(store, session_maker, model_settings)

    result = await service.train()
    assert result.trained
    assert result.examples == 5
    assert result.categories == ["food", "salary"]
    assert result.persisted
    assert service.is_ready
    assert service.last_trained_at is not None
    assert NaiveBayesClassifier.loads(store.read()).labels == ["food", "salary"]


async def test_retrain_moves_previous_model_to_backup(seeded, session_maker, model_settings):
    store = InMemoryModelStore(primary=_trained_payload("old"))
    service = CategoryClassifierService(store, session_maker, model_settings)
    service.load()

    await service.train()
    assert NaiveBayesClassifier.loads(store.read_backup()).labels == ["old"]


async def test_persistence_failure_keeps_model_in_memory(seeded, session_maker, model_settings):
    service = CategoryClassifierService(BrokenStore(), session_maker, model_settings)
    result = await service.train()
    assert result.trained
    assert not result.persisted
    assert service.is_ready


async def test_concurrent_explicit_train_is_rejected(seeded, session_maker, model_settings):
    service = CategoryClassifierService(InMemoryModelStore(), session_maker, model_settings)
    first = asyncio.create_task(service.train())
    await asyncio.sleep(0)
    with pytest.raises(TrainingInProgressError):
        await service.train()
    assert (await first).trained


async def test_predict_trains_lazily(seeded, session_maker, model_settings):
    service = CategoryClassifierService(InMemoryModelStore(), session_maker, model_settings)
    assert await service.predict("Coffee to go", EXPENSE) == "food"
    assert service.is_ready


async def test_predict_without_data_returns_sentinel(session_maker, model_settings):
    service = CategoryClassifierService(InMemoryModelStore(), session_maker, model_settings)
    assert await service.predict("anything", EXPENSE) == UNCATEGORIZED
    assert not service.is_ready


async def test_explain_returns_probabilities(seeded, session_maker, model_settings):
    service = CategoryClassifierService(InMemoryModelStore(), session_maker, model_settings)
    prediction = await service.explain("monthly salary", INCOME)
    assert prediction.category == "salary"
    assert set(prediction.proba) == {"food", "salary"}


async def test_reset_clears_model_and_files(seeded, session_maker, model_settings):
    store = InMemoryModelStore()
    service = CategoryClassifierService(store, session_maker, model_settings)
    await service.train()
    await service.train()
    assert store.backup_exists()

    await service.reset()
    assert not service.is_ready
    assert service.last_trained_at is None
    assert not store.exists() and not store.backup_exists()

    status = service.status()
    assert status.state == "uninitialized"
    assert status.total_categories == 0


async def test_untrained_primary_is_not_ready_and_trains_lazily(
    seeded, session_maker, model_settings
):
    store = InMemoryModelStore(primary=NaiveBayesClassifier().dumps())
    service = CategoryClassifierService(store, session_maker, model_settings)
    assert not service.load()
    assert not service.is_ready

    assert await service.predict("Coffee to go", EXPENSE) == "food"
    assert service.is_ready


async def test_untrained_primary_falls_back_to_backup(session_maker, model_settings):
    store = InMemoryModelStore(
        primary=NaiveBayesClassifier().dumps(), backup=_trained_payload("backup-label")
    )
    service = CategoryClassifierService(store, session_maker, model_settings)
    assert service.load()
    assert service.model.labels == ["backup-label"]


async def test_reset_clears_memory_even_if_files_fail(session_maker, model_settings):
    store = HalfClearStore(primary=_trained_payload(), backup=_trained_payload("old"))
    service = CategoryClassifierService(store, session_maker, model_settings)
    service.load()

    with pytest.raises(PersistenceError):
        await service.reset()

    assert not service.is_ready
    assert service.model.is_empty
    assert service.state == ClassifierState.UNINITIALIZED
    assert service.last_trained_at is None


async def test_predict_during_training_uses_previous_model(
    seeded, session_maker, model_settings, paused_paging
):
    reached, release = paused_paging
    service = CategoryClassifierService(
        InMemoryModelStore(primary=_trained_payload("old")), session_maker, model_settings
    )
    service.load()

    task = asyncio.create_task(service.train())
    await reached.wait()
    assert service.state == ClassifierState.TRAINING
    assert await service.predict("monthly salary", INCOME) == "old"

    release.set()
    assert (await task).trained
    assert await service.predict("monthly salary", INCOME) == "salary"
    assert service.state == ClassifierState.READY


async def test_cancelled_training_keeps_previous_model(
    seeded, session_maker, model_settings, paused_paging
):
    reached, _ = paused_paging
    old_payload = _trained_payload("old")
    store = InMemoryModelStore(primary=old_payload)
    service = CategoryClassifierService(store, session_maker, model_settings)
    service.load()

    task = asyncio.create_task(service.train())
    await reached.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert service.state == ClassifierState.READY
    assert service.model.labels == ["old"]
    assert store.read() == old_payload
    assert service.last_trained_at is None


async def test_cancelled_first_training_settles_uninitialized(
    seeded, session_maker, model_settings, paused_paging
):
    reached, _ = paused_paging
    store = InMemoryModelStore()
    service = CategoryClassifierService(store, session_maker, model_settings)

    task = asyncio.create_task(service.train())
    await reached.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert service.state == ClassifierState.UNINITIALIZED
    assert not service.is_ready
    assert not store.exists()


async def test_model_is_saved_off_the_event_loop_thread(
    seeded, session_maker, model_settings
):
    store = ThreadRecordingStore()
    service = CategoryClassifierService(store, session_maker, model_settings)
    assert (await service.train()).persisted
    assert store.save_threads
    assert threading.get_ident() not in store.save_threads
