"""Хранилища сериализованной модели классификатора."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from app.services.errors import ModelCorruptError, PersistenceError
from app.services.providers.protocols.model_store import IModelStore
from category_classifier import ModelFormatError, NaiveBayesClassifier

LOGGER = logging.getLogger(__name__)


def _fsync_directory(directory: Path) -> None:
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _is_loadable(payload: str) -> bool:
    try:
        NaiveBayesClassifier.loads(payload)
    except ModelFormatError:
        return False
    return True


def _atomic_write(path: Path, data: bytes) -> None:
    """Пишет во временный файл рядом и атомарно подменяет целевой."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with tmp_path.open("wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
    _fsync_directory(path.parent)


class FileModelStore(IModelStore):
    """
    Основной файл модели плюс один слот бэкапа.

    Перед перезаписью основного файла его текущее содержимое копируется в
    бэкап (предыдущий бэкап теряется), если оно читается как модель. Обе записи идут через временный файл и
    ``os.replace``, поэтому падение посреди записи оставляет либо старый
    валидный основной файл, либо валидный бэкап.
    """

    def __init__(self, primary_path: Path | str, backup_path: Path | str):
        self.primary_path = Path(primary_path)
        self.backup_path = Path(backup_path)

    @property
    def location(self) -> str:
        return str(self.primary_path)

    @property
    def backup_location(self) -> str:
        return str(self.backup_path)

    def exists(self) -> bool:
        return self.primary_path.is_file()

    def backup_exists(self) -> bool:
        return self.backup_path.is_file()

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise ModelCorruptError(f"Cannot read {path}: {exc}") from exc

    def read(self) -> str | None:
        return self._read(self.primary_path)

    def read_backup(self) -> str | None:
        return self._read(self.backup_path)

    def save(self, payload: str) -> None:
        try:
            if self.exists():
                current = self.primary_path.read_bytes()
                if _is_loadable(current.decode("utf-8", errors="replace")):
                    _atomic_write(self.backup_path, current)
                    LOGGER.info("Model backup written to %s", self.backup_path)
                else:
                    LOGGER.warning(
                        "Current model %s is unreadable, keeping the previous backup",
                        self.primary_path,
                    )
            _atomic_write(self.primary_path, payload.encode("utf-8"))
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.primary_path}: {exc}") from exc

    def restore_backup(self) -> None:
        try:
            _atomic_write(self.primary_path, self.backup_path.read_bytes())
        except OSError as exc:
            raise PersistenceError(
                f"Cannot restore {self.primary_path} from backup: {exc}"
            ) from exc

    def discard(self) -> None:
        try:
            self.primary_path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot delete {self.primary_path}: {exc}") from exc

    def clear(self) -> None:
        try:
            self.primary_path.unlink(missing_ok=True)
            self.backup_path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot delete model files: {exc}") from exc


class InMemoryModelStore(IModelStore):
    """Та же семантика, что у :class:`FileModelStore`, но без диска."""

    def __init__(self, primary: str | None = None, backup: str | None = None):
        self.primary = primary
        self.backup = backup

    @property
    def location(self) -> str:
        return "memory://model"

    @property
    def backup_location(self) -> str:
        return "memory://model_backup"

    def exists(self) -> bool:
        return self.primary is not None

    def backup_exists(self) -> bool:
        return self.backup is not None

    def read(self) -> str | None:
        return self.primary

    def read_backup(self) -> str | None:
        return self.backup

    def save(self, payload: str) -> None:
        if self.primary is not None and _is_loadable(self.primary):
            self.backup = self.primary
        self.primary = payload

    def restore_backup(self) -> None:
        self.primary = self.backup

    def discard(self) -> None:
        self.primary = None

    def clear(self) -> None:
        self.primary = None
        self.backup = None
