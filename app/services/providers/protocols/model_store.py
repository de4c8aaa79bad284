from typing import Protocol


class IModelStore(Protocol):
    """Хранилище сериализованной модели: основной файл и один слот бэкапа."""

    @property
    def location(self) -> str: ...

    @property
    def backup_location(self) -> str: ...

    def exists(self) -> bool: ...

    def backup_exists(self) -> bool: ...

    def read(self) -> str | None: ...

    def read_backup(self) -> str | None: ...

    def save(self, payload: str) -> None: ...

    def restore_backup(self) -> None: ...

    def discard(self) -> None: ...

    def clear(self) -> None: ...
