from typing import Protocol

from app.models.enums import TransactionType


class ICategoryClassifier(Protocol):
    @property
    def is_ready(self) -> bool: ...

    async def predict(
        self, description: str, transaction_type: TransactionType
    ) -> str: ...
