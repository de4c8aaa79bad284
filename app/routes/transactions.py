import logging
from uuid import UUID

from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter
from starlette import status

from app.schemas.transactions import (
    TransactionCreatedSchema,
    TransactionCreateSchema,
    TransactionSchema,
    TransactionUpdateSchema,
)
from app.services.errors import TransactionNotFoundError
from app.services.filters import Paginated, PaginatedResponseSchema
from app.services.ledger import BalanceLedgerManager
from app.services.transactions import TransactionRepository

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
    route_class=DishkaRoute,
)
logger = logging.getLogger(__name__)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: TransactionCreateSchema,
    ledger: FromDishka[BalanceLedgerManager],
) -> TransactionCreatedSchema:
    """
    Создаёт транзакцию и меняет баланс saldo.

    Если ``category_id`` не передан, категория предсказывается моделью.
    """
    created = await ledger.create_transaction(data)
    base = TransactionSchema.model_validate(created.transaction)
    return TransactionCreatedSchema(
        **base.model_dump(),
        predicted_category=created.predicted_category,
        model_status="ready" if created.model_ready else "not_ready",
    )


@router.get("")
async def list_transactions(
    transactions: FromDishka[TransactionRepository],
    page: Paginated,
) -> PaginatedResponseSchema[TransactionSchema]:
    return PaginatedResponseSchema[TransactionSchema].model_validate(
        await transactions.all(page=page)
    )


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: UUID,
    transactions: FromDishka[TransactionRepository],
) -> TransactionSchema:
    transaction = await transactions.get(transaction_id)
    if transaction is None:
        raise TransactionNotFoundError()
    return TransactionSchema.model_validate(transaction)


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: UUID,
    patch: TransactionUpdateSchema,
    ledger: FromDishka[BalanceLedgerManager],
) -> TransactionSchema:
    transaction = await ledger.update_transaction(transaction_id, patch)
    return TransactionSchema.model_validate(transaction)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: UUID,
    ledger: FromDishka[BalanceLedgerManager],
) -> None:
    await ledger.delete_transaction(transaction_id)
