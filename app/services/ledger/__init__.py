import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID
from weakref import WeakValueDictionary

from dishka import Provider, Scope, provide
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.category import Category
from app.models.enums import TransactionType
from app.models.saldo import Saldo
from app.models.transaction import Transaction
from app.schemas.transactions import TransactionCreateSchema, TransactionUpdateSchema
from app.services.categories import CategoryRepository, CategoryResolver
from app.services.errors import (
    CategoryNotFoundError,
    InsufficientBalanceError,
    SaldoNotFoundError,
    TransactionNotFoundError,
)
from app.services.providers.protocols.category_classifier import ICategoryClassifier
from app.services.saldos import SaldoRepository
from app.services.transactions import TransactionRepository

logger = logging.getLogger(__name__)


def signed_effect(amount: Decimal, transaction_type: TransactionType) -> Decimal:
    return amount if transaction_type == TransactionType.INCOME else -amount


def apply_effect(
    balance: Decimal, amount: Decimal, transaction_type: TransactionType
) -> Decimal:
    return balance + signed_effect(amount, transaction_type)


def revert_effect(
    balance: Decimal, amount: Decimal, transaction_type: TransactionType
) -> Decimal:
    return balance - signed_effect(amount, transaction_type)


def ensure_non_negative(
    saldo: Saldo, new_balance: Decimal, transaction_type: TransactionType
) -> None:
    if transaction_type == TransactionType.EXPENSE and new_balance < 0:
        raise InsufficientBalanceError(
            f"Недостаточно средств на '{saldo.name}': "
            f"баланс {saldo.amount}, после операции {new_balance}"
        )


class SaldoLockRegistry:
    """Один asyncio.Lock на saldo: read-modify-write баланса идёт строго по очереди."""

    def __init__(self) -> None:
        self._locks: WeakValueDictionary[UUID, asyncio.Lock] = WeakValueDictionary()

    def lock_for(self, saldo_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(saldo_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[saldo_id] = lock
        return lock

    @contextlib.asynccontextmanager
    async def hold(self, *saldo_ids: UUID) -> AsyncIterator[None]:
        # fixed acquisition order, two saldos never deadlock
        locks = [self.lock_for(saldo_id) for saldo_id in sorted(set(saldo_ids), key=str)]
        async with contextlib.AsyncExitStack() as stack:
            for lock in locks:
                await stack.enter_async_context(lock)
            yield


@dataclass
class CreatedTransaction:
    transaction: Transaction
    category: Category
    predicted_category: str | None
    model_ready: bool


class BalanceLedgerManager:
    """
    Единственная точка изменения Saldo.amount.

    Каждая операция (создание, изменение, удаление транзакции) выполняется
    под блокировкой затронутых saldo и фиксируется одним коммитом: либо
    записаны и баланс, и транзакция, либо ничего.
    """

    def __init__(
        self,
        session: AsyncSession,
        transactions: TransactionRepository,
        saldos: SaldoRepository,
        categories: CategoryRepository,
        resolver: CategoryResolver,
        classifier: ICategoryClassifier,
        locks: SaldoLockRegistry,
    ):
        self.session = session
        self.transactions = transactions
        self.saldos = saldos
        self.categories = categories
        self.resolver = resolver
        self.classifier = classifier
        self.locks = locks

    async def _locked_saldo(self, saldo_id: UUID) -> Saldo:
        saldo = await self.saldos.get_for_update(saldo_id)
        if saldo is None:
            raise SaldoNotFoundError()
        return saldo

    async def _existing_category(self, category_id: UUID) -> Category:
        category = await self.categories.get(category_id)
        if category is None:
            raise CategoryNotFoundError()
        return category

    @contextlib.asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    async def create_transaction(self, data: TransactionCreateSchema) -> CreatedTransaction:
        if await self.saldos.get(data.saldo_id) is None:
            raise SaldoNotFoundError()

        predicted_label = None
        if data.category_id is None:
            predicted_label = await self.classifier.predict(data.description, data.type)

        async with self.locks.hold(data.saldo_id), self._unit_of_work():
            saldo = await self._locked_saldo(data.saldo_id)
            new_balance = apply_effect(saldo.amount, data.amount, data.type)
            ensure_non_negative(saldo, new_balance, data.type)

            if predicted_label is None:
                category = await self._existing_category(data.category_id)
            else:
                category = await self.resolver.resolve(predicted_label, data.type)

            saldo.amount = new_balance
            await self.saldos.save(saldo)
            transaction = await self.transactions.create(
                Transaction(
                    user_id=data.user_id,
                    category_id=category.id,
                    saldo_id=saldo.id,
                    amount=data.amount,
                    description=data.description,
                    type=data.type,
                )
            )

        logger.info(
            "Transaction %s created (%s %s on saldo %s, category=%s)",
            transaction.id,
            data.type,
            data.amount,
            data.saldo_id,
            category.name,
        )
        return CreatedTransaction(
            transaction=transaction,
            category=category,
            predicted_category=predicted_label,
            model_ready=self.classifier.is_ready,
        )

    async def _get_transaction(self, transaction_id: UUID) -> Transaction:
        transaction = await self.transactions.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError()
        return transaction

    async def _reload(self, transaction: Transaction) -> None:
        try:
            await self.session.refresh(transaction)
        except InvalidRequestError:
            raise TransactionNotFoundError()

    async def update_transaction(
        self, transaction_id: UUID, patch: TransactionUpdateSchema
    ) -> Transaction:
        transaction = await self._get_transaction(transaction_id)
        while True:
            original_saldo_id = transaction.saldo_id
            target_saldo_id = patch.saldo_id or original_saldo_id
            async with self.locks.hold(original_saldo_id, target_saldo_id):
                await self._reload(transaction)
                if transaction.saldo_id != original_saldo_id:
                    # moved to another saldo while we were waiting for the lock
                    continue
                async with self._unit_of_work():
                    await self._apply_update(transaction, patch, target_saldo_id)
                break

        logger.info("Transaction %s updated", transaction.id)
        return transaction

    async def _apply_update(
        self,
        transaction: Transaction,
        patch: TransactionUpdateSchema,
        target_saldo_id: UUID,
    ) -> None:
        new_amount = patch.amount if patch.amount is not None else transaction.amount
        new_type = patch.type or transaction.type

        original = await self._locked_saldo(transaction.saldo_id)
        reverted_balance = revert_effect(original.amount, transaction.amount, transaction.type)

        if target_saldo_id != transaction.saldo_id:
            target = await self._locked_saldo(target_saldo_id)
            target_balance = apply_effect(target.amount, new_amount, new_type)
            ensure_non_negative(target, target_balance, new_type)
            original.amount = reverted_balance
            target.amount = target_balance
            await self.saldos.save(target)
        else:
            target_balance = apply_effect(reverted_balance, new_amount, new_type)
            ensure_non_negative(original, target_balance, new_type)
            original.amount = target_balance
        await self.saldos.save(original)

        if patch.category_id is not None:
            transaction.category_id = (await self._existing_category(patch.category_id)).id
        if patch.description is not None:
            transaction.description = patch.description
        transaction.amount = new_amount
        transaction.type = new_type
        transaction.saldo_id = target_saldo_id
        await self.session.flush()

    async def delete_transaction(self, transaction_id: UUID) -> None:
        transaction = await self._get_transaction(transaction_id)
        while True:
            saldo_id = transaction.saldo_id
            async with self.locks.hold(saldo_id):
                await self._reload(transaction)
                if transaction.saldo_id != saldo_id:
                    continue
                async with self._unit_of_work():
                    saldo = await self._locked_saldo(saldo_id)
                    saldo.amount = revert_effect(
                        saldo.amount, transaction.amount, transaction.type
                    )
                    await self.saldos.save(saldo)
                    await self.transactions.delete(transaction)
                break

        logger.info("Transaction %s deleted, saldo %s reverted", transaction_id, saldo_id)


class LedgerServicesProvider(Provider):
    scope = Scope.REQUEST

    ledger = provide(BalanceLedgerManager)
    saldo_locks = provide(SaldoLockRegistry, scope=Scope.APP)
