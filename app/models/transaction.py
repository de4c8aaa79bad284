from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel
from app.models.enums import TransactionType


if TYPE_CHECKING:
    from app.models.category import Category
    from app.models.saldo import Saldo
    from app.models.user import User


class Transaction(BaseModel):
    __tablename__ = "transactions"

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    description: Mapped[str] = mapped_column(String(1024))
    type: Mapped[TransactionType]

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"))
    user: Mapped["User"] = relationship()

    category_id: Mapped[UUID] = mapped_column(ForeignKey("categories.id"))
    category: Mapped["Category"] = relationship()

    saldo_id: Mapped[UUID] = mapped_column(ForeignKey("saldos.id"))
    saldo: Mapped["Saldo"] = relationship()
