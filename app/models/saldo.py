from decimal import Decimal

from sqlalchemy import Numeric
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class Saldo(BaseModel):
    __tablename__ = "saldos"

    name: Mapped[str]
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    description: Mapped[str]
