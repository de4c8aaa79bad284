from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal
from uuid import UUID

from pydantic import Field, StringConstraints

from app.models.enums import TransactionType
from app.schemas.base import BaseSchema

PositiveAmount = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]
Description = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1024)
]


class TransactionCreateSchema(BaseSchema):
    user_id: UUID
    saldo_id: UUID
    amount: PositiveAmount
    description: Description
    type: TransactionType
    category_id: UUID | None = None


class TransactionUpdateSchema(BaseSchema):
    category_id: UUID | None = None
    saldo_id: UUID | None = None
    amount: PositiveAmount | None = None
    description: Description | None = None
    type: TransactionType | None = None


class TransactionSchema(BaseSchema):
    id: UUID
    user_id: UUID
    category_id: UUID
    saldo_id: UUID
    amount: Decimal
    description: str
    type: TransactionType
    created_at: datetime
    updated_at: datetime


class TransactionCreatedSchema(TransactionSchema):
    predicted_category: str | None = None
    model_status: Literal["ready", "not_ready"]
