from sqlalchemy import Index, func
from sqlalchemy.orm import Mapped

from app.models.base import BaseModel
from app.models.enums import TransactionType


class Category(BaseModel):
    __tablename__ = "categories"

    name: Mapped[str]
    type: Mapped[TransactionType]
    description: Mapped[str]


Index(
    "uq_categories_name_type",
    func.lower(Category.name),
    Category.type,
    unique=True,
)
