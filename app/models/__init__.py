from .base import BaseModel
from .user import User
from .saldo import Saldo
from .category import Category
from .transaction import Transaction

__all__ = [
    "BaseModel",
    "User",
    "Saldo",
    "Category",
    "Transaction",
]
