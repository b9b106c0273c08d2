from .base import Base
from .user import User, UserRole
from .book import Book, BookCondition
from .book_request import BookRequest, BookRequestStatus
from .point_transaction import PointTransaction, TransactionType

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Book",
    "BookCondition",
    "BookRequest",
    "BookRequestStatus",
    "PointTransaction",
    "TransactionType",
]
