# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .book_repository import BookRepository
from .book_request_repository import BookRequestRepository
from .points_repository import PointsRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "BookRepository",
    "BookRequestRepository",
    "PointsRepository",
]
