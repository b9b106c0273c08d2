import enum
from typing import Optional

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bookswap.models.base import BaseModel, PrimaryKeyType


class BookCondition(str, enum.Enum):
    NEW = "NEW"
    LIKE_NEW = "LIKE_NEW"
    VERY_GOOD = "VERY_GOOD"
    GOOD = "GOOD"
    ACCEPTABLE = "ACCEPTABLE"


class Book(BaseModel):
    """
    도서 카탈로그 테이블

    - digital_id: 실물 한 권에 고정된 식별자. 소유자가 바뀌어도 변하지 않으며
      재등록된 행끼리도 공유되어 전체 소유 이력 추적에 사용됨
    - point_value: 마지막으로 계산된 가치의 캐시. 요청 가격의 근거로 쓰이지 않음
    """

    __tablename__ = "books"
    __table_args__ = (
        Index("idx_books_owner", "owner_id"),
        Index("idx_books_title_author", "title", "author"),
    )

    id: Mapped[int] = mapped_column(PrimaryKeyType, primary_key=True, autoincrement=True)
    digital_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(300), nullable=False)
    condition: Mapped[BookCondition] = mapped_column(
        Enum(BookCondition, native_enum=False, length=20),
        nullable=False,
        default=BookCondition.GOOD,
    )
    owner_id: Mapped[int] = mapped_column(
        PrimaryKeyType, ForeignKey("users.id"), nullable=False
    )
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    point_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def __repr__(self):
        return f"<Book(id={self.id}, digital_id={self.digital_id}, owner_id={self.owner_id})>"
