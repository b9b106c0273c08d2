import enum
from typing import Optional

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from bookswap.models.base import BaseModel, PrimaryKeyType


class BookRequestStatus(str, enum.Enum):
    PENDING = "PENDING"  # 최초 상태, 포인트 예약됨
    ACCEPTED = "ACCEPTED"  # 소유자 수락, 인계 대기
    COMPLETED = "COMPLETED"  # 인계 완료 (terminal)
    DECLINED = "DECLINED"  # 소유자 거절 또는 다른 요청 수락 (terminal)
    CANCELLED = "CANCELLED"  # 요청자 취소 (terminal)

    @classmethod
    def active(cls):
        return (cls.PENDING, cls.ACCEPTED)


_ACTIVE_STATUS_CLAUSE = text("status IN ('PENDING', 'ACCEPTED')")
_ACCEPTED_STATUS_CLAUSE = text("status = 'ACCEPTED'")


class BookRequest(BaseModel):
    """
    도서 교환 요청 테이블

    - owner_id 는 요청 시점의 소유자 스냅샷
    - points_offered 는 생성 시점에 예약된 금액이며 이후 재계산되지 않음
    - 동일 (book_id, requester_id) 쌍의 활성 요청은 최대 1건 (부분 유니크 인덱스)
    - 도서당 ACCEPTED 요청은 최대 1건 (부분 유니크 인덱스)
    """

    __tablename__ = "book_requests"
    __table_args__ = (
        CheckConstraint("points_offered >= 0", name="ck_book_requests_points"),
        Index(
            "uq_book_requests_active_pair",
            "book_id",
            "requester_id",
            unique=True,
            postgresql_where=_ACTIVE_STATUS_CLAUSE,
            sqlite_where=_ACTIVE_STATUS_CLAUSE,
        ),
        Index(
            "uq_book_requests_accepted_book",
            "book_id",
            unique=True,
            postgresql_where=_ACCEPTED_STATUS_CLAUSE,
            sqlite_where=_ACCEPTED_STATUS_CLAUSE,
        ),
        Index("idx_book_requests_owner_status", "owner_id", "status"),
        Index("idx_book_requests_requester_status", "requester_id", "status"),
    )

    id: Mapped[int] = mapped_column(PrimaryKeyType, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(
        PrimaryKeyType, ForeignKey("books.id"), nullable=False, index=True
    )
    requester_id: Mapped[int] = mapped_column(
        PrimaryKeyType, ForeignKey("users.id"), nullable=False
    )
    owner_id: Mapped[int] = mapped_column(
        PrimaryKeyType, ForeignKey("users.id"), nullable=False
    )
    points_offered: Mapped[int] = mapped_column(Integer, nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[BookRequestStatus] = mapped_column(
        Enum(BookRequestStatus, native_enum=False, length=20),
        nullable=False,
        default=BookRequestStatus.PENDING,
    )
