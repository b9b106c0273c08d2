"""
포인트 원장 데이터 모델

사용자 포인트 잔액(users.points)의 모든 변동은 이 테이블의 행 1건과 짝을 이뤄
같은 DB 트랜잭션에서 기록됩니다. 행은 수정/삭제되지 않으며 정정은 REFUND 같은
상쇄 거래로만 이루어집니다.
"""

import enum
from typing import Optional

from sqlalchemy import Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from bookswap.models.base import BaseModel, PrimaryKeyType


class TransactionType(str, enum.Enum):
    EARNED_LISTING = "EARNED_LISTING"  # 도서 등록 보상
    EARNED_EXCHANGE = "EARNED_EXCHANGE"  # 교환 완료 시 기존 소유자 지급
    SPENT_REQUEST = "SPENT_REQUEST"  # 요청 생성 시 예약(차감)
    REFUND = "REFUND"  # 거절/취소 환불
    BONUS = "BONUS"  # 외부 충전 등


class PointTransaction(BaseModel):
    __tablename__ = "point_transactions"
    __table_args__ = (
        Index("idx_point_transactions_user_created", "user_id", "created_at", "id"),
    )

    id: Mapped[int] = mapped_column(PrimaryKeyType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        PrimaryKeyType, ForeignKey("users.id"), nullable=False
    )
    # 양수 = 적립, 음수 = 차감
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, native_enum=False, length=20), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    book_id: Mapped[Optional[int]] = mapped_column(
        PrimaryKeyType, ForeignKey("books.id"), nullable=True
    )
