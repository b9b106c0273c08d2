from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from bookswap.models.point_transaction import TransactionType


class PointTransactionEntry(BaseModel):
    """포인트 원장 항목"""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="원장 항목 ID")
    user_id: int = Field(..., description="사용자 ID")
    amount: int = Field(..., description="포인트 변화량 (양수=적립, 음수=차감)")
    type: TransactionType = Field(..., description="거래 유형")
    description: str = Field(..., description="거래 설명")
    book_id: Optional[int] = Field(None, description="관련 도서 ID")
    created_at: datetime = Field(..., description="생성 시간")


class TransactionHistoryResponse(BaseModel):
    """커서 기반 거래 내역 응답"""

    transactions: List[PointTransactionEntry]
    next_cursor: Optional[int] = Field(
        None, description="다음 페이지 첫 항목 ID (없으면 마지막 페이지)"
    )


class PointsSummaryResponse(BaseModel):
    """포인트 현황"""

    current_points: int
    total_earned: int = Field(..., description="등록/교환으로 적립한 포인트 (충전 제외)")
    total_spent: int
    transaction_count: int


class BonusPointsRequest(BaseModel):
    """외부 충전 등 보너스 지급 요청 (관리자)"""

    user_id: int = Field(..., gt=0)
    points: int = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=255)


class PointsTransactionResponse(BaseModel):
    success: bool
    transaction: PointTransactionEntry
    balance_after: int


class PointsIntegrityCheckResponse(BaseModel):
    """포인트 정합성 검증 응답"""

    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    user_id: Optional[int] = Field(None, description="사용자 ID (단일 사용자 검증 시)")
    calculated_balance: Optional[int] = Field(None, description="원장 합계")
    recorded_balance: Optional[int] = Field(None, description="users.points 값")
    entry_count: Optional[int] = Field(None, description="원장 항목 수")
    mismatched_user_ids: Optional[List[int]] = Field(
        None, description="불일치 사용자 (전체 검증 시)"
    )
    user_count: Optional[int] = Field(None, description="검증한 사용자 수")
    verified_at: datetime = Field(..., description="검증 시간")
