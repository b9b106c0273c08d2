import logging
from typing import Optional

from sqlalchemy.orm import Session

from bookswap.config import Settings
from bookswap.core.exceptions import NotFoundError
from bookswap.database.session import atomic
from bookswap.models.point_transaction import TransactionType
from bookswap.repositories.points_repository import PointsRepository
from bookswap.schemas.points import (
    PointTransactionEntry,
    PointsIntegrityCheckResponse,
    PointsSummaryResponse,
    PointsTransactionResponse,
    TransactionHistoryResponse,
)

logger = logging.getLogger(__name__)


class PointService:
    """포인트 원장 조회 및 외부 충전 처리를 담당하는 서비스

    교환 흐름 안의 적립/차감은 ExchangeService 가 같은 원자 단위 안에서
    PointsRepository 를 직접 호출한다.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.points_repo = PointsRepository(db)

    def get_balance(self, user_id: int) -> int:
        balance = self.points_repo.get_balance(user_id)
        if balance is None:
            raise NotFoundError("User not found")
        return balance

    def get_points_summary(self, user_id: int) -> PointsSummaryResponse:
        """사용자 포인트 현황 (잔액, 누적 적립/사용, 거래 수)"""
        self.get_balance(user_id)
        return self.points_repo.get_summary(user_id)

    def get_history(
        self, user_id: int, cursor: Optional[int] = None, limit: Optional[int] = None
    ) -> TransactionHistoryResponse:
        """거래 내역 조회 (최신순)

        Args:
            user_id: 사용자 ID
            cursor: 이전 응답의 next_cursor
            limit: 페이지 크기 (1~50, 기본 20)
        """
        if limit is None:
            limit = self.settings.TRANSACTION_HISTORY_DEFAULT_LIMIT
        limit = max(1, min(limit, self.settings.TRANSACTION_HISTORY_MAX_LIMIT))

        entries, next_cursor = self.points_repo.get_history(
            user_id=user_id, limit=limit, cursor=cursor
        )
        return TransactionHistoryResponse(transactions=entries, next_cursor=next_cursor)

    def add_bonus_points(
        self, user_id: int, points: int, description: Optional[str] = None
    ) -> PointsTransactionResponse:
        """외부 충전 완료 등으로 보너스 포인트 지급

        잔액 증가와 BONUS 원장 행을 하나의 원자 단위로 기록한다.
        """
        description = description or f"Purchased {points:,} points"

        with atomic(self.db):
            entry = self.points_repo.credit(
                user_id=user_id,
                amount=points,
                transaction_type=TransactionType.BONUS,
                description=description,
            )
            if entry is None:
                raise NotFoundError("User not found")
            balance_after = self.points_repo.get_balance(user_id)
            transaction = PointTransactionEntry.model_validate(entry)

        logger.info(f"Bonus {points} points credited to user {user_id}")
        return PointsTransactionResponse(
            success=True, transaction=transaction, balance_after=balance_after
        )

    def verify_user_integrity(self, user_id: int) -> PointsIntegrityCheckResponse:
        """특정 사용자 정합성 검증 (원장 합계 == users.points)"""
        self.get_balance(user_id)
        result = self.points_repo.verify_integrity_for_user(user_id)
        if result.status != "OK":
            logger.error(
                f"Points integrity mismatch for user {user_id}: "
                f"ledger={result.calculated_balance} recorded={result.recorded_balance}"
            )
        return result

    def verify_global_integrity(self) -> PointsIntegrityCheckResponse:
        result = self.points_repo.verify_global_integrity()
        if result.status != "OK":
            logger.error(
                f"Points integrity mismatch for users: {result.mismatched_user_ids}"
            )
        return result
