"""
포인트 리포지토리 - 잔액 변경과 원장 기록

이 파일은 포인트 시스템의 저장소 계층을 담당합니다:
1. 포인트 적립/차감 (users.points 원자적 증감 + 원장 행 1건)
2. 잔액 부족 시 차감 거부 (조건부 UPDATE)
3. 커서 기반 거래 내역 조회
4. 데이터 정합성 검증

핵심 특징:
- 잔액 변경은 항상 SQL 레벨의 증감식으로 수행되어 동시 요청 간 lost update 가 없습니다
- 차감은 `points >= n` 조건을 건 UPDATE 로만 수행되어 잔액이 음수가 되지 않습니다
- 이 리포지토리는 commit 하지 않습니다. 호출 측 서비스가 원자 단위를 소유합니다
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import and_, case, desc, func, or_
from sqlalchemy.orm import Session

from bookswap.models.point_transaction import (
    PointTransaction as PointTransactionModel,
    TransactionType,
)
from bookswap.models.user import User as UserModel
from bookswap.schemas.points import (
    PointTransactionEntry,
    PointsIntegrityCheckResponse,
    PointsSummaryResponse,
)
from bookswap.repositories.base import BaseRepository

EARNING_TYPES = (TransactionType.EARNED_LISTING, TransactionType.EARNED_EXCHANGE)


class PointsRepository(BaseRepository[PointTransactionModel, PointTransactionEntry]):
    """
    포인트 리포지토리

    주요 기능:
    1. 원자성 - 잔액 증감과 원장 행 추가가 같은 세션 트랜잭션에서 flush 됨
    2. 음수 방지 - 조건부 차감
    3. 완전한 감사 추적 - 모든 포인트 변동 기록 (행은 수정/삭제하지 않음)
    """

    def __init__(self, db: Session):
        super().__init__(PointTransactionModel, PointTransactionEntry, db)

    def get_balance(self, user_id: int) -> Optional[int]:
        """
        사용자의 현재 포인트 잔액 조회

        identity map 을 거치지 않고 컬럼을 직접 읽으므로 같은 트랜잭션 안의
        증감 결과가 그대로 보인다. 사용자가 없으면 None.
        """
        return (
            self.db.query(UserModel.points).filter(UserModel.id == user_id).scalar()
        )

    def _append(
        self,
        user_id: int,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        book_id: Optional[int],
    ) -> PointTransactionModel:
        entry = self.model_class(
            user_id=user_id,
            amount=amount,
            type=transaction_type,
            description=description,
            book_id=book_id,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def credit(
        self,
        user_id: int,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        book_id: Optional[int] = None,
    ) -> Optional[PointTransactionModel]:
        """
        포인트 적립

        Args:
            user_id: 대상 사용자 ID
            amount: 적립 포인트 (0 이상)
            transaction_type: 거래 유형
            description: 사람이 읽는 거래 설명
            book_id: 관련 도서 ID (선택사항)

        Returns:
            생성된 원장 행. 사용자가 없으면 None (아무것도 기록하지 않음)
        """
        if amount < 0:
            raise ValueError("credit amount must be non-negative")

        updated = (
            self.db.query(UserModel)
            .filter(UserModel.id == user_id)
            .update(
                {UserModel.points: UserModel.points + amount},
                synchronize_session=False,
            )
        )
        if updated == 0:
            return None

        return self._append(user_id, amount, transaction_type, description, book_id)

    def debit(
        self,
        user_id: int,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        book_id: Optional[int] = None,
    ) -> Optional[PointTransactionModel]:
        """
        포인트 차감 (조건부)

        `UPDATE users SET points = points - n WHERE id = ? AND points >= n`
        로 수행되어 동시에 두 요청이 같은 잔액을 쓰려 해도 하나만 성공한다.

        Returns:
            생성된 원장 행 (amount 는 음수로 기록). 잔액 부족 또는 사용자 부재 시 None
        """
        if amount < 0:
            raise ValueError("debit amount must be non-negative")

        updated = (
            self.db.query(UserModel)
            .filter(and_(UserModel.id == user_id, UserModel.points >= amount))
            .update(
                {UserModel.points: UserModel.points - amount},
                synchronize_session=False,
            )
        )
        if updated == 0:
            return None

        return self._append(user_id, -amount, transaction_type, description, book_id)

    def get_history(
        self, user_id: int, limit: int, cursor: Optional[int] = None
    ) -> Tuple[List[PointTransactionEntry], Optional[int]]:
        """
        사용자 거래 내역 조회 (최신순, 커서 기반)

        정렬은 (created_at desc, id desc). cursor 는 다음 페이지 첫 행의 id 이며
        그 행부터 포함해서 반환한다. limit + 1 건을 읽어 다음 페이지 유무를 판단.

        Returns:
            (이번 페이지 항목들, 다음 커서 또는 None)
        """
        query = self.db.query(self.model_class).filter(
            self.model_class.user_id == user_id
        )

        if cursor is not None:
            anchor = (
                self.db.query(self.model_class.created_at)
                .filter(
                    and_(
                        self.model_class.id == cursor,
                        self.model_class.user_id == user_id,
                    )
                )
                .scalar()
            )
            if anchor is None:
                return [], None
            query = query.filter(
                or_(
                    self.model_class.created_at < anchor,
                    and_(
                        self.model_class.created_at == anchor,
                        self.model_class.id <= cursor,
                    ),
                )
            )

        rows = (
            query.order_by(desc(self.model_class.created_at), desc(self.model_class.id))
            .limit(limit + 1)
            .all()
        )

        next_cursor = None
        if len(rows) > limit:
            next_cursor = rows[limit].id
            rows = rows[:limit]

        return self._to_schemas(rows), next_cursor

    def get_summary(self, user_id: int) -> PointsSummaryResponse:
        """
        포인트 현황 집계

        - total_earned: 등록/교환 보상만 합산 (충전·환불 제외)
        - total_spent: 음수 거래의 절댓값 합
        """
        earned, spent, count = (
            self.db.query(
                func.coalesce(
                    func.sum(
                        case(
                            (
                                self.model_class.type.in_(EARNING_TYPES),
                                self.model_class.amount,
                            ),
                            else_=0,
                        )
                    ),
                    0,
                ),
                func.coalesce(
                    func.sum(
                        case(
                            (self.model_class.amount < 0, -self.model_class.amount),
                            else_=0,
                        )
                    ),
                    0,
                ),
                func.count(self.model_class.id),
            )
            .filter(self.model_class.user_id == user_id)
            .one()
        )

        return PointsSummaryResponse(
            current_points=self.get_balance(user_id) or 0,
            total_earned=int(earned),
            total_spent=int(spent),
            transaction_count=int(count),
        )

    def verify_integrity_for_user(self, user_id: int) -> PointsIntegrityCheckResponse:
        """
        특정 사용자의 포인트 정합성 검증

        검증 방식:
        1. 모든 원장 행의 amount 합계 계산
        2. users.points 와 비교
        3. 일치하지 않으면 MISMATCH
        """
        calculated, entry_count = (
            self.db.query(
                func.coalesce(func.sum(self.model_class.amount), 0),
                func.count(self.model_class.id),
            )
            .filter(self.model_class.user_id == user_id)
            .one()
        )
        recorded = self.get_balance(user_id) or 0

        return PointsIntegrityCheckResponse(
            status="OK" if int(calculated) == recorded else "MISMATCH",
            user_id=user_id,
            calculated_balance=int(calculated),
            recorded_balance=recorded,
            entry_count=int(entry_count),
            verified_at=datetime.now(timezone.utc),
        )

    def verify_global_integrity(self) -> PointsIntegrityCheckResponse:
        """전체 사용자 정합성 검증 - 원장 합계와 잔액이 다른 사용자 목록 반환"""
        ledger_sums = (
            self.db.query(
                self.model_class.user_id.label("user_id"),
                func.sum(self.model_class.amount).label("total"),
            )
            .group_by(self.model_class.user_id)
            .subquery()
        )

        rows = (
            self.db.query(
                UserModel.id,
                UserModel.points,
                func.coalesce(ledger_sums.c.total, 0),
            )
            .outerjoin(ledger_sums, ledger_sums.c.user_id == UserModel.id)
            .all()
        )

        mismatched = [
            user_id for user_id, points, total in rows if int(total) != int(points)
        ]
        entry_count = self.db.query(func.count(self.model_class.id)).scalar() or 0

        return PointsIntegrityCheckResponse(
            status="OK" if not mismatched else "MISMATCH",
            mismatched_user_ids=mismatched,
            user_count=len(rows),
            entry_count=int(entry_count),
            verified_at=datetime.now(timezone.utc),
        )
