"""
도서 가치 산정 엔진

points = round(base * condition * rarity * demand)

- condition: 도서 상태별 고정 배수
- rarity: 교환 가능한 유사 도서(제목/저자 부분 일치, 자기 자신 포함) 수에 따른 배수
- demand: 유사 도서에 걸린 PENDING 요청 수에 따른 배수

반올림은 half-up (x.5 는 올림). 계산은 Decimal 로 수행해 부동소수 오차 없이
같은 카탈로그 상태에서 항상 같은 값을 돌려준다.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bookswap.config import Settings
from bookswap.core.exceptions import NotFoundError
from bookswap.models.book import BookCondition
from bookswap.repositories.book_repository import BookRepository
from bookswap.repositories.book_request_repository import BookRequestRepository
from bookswap.schemas.book import Book
from bookswap.schemas.exchange import BookValueBreakdown, BookValueResponse
from bookswap.services.redis_service import RedisService

logger = logging.getLogger(__name__)

CONDITION_MULTIPLIERS: Dict[BookCondition, Decimal] = {
    BookCondition.NEW: Decimal("1.5"),
    BookCondition.LIKE_NEW: Decimal("1.3"),
    BookCondition.VERY_GOOD: Decimal("1.1"),
    BookCondition.GOOD: Decimal("1.0"),
    BookCondition.ACCEPTABLE: Decimal("0.7"),
}

CONDITION_LABELS: Dict[BookCondition, str] = {
    BookCondition.NEW: "New",
    BookCondition.LIKE_NEW: "Like New",
    BookCondition.VERY_GOOD: "Very Good",
    BookCondition.GOOD: "Good",
    BookCondition.ACCEPTABLE: "Acceptable",
}


def rarity_multiplier(copies_in_system: int) -> Decimal:
    if copies_in_system <= 1:
        return Decimal("1.5")
    if copies_in_system <= 3:
        return Decimal("1.3")
    if copies_in_system <= 5:
        return Decimal("1.15")
    if copies_in_system <= 10:
        return Decimal("1.0")
    return Decimal("0.85")


def demand_multiplier(pending_requests: int) -> Decimal:
    if pending_requests >= 10:
        return Decimal("1.5")
    if pending_requests >= 5:
        return Decimal("1.3")
    if pending_requests >= 3:
        return Decimal("1.15")
    if pending_requests >= 1:
        return Decimal("1.05")
    return Decimal("1.0")


def calculate_points(
    base_points: int,
    condition: BookCondition,
    copies_in_system: int,
    pending_requests: int,
) -> BookValueResponse:
    """순수 함수 - 카탈로그 집계 값만으로 가치와 내역을 계산"""
    condition_mult = CONDITION_MULTIPLIERS.get(condition, Decimal("1.0"))
    rarity_mult = rarity_multiplier(copies_in_system)
    demand_mult = demand_multiplier(pending_requests)

    raw = Decimal(base_points) * condition_mult * rarity_mult * demand_mult
    points = int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    return BookValueResponse(
        points=points,
        breakdown=BookValueBreakdown(
            base_points=base_points,
            condition_multiplier=float(condition_mult),
            condition_label=CONDITION_LABELS.get(condition, str(condition)),
            rarity_multiplier=float(rarity_mult),
            copies_in_system=copies_in_system,
            demand_multiplier=float(demand_mult),
            pending_requests=pending_requests,
            final_points=points,
        ),
    )


class ValuationService:
    """도서 가치 산정 서비스"""

    CACHE_KEY_PREFIX = "bookswap:valuation"

    def __init__(
        self,
        db: Session,
        settings: Settings,
        redis_service: Optional[RedisService] = None,
    ):
        self.db = db
        self.settings = settings
        self.redis_service = redis_service
        self.book_repo = BookRepository(db)
        self.request_repo = BookRequestRepository(db)

    @classmethod
    def cache_key(cls, book_id: int) -> str:
        return f"{cls.CACHE_KEY_PREFIX}:{book_id}"

    def compute_value(self, book: Book) -> BookValueResponse:
        """
        현재 카탈로그 상태로 가치 계산 (쓰기 없음)

        요청 생성 시 예약 금액은 항상 이 메서드로 새로 계산한다.
        """
        copies = self.book_repo.count_similar_available(book.title, book.author)
        pending = self.request_repo.count_pending_for_similar(book.title, book.author)
        return calculate_points(
            self.settings.VALUATION_BASE_POINTS, book.condition, copies, pending
        )

    def get_book_value(self, book_id: int) -> BookValueResponse:
        """
        도서 가치 조회 (표시용, 캐시 사용)

        캐시 미스 시 계산 후 캐시에 저장하고 books.point_value 를 갱신한다.
        point_value 갱신 실패는 조회 결과에 영향을 주지 않는다.
        """
        cached = self._get_cached(book_id)
        if cached is not None:
            return cached

        book = self.book_repo.get_by_id(book_id)
        if book is None:
            raise NotFoundError("Book not found")

        value = self.compute_value(book)

        if self.redis_service is not None:
            self.redis_service.set(
                self.cache_key(book_id),
                value.model_dump(),
                self.settings.VALUATION_CACHE_TTL_SECONDS,
            )

        if book.point_value != value.points:
            self._refresh_point_value(book_id, value.points)

        return value

    def invalidate(self, book_id: int) -> None:
        if self.redis_service is not None:
            self.redis_service.delete(self.cache_key(book_id))

    def _get_cached(self, book_id: int) -> Optional[BookValueResponse]:
        if self.redis_service is None:
            return None
        data = self.redis_service.get(self.cache_key(book_id))
        if data is None:
            return None
        try:
            return BookValueResponse.model_validate(data)
        except ValueError:
            logger.warning(f"Discarding malformed valuation cache entry for book {book_id}")
            return None

    def _refresh_point_value(self, book_id: int, points: int) -> None:
        try:
            self.book_repo.update_point_value(book_id, points)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to refresh point_value for book {book_id}: {e}")
