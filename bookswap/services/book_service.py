import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from bookswap.config import Settings
from bookswap.core.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    ErrorCode,
    NotFoundError,
)
from bookswap.database.session import atomic
from bookswap.models.book import BookCondition
from bookswap.models.point_transaction import TransactionType
from bookswap.repositories.book_repository import BookRepository
from bookswap.repositories.book_request_repository import BookRequestRepository
from bookswap.repositories.points_repository import PointsRepository
from bookswap.schemas.book import Book, BookListingResponse
from bookswap.services.valuation_service import ValuationService

logger = logging.getLogger(__name__)


def generate_digital_id() -> str:
    return f"BK-{uuid.uuid4().hex[:16].upper()}"


class BookService:
    """도서 카탈로그 서비스 - 등록 보상 지급 포함"""

    def __init__(
        self, db: Session, settings: Settings, valuation_service: ValuationService
    ):
        self.db = db
        self.settings = settings
        self.valuation_service = valuation_service
        self.book_repo = BookRepository(db)
        self.request_repo = BookRequestRepository(db)
        self.points_repo = PointsRepository(db)

    def list_book(
        self,
        owner_id: int,
        title: str,
        author: str,
        condition: BookCondition = BookCondition.GOOD,
        digital_id: Optional[str] = None,
    ) -> BookListingResponse:
        """도서 등록

        도서 생성, 초기 가치 계산, 등록 보상 적립(EARNED_LISTING)을 하나의
        원자 단위로 처리한다.

        digital_id 가 이미 존재하면 같은 실물의 재등록이다. 가장 최근 행의
        현재 소유자만 재등록할 수 있고, 진행 중인 요청이 없어야 하며,
        이전 행은 같은 단위 안에서 교환 불가로 내려간다. 재등록에는 등록
        보상이 없다.
        """
        with atomic(self.db):
            previous_id = (
                self._retire_previous_listing(digital_id, owner_id)
                if digital_id
                else None
            )
            book_model = self.book_repo.create_book(
                owner_id=owner_id,
                digital_id=digital_id or generate_digital_id(),
                title=title,
                author=author,
                condition=condition,
            )
            book = Book.model_validate(book_model)
            value = self.valuation_service.compute_value(book)
            self.book_repo.update_point_value(book.id, value.points)

            bonus = 0
            if previous_id is None:
                bonus = self.settings.LISTING_BONUS_POINTS
                entry = self.points_repo.credit(
                    user_id=owner_id,
                    amount=bonus,
                    transaction_type=TransactionType.EARNED_LISTING,
                    description=f'Listed "{title}" for exchange',
                    book_id=book.id,
                )
                if entry is None:
                    raise NotFoundError("User not found")

        if previous_id is not None:
            self.valuation_service.invalidate(previous_id)

        book = book.model_copy(update={"point_value": value.points})
        logger.info(
            f"Book {book.id} listed by user {owner_id} "
            f"(value {value.points}, bonus {bonus}, replaces {previous_id})"
        )
        message = (
            f"Book listed! You earned {bonus} points."
            if bonus
            else "Book re-listed."
        )
        return BookListingResponse(book=book, points_earned=bonus, message=message)

    def _retire_previous_listing(self, digital_id: str, owner_id: int) -> Optional[int]:
        previous = self.book_repo.latest_by_digital_id(digital_id, for_update=True)
        if previous is None:
            return None
        if previous.owner_id != owner_id:
            raise BusinessLogicError(
                ErrorCode.COPY_NOT_OWNED,
                "You can only re-list a copy you currently own",
            )
        if self.request_repo.has_active_for_book(previous.id):
            raise BusinessLogicError(
                ErrorCode.COPY_IN_EXCHANGE,
                "This copy has open exchange requests",
            )
        self.book_repo.set_availability(previous.id, False)
        return previous.id

    def get_book(self, book_id: int) -> Book:
        book = self.book_repo.get_by_id(book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    def get_my_books(self, owner_id: int) -> List[Book]:
        return self.book_repo.list_by_owner(owner_id)

    def set_availability(
        self, book_id: int, acting_user_id: int, is_available: bool
    ) -> Book:
        book = self.get_book(book_id)
        if book.owner_id != acting_user_id:
            raise AuthorizationError("Only the book owner can change availability")
        if is_available:
            latest = self.book_repo.latest_by_digital_id(book.digital_id)
            if latest is not None and latest.id != book_id:
                raise BusinessLogicError(
                    ErrorCode.BOOK_UNAVAILABLE,
                    "This listing was replaced by a newer listing of the same copy",
                )

        with atomic(self.db):
            self.book_repo.set_availability(book_id, is_available)

        self.valuation_service.invalidate(book_id)
        logger.info(f"Book {book_id} availability set to {is_available}")
        return book.model_copy(update={"is_available": is_available})
