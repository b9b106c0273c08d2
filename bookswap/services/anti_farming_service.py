"""
포인트 파밍 방지 검사

같은 책을 두 사람이 주고받거나 중간 사용자를 거쳐 되찾는 방식으로
포인트를 무한히 만들어내는 패턴을 요청 생성 전에 차단합니다.
"""

import logging

from sqlalchemy.orm import Session

from bookswap.core.exceptions import BusinessLogicError, ErrorCode
from bookswap.repositories.book_request_repository import BookRequestRepository
from bookswap.schemas.book import Book

logger = logging.getLogger(__name__)

CIRCULAR_EXCHANGE_MESSAGE = (
    "Circular exchange detected. You cannot request a book you previously gave "
    "to this user. This prevents point farming."
)
PRIOR_OWNERSHIP_MESSAGE = (
    "You have previously owned this book. To maintain fair exchange, you cannot "
    "request a book you once owned."
)


class AntiFarmingService:
    def __init__(self, db: Session):
        self.db = db
        self.request_repo = BookRequestRepository(db)

    def check(self, book: Book, requester_id: int) -> None:
        """
        요청 가능 여부 검사 - 위반 시 BusinessLogicError, 부수 효과 없음

        1. 순환 교환: 현재 소유자가 이 책을 바로 이 요청자로부터 받은 적이 있음
        2. 이전 소유: 요청자가 같은 실물(digital_id)을 교환으로 받은 적이 있음
        """
        if self.request_repo.completed_exchange_exists(
            book_id=book.id, requester_id=book.owner_id, owner_id=requester_id
        ):
            logger.warning(
                f"Circular exchange blocked: user {requester_id} -> book {book.id} "
                f"(owner {book.owner_id})"
            )
            raise BusinessLogicError(
                error_code=ErrorCode.FARMING_CIRCULAR_EXCHANGE,
                message=CIRCULAR_EXCHANGE_MESSAGE,
            )

        if self.request_repo.completed_acquisition_of_copy_exists(
            digital_id=book.digital_id, requester_id=requester_id
        ):
            logger.warning(
                f"Prior ownership blocked: user {requester_id} -> copy {book.digital_id}"
            )
            raise BusinessLogicError(
                error_code=ErrorCode.FARMING_PRIOR_OWNERSHIP,
                message=PRIOR_OWNERSHIP_MESSAGE,
            )
