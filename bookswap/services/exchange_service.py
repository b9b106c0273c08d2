"""
도서 교환 요청 상태 머신

PENDING --accept--> ACCEPTED --complete--> COMPLETED
PENDING --decline / 다른 요청 수락--> DECLINED
PENDING --cancel--> CANCELLED

포인트 흐름:
1. 요청 생성 시 요청자 잔액에서 산정 가치만큼 예약(차감) - SPENT_REQUEST
2. 거절/취소/형제 요청 정리 시 예약 금액 그대로 환불 - REFUND
3. 교환 완료 시 원래 소유자에게 예약 금액 지급 - EARNED_EXCHANGE

잔액 변경, 원장 행, 상태 전이(완료 시 소유권 이전 포함)는 항상 하나의 원자
단위로 commit 된다. 알림은 commit 이후에만 발행한다.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from bookswap.config import Settings
from bookswap.core.exceptions import (
    AuthorizationError,
    BaseAPIException,
    BusinessLogicError,
    ErrorCode,
    InsufficientBalanceError,
    NotFoundError,
)
from bookswap.database.session import atomic
from bookswap.models.book_request import BookRequestStatus
from bookswap.models.point_transaction import TransactionType
from bookswap.repositories.book_repository import BookRepository
from bookswap.repositories.book_request_repository import BookRequestRepository
from bookswap.repositories.points_repository import PointsRepository
from bookswap.repositories.user_repository import UserRepository
from bookswap.schemas.book import Book
from bookswap.schemas.exchange import (
    AcceptRequestResponse,
    BookRequest,
    BookRequestDetail,
    BookValueResponse,
    CompleteExchangeResponse,
    HasRequestedResponse,
    RequestActionResponse,
    RequestBookResponse,
    RequestCountsResponse,
)
from bookswap.services.anti_farming_service import AntiFarmingService
from bookswap.services.notification_service import (
    NotificationEventType,
    NotificationService,
)
from bookswap.services.valuation_service import ValuationService

logger = logging.getLogger(__name__)

ALREADY_PROCESSED_MESSAGE = "This request has already been processed"


class ExchangeService:
    """도서 교환 요청 생명주기를 담당하는 서비스"""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        valuation_service: ValuationService,
        anti_farming_service: AntiFarmingService,
        notification_service: NotificationService,
    ):
        self.db = db
        self.settings = settings
        self.valuation_service = valuation_service
        self.anti_farming_service = anti_farming_service
        self.notification_service = notification_service
        self.user_repo = UserRepository(db)
        self.book_repo = BookRepository(db)
        self.request_repo = BookRequestRepository(db)
        self.points_repo = PointsRepository(db)

    def get_book_value(self, book_id: int) -> BookValueResponse:
        return self.valuation_service.get_book_value(book_id)

    def has_user_requested_book(self, book_id: int, user_id: int) -> HasRequestedResponse:
        active = self.request_repo.find_active(book_id, user_id)
        if active is None:
            return HasRequestedResponse(has_requested=False)
        return HasRequestedResponse(
            has_requested=True, request_status=active.status, request_id=active.id
        )

    def get_incoming_requests(
        self, user_id: int, status: Optional[BookRequestStatus] = None
    ) -> List[BookRequestDetail]:
        return self.request_repo.list_incoming(user_id, status)

    def get_outgoing_requests(
        self, user_id: int, status: Optional[BookRequestStatus] = None
    ) -> List[BookRequestDetail]:
        return self.request_repo.list_outgoing(user_id, status)

    def get_request_counts(self, user_id: int) -> RequestCountsResponse:
        return RequestCountsResponse(
            pending_incoming=self.request_repo.count_by_owner(
                user_id, BookRequestStatus.PENDING
            ),
            pending_outgoing=self.request_repo.count_by_requester(
                user_id, BookRequestStatus.PENDING
            ),
            accepted_incoming=self.request_repo.count_by_owner(
                user_id, BookRequestStatus.ACCEPTED
            ),
        )

    def create_request(
        self, requester_id: int, book_id: int, message: Optional[str] = None
    ) -> RequestBookResponse:
        """교환 요청 생성 및 포인트 예약

        검사 순서: 도서 존재 -> 교환 가능 -> 본인 도서 -> 중복 요청
        -> 파밍 방지 -> 가치 산정 -> 잔액 확인
        """
        book = self._get_book(book_id)

        if not book.is_available:
            raise BusinessLogicError(
                error_code=ErrorCode.BOOK_UNAVAILABLE,
                message="This book is not available for exchange",
            )
        if book.owner_id == requester_id:
            raise BusinessLogicError(
                error_code=ErrorCode.SELF_REQUEST,
                message="You cannot request your own book",
            )
        if self.request_repo.find_active(book_id, requester_id) is not None:
            raise self._duplicate_request_error()

        self.anti_farming_service.check(book, requester_id)

        # 예약 금액은 캐시가 아닌 현재 카탈로그 상태로 새로 계산
        points = self.valuation_service.compute_value(book).points

        balance = self.points_repo.get_balance(requester_id)
        if balance is None:
            raise NotFoundError("User not found")
        if balance < points:
            logger.warning(
                f"Insufficient points: user {requester_id} needs {points}, has {balance}"
            )
            raise self._insufficient_points_error(points, balance)

        try:
            with atomic(self.db):
                request = self.request_repo.create_request(
                    book_id=book.id,
                    requester_id=requester_id,
                    owner_id=book.owner_id,
                    points_offered=points,
                    message=message,
                )
                entry = self.points_repo.debit(
                    user_id=requester_id,
                    amount=points,
                    transaction_type=TransactionType.SPENT_REQUEST,
                    description=f'Requested "{book.title}" by {book.author}',
                    book_id=book.id,
                )
                if entry is None:
                    # 사전 확인 이후 다른 요청이 잔액을 먼저 사용함
                    available = self.points_repo.get_balance(requester_id) or 0
                    raise self._insufficient_points_error(points, available)
                created = BookRequest.model_validate(request)
        except IntegrityError:
            logger.warning(
                f"Concurrent duplicate request: user {requester_id} -> book {book_id}"
            )
            raise self._duplicate_request_error()

        logger.info(
            f"Request {created.id} created: user {requester_id} -> book {book_id} "
            f"({points} points reserved)"
        )

        self.valuation_service.invalidate(book.id)
        self.notification_service.publish(
            book.owner_id,
            NotificationEventType.BOOK_REQUEST,
            {
                "request_id": created.id,
                "book_id": book.id,
                "book_title": book.title,
                "requester_name": self.user_repo.get_display_name(requester_id),
                "points": points,
            },
        )

        return RequestBookResponse(
            request=created,
            points_spent=points,
            message=f"Request sent! {points} points have been reserved.",
        )

    def accept_request(self, request_id: int, acting_user_id: int) -> AcceptRequestResponse:
        """요청 수락 후 같은 도서의 다른 PENDING 요청을 거절/환불

        수락 자체는 하나의 원자 단위로 commit 된다. 형제 요청 정리는 요청마다
        별도 원자 단위이며 실패한 요청은 PENDING 으로 남고 결과에 보고된다.
        """
        request = self._get_request(request_id)
        if request.owner_id != acting_user_id:
            raise AuthorizationError("Only the book owner can accept requests")
        if request.status != BookRequestStatus.PENDING:
            raise self._invalid_state_error(ALREADY_PROCESSED_MESSAGE)

        book = self._get_book(request.book_id)

        try:
            with atomic(self.db):
                locked_book = self.book_repo.get_model(request.book_id, for_update=True)
                if locked_book is None or locked_book.owner_id != request.owner_id:
                    raise self._invalid_state_error(
                        "This book is no longer owned by you"
                    )
                if not self.request_repo.transition(
                    request_id, BookRequestStatus.PENDING, BookRequestStatus.ACCEPTED
                ):
                    raise self._invalid_state_error(ALREADY_PROCESSED_MESSAGE)
        except IntegrityError:
            logger.warning(
                f"Accept of request {request_id} lost race: book {request.book_id} already reserved"
            )
            raise BusinessLogicError(
                error_code=ErrorCode.BOOK_ALREADY_RESERVED,
                message="Another request for this book has already been accepted",
            )

        accepted = request.model_copy(update={"status": BookRequestStatus.ACCEPTED})
        logger.info(f"Request {request_id} accepted by user {acting_user_id}")

        sibling_ids = self.request_repo.pending_ids_for_book(
            request.book_id, exclude_request_id=request_id
        )
        declined_ids, failed_ids = self._decline_pending_requests(
            sibling_ids, f'Refund for "{book.title}" - another request accepted', book
        )

        self.valuation_service.invalidate(book.id)
        self._notify_status(request.requester_id, accepted, book)

        return AcceptRequestResponse(
            request=accepted,
            message="Request accepted! Arrange the handover, then mark the exchange complete.",
            declined_request_ids=declined_ids,
            failed_sibling_ids=failed_ids,
        )

    def complete_exchange(
        self, request_id: int, acting_user_id: int
    ) -> CompleteExchangeResponse:
        """교환 완료 - 소유권 이전과 원래 소유자 포인트 지급"""
        request = self._get_request(request_id)
        if request.owner_id != acting_user_id:
            raise AuthorizationError("Only the book owner can complete exchanges")
        if request.status != BookRequestStatus.ACCEPTED:
            raise self._invalid_state_error("This request must be accepted first")

        book = self._get_book(request.book_id)

        with atomic(self.db):
            self.book_repo.get_model(request.book_id, for_update=True)
            if not self.request_repo.transition(
                request_id, BookRequestStatus.ACCEPTED, BookRequestStatus.COMPLETED
            ):
                raise self._invalid_state_error(ALREADY_PROCESSED_MESSAGE)
            self.book_repo.transfer_ownership(request.book_id, request.requester_id)
            entry = self.points_repo.credit(
                user_id=request.owner_id,
                amount=request.points_offered,
                transaction_type=TransactionType.EARNED_EXCHANGE,
                description=f'Exchanged "{book.title}"',
                book_id=request.book_id,
            )
            if entry is None:
                raise NotFoundError("User not found")

        completed = request.model_copy(update={"status": BookRequestStatus.COMPLETED})
        logger.info(
            f"Request {request_id} completed: book {book.id} "
            f"{request.owner_id} -> {request.requester_id}, {request.points_offered} points paid"
        )

        # 이전 소유자 앞으로 남아 있는 요청은 더 이상 성립하지 않음
        stale_ids = self.request_repo.pending_ids_for_book(
            request.book_id, owner_id=request.owner_id
        )
        if stale_ids:
            self._decline_pending_requests(
                stale_ids, f'Refund for "{book.title}" - book changed owners', book
            )

        self.valuation_service.invalidate(book.id)
        self._notify_status(request.requester_id, completed, book)

        return CompleteExchangeResponse(
            request=completed,
            points_earned=request.points_offered,
            message=f"Exchange completed! You earned {request.points_offered} points.",
        )

    def decline_request(self, request_id: int, acting_user_id: int) -> RequestActionResponse:
        request = self._get_request(request_id)
        if request.owner_id != acting_user_id:
            raise AuthorizationError("Only the book owner can decline requests")
        if request.status != BookRequestStatus.PENDING:
            raise self._invalid_state_error(ALREADY_PROCESSED_MESSAGE)

        book = self._get_book(request.book_id)
        declined = self._release_request(
            request_id,
            BookRequestStatus.DECLINED,
            f'Refund for "{book.title}" - request declined',
        )
        if declined is None:
            raise self._invalid_state_error(ALREADY_PROCESSED_MESSAGE)

        logger.info(f"Request {request_id} declined by user {acting_user_id}")
        self.valuation_service.invalidate(book.id)
        self._notify_status(request.requester_id, declined, book)

        return RequestActionResponse(
            request=declined,
            message=f"Request declined. {declined.points_offered} points refunded to the requester.",
        )

    def cancel_request(self, request_id: int, acting_user_id: int) -> RequestActionResponse:
        request = self._get_request(request_id)
        if request.requester_id != acting_user_id:
            raise AuthorizationError("You can only cancel your own requests")
        if request.status != BookRequestStatus.PENDING:
            raise self._invalid_state_error("Only pending requests can be cancelled")

        book = self._get_book(request.book_id)
        cancelled = self._release_request(
            request_id,
            BookRequestStatus.CANCELLED,
            f'Refund for "{book.title}" - request cancelled',
        )
        if cancelled is None:
            raise self._invalid_state_error("Only pending requests can be cancelled")

        logger.info(f"Request {request_id} cancelled by user {acting_user_id}")
        self.valuation_service.invalidate(book.id)
        self._notify_status(request.owner_id, cancelled, book)

        return RequestActionResponse(
            request=cancelled,
            message=f"Request cancelled. {cancelled.points_offered} points refunded.",
        )

    def _release_request(
        self, request_id: int, to_status: BookRequestStatus, description: str
    ) -> Optional[BookRequest]:
        """PENDING 요청을 종료 상태로 전이하고 예약 포인트를 환불 (단일 원자 단위)

        Returns:
            전이된 요청. 이미 PENDING 이 아니면 None (아무것도 변경하지 않음)
        """
        with atomic(self.db):
            request = self.request_repo.get_model(request_id)
            if request is None:
                return None
            if not self.request_repo.transition(
                request_id, BookRequestStatus.PENDING, to_status
            ):
                return None
            entry = self.points_repo.credit(
                user_id=request.requester_id,
                amount=request.points_offered,
                transaction_type=TransactionType.REFUND,
                description=description,
                book_id=request.book_id,
            )
            if entry is None:
                raise NotFoundError("User not found")
            released = BookRequest.model_validate(request).model_copy(
                update={"status": to_status}
            )
        return released

    def _sibling_retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.settings.SIBLING_REFUND_MAX_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.settings.SIBLING_REFUND_BACKOFF_SECONDS,
                max=self.settings.SIBLING_REFUND_BACKOFF_MAX_SECONDS,
            ),
            retry=retry_if_exception_type(OperationalError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _decline_pending_requests(
        self, request_ids: List[int], description: str, book: Book
    ) -> Tuple[List[int], List[int]]:
        """요청마다 독립적으로 거절+환불 (일시 오류는 재시도)

        Returns:
            (거절된 요청 ID, 재시도 후에도 실패해 PENDING 으로 남은 요청 ID)
        """
        declined_ids: List[int] = []
        failed_ids: List[int] = []

        for request_id in request_ids:
            try:
                declined = self._sibling_retrying()(
                    self._release_request,
                    request_id,
                    BookRequestStatus.DECLINED,
                    description,
                )
            except (SQLAlchemyError, BaseAPIException) as e:
                logger.error(
                    f"Failed to decline/refund request {request_id} on book {book.id}: {e}"
                )
                failed_ids.append(request_id)
                continue

            # None: 그 사이 요청자가 취소함
            if declined is None:
                continue
            declined_ids.append(request_id)
            self._notify_status(declined.requester_id, declined, book)

        if declined_ids:
            logger.info(f"Declined and refunded requests {declined_ids} on book {book.id}")
        return declined_ids, failed_ids

    def _notify_status(self, target_user_id: int, request: BookRequest, book: Book) -> None:
        self.notification_service.publish(
            target_user_id,
            NotificationEventType.REQUEST_UPDATE,
            {
                "request_id": request.id,
                "book_id": book.id,
                "book_title": book.title,
                "status": request.status.value,
                "points": request.points_offered,
            },
        )

    def _get_book(self, book_id: int) -> Book:
        book = self.book_repo.get_by_id(book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    def _get_request(self, request_id: int) -> BookRequest:
        request = self.request_repo.get_by_id(request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    @staticmethod
    def _invalid_state_error(message: str) -> BusinessLogicError:
        return BusinessLogicError(
            error_code=ErrorCode.INVALID_REQUEST_STATE, message=message
        )

    @staticmethod
    def _duplicate_request_error() -> BusinessLogicError:
        return BusinessLogicError(
            error_code=ErrorCode.DUPLICATE_REQUEST,
            message="You have already requested this book",
        )

    @staticmethod
    def _insufficient_points_error(required: int, available: int) -> InsufficientBalanceError:
        return InsufficientBalanceError(
            message=f"Insufficient points. You need {required} points but only have {available}",
            details={"required": required, "available": available},
        )
