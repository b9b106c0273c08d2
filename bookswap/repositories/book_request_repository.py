"""
도서 교환 요청 리포지토리

상태 전이는 모두 compare-and-swap 형태의 조건부 UPDATE 로 수행됩니다.
`UPDATE book_requests SET status = :to WHERE id = :id AND status = :from`
영향받은 행이 0 이면 다른 트랜잭션이 먼저 상태를 바꾼 것입니다.
"""

from typing import List, Optional, Tuple

from sqlalchemy import and_, desc, func
from sqlalchemy.orm import Session, aliased

from bookswap.models.book import Book as BookModel
from bookswap.models.book_request import (
    BookRequest as BookRequestModel,
    BookRequestStatus,
)
from bookswap.models.user import User as UserModel
from bookswap.schemas.exchange import (
    BookRequest as BookRequestSchema,
    BookRequestDetail,
    BookSummary,
    UserSummary,
)
from bookswap.repositories.base import BaseRepository
from bookswap.repositories.book_repository import BookRepository


class BookRequestRepository(BaseRepository[BookRequestModel, BookRequestSchema]):
    """도서 교환 요청 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(BookRequestModel, BookRequestSchema, db)

    def create_request(
        self,
        book_id: int,
        requester_id: int,
        owner_id: int,
        points_offered: int,
        message: Optional[str],
    ) -> BookRequestModel:
        """PENDING 요청 생성 - 활성 쌍 유니크 인덱스 위반 시 flush 에서 IntegrityError"""
        instance = self.model_class(
            book_id=book_id,
            requester_id=requester_id,
            owner_id=owner_id,
            points_offered=points_offered,
            message=message,
            status=BookRequestStatus.PENDING,
        )
        self.db.add(instance)
        self.db.flush()
        return instance

    def find_active(self, book_id: int, requester_id: int) -> Optional[BookRequestSchema]:
        """동일 (도서, 요청자) 의 PENDING/ACCEPTED 요청"""
        instance = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.book_id == book_id,
                    self.model_class.requester_id == requester_id,
                    self.model_class.status.in_(BookRequestStatus.active()),
                )
            )
            .order_by(desc(self.model_class.id))
            .first()
        )
        return self._to_schema(instance)

    def has_active_for_book(self, book_id: int) -> bool:
        return (
            self.db.query(self.model_class.id)
            .filter(
                and_(
                    self.model_class.book_id == book_id,
                    self.model_class.status.in_(BookRequestStatus.active()),
                )
            )
            .first()
            is not None
        )

    def transition(
        self,
        request_id: int,
        from_status: BookRequestStatus,
        to_status: BookRequestStatus,
    ) -> bool:
        """
        상태 전이 (compare-and-swap)

        Returns:
            bool: 이 호출이 전이를 수행했으면 True, 이미 다른 상태면 False
        """
        updated = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.id == request_id,
                    self.model_class.status == from_status,
                )
            )
            .update({self.model_class.status: to_status}, synchronize_session=False)
        )
        self.db.flush()
        return updated > 0

    def pending_ids_for_book(
        self,
        book_id: int,
        exclude_request_id: Optional[int] = None,
        owner_id: Optional[int] = None,
    ) -> List[int]:
        """도서에 걸린 PENDING 요청 ID 목록 (형제 요청 정리용)"""
        query = self.db.query(self.model_class.id).filter(
            and_(
                self.model_class.book_id == book_id,
                self.model_class.status == BookRequestStatus.PENDING,
            )
        )
        if exclude_request_id is not None:
            query = query.filter(self.model_class.id != exclude_request_id)
        if owner_id is not None:
            query = query.filter(self.model_class.owner_id == owner_id)
        return [row[0] for row in query.order_by(self.model_class.id).all()]

    def count_pending_for_similar(self, title: str, author: str) -> int:
        """유사 도서 (가용 여부 무관) 에 걸린 PENDING 요청 수 (수요 산정용)"""
        similar = BookRepository(self.db).similar_books_filter(title, author)
        return (
            self.db.query(func.count(self.model_class.id))
            .join(BookModel, BookModel.id == self.model_class.book_id)
            .filter(and_(self.model_class.status == BookRequestStatus.PENDING, similar))
            .scalar()
            or 0
        )

    def completed_exchange_exists(
        self, book_id: int, requester_id: int, owner_id: int
    ) -> bool:
        """해당 도서에 대해 requester -> owner 방향의 완료된 교환이 있는지"""
        return (
            self.db.query(self.model_class.id)
            .filter(
                and_(
                    self.model_class.book_id == book_id,
                    self.model_class.requester_id == requester_id,
                    self.model_class.owner_id == owner_id,
                    self.model_class.status == BookRequestStatus.COMPLETED,
                )
            )
            .first()
            is not None
        )

    def completed_acquisition_of_copy_exists(
        self, digital_id: str, requester_id: int
    ) -> bool:
        """같은 실물(digital_id 공유 행 포함)을 교환으로 받은 적이 있는지"""
        return (
            self.db.query(self.model_class.id)
            .join(BookModel, BookModel.id == self.model_class.book_id)
            .filter(
                and_(
                    BookModel.digital_id == digital_id,
                    self.model_class.requester_id == requester_id,
                    self.model_class.status == BookRequestStatus.COMPLETED,
                )
            )
            .first()
            is not None
        )

    def _list_with_details(
        self,
        party_column,
        counterpart_column,
        user_id: int,
        status: Optional[BookRequestStatus],
    ) -> List[BookRequestDetail]:
        counterpart = aliased(UserModel)
        query = (
            self.db.query(self.model_class, BookModel, counterpart)
            .join(BookModel, BookModel.id == self.model_class.book_id)
            .join(counterpart, counterpart.id == counterpart_column)
            .filter(party_column == user_id)
        )
        if status is not None:
            query = query.filter(self.model_class.status == status)

        rows: List[Tuple[BookRequestModel, BookModel, UserModel]] = query.order_by(
            desc(self.model_class.created_at), desc(self.model_class.id)
        ).all()

        return [
            BookRequestDetail(
                **BookRequestSchema.model_validate(request).model_dump(),
                book=BookSummary.model_validate(book),
                counterpart=UserSummary.model_validate(user),
            )
            for request, book, user in rows
        ]

    def list_incoming(
        self, owner_id: int, status: Optional[BookRequestStatus] = None
    ) -> List[BookRequestDetail]:
        """내 도서에 들어온 요청 (상대방 = 요청자)"""
        return self._list_with_details(
            self.model_class.owner_id, self.model_class.requester_id, owner_id, status
        )

    def list_outgoing(
        self, requester_id: int, status: Optional[BookRequestStatus] = None
    ) -> List[BookRequestDetail]:
        """내가 보낸 요청 (상대방 = 소유자)"""
        return self._list_with_details(
            self.model_class.requester_id, self.model_class.owner_id, requester_id, status
        )

    def count_by_owner(self, owner_id: int, status: BookRequestStatus) -> int:
        return (
            self.db.query(func.count(self.model_class.id))
            .filter(
                and_(
                    self.model_class.owner_id == owner_id,
                    self.model_class.status == status,
                )
            )
            .scalar()
            or 0
        )

    def count_by_requester(self, requester_id: int, status: BookRequestStatus) -> int:
        return (
            self.db.query(func.count(self.model_class.id))
            .filter(
                and_(
                    self.model_class.requester_id == requester_id,
                    self.model_class.status == status,
                )
            )
            .scalar()
            or 0
        )
