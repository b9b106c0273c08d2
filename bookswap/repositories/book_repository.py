from typing import List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from bookswap.models.book import Book as BookModel, BookCondition
from bookswap.schemas.book import Book as BookSchema
from bookswap.repositories.base import BaseRepository


def _like_pattern(value: str) -> str:
    """부분 일치 LIKE 패턴 - 와일드카드 문자는 리터럴로 취급"""
    escaped = (
        value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"


class BookRepository(BaseRepository[BookModel, BookSchema]):
    """도서 카탈로그 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(BookModel, BookSchema, db)

    def create_book(
        self,
        owner_id: int,
        digital_id: str,
        title: str,
        author: str,
        condition: BookCondition,
    ) -> BookModel:
        instance = self.model_class(
            owner_id=owner_id,
            digital_id=digital_id,
            title=title,
            author=author,
            condition=condition,
            is_available=True,
        )
        self.db.add(instance)
        self.db.flush()
        return instance

    def latest_by_digital_id(
        self, digital_id: str, for_update: bool = False
    ) -> Optional[BookModel]:
        """같은 실물(digital_id) 의 가장 최근 등록 행"""
        query = self.db.query(self.model_class).filter(
            self.model_class.digital_id == digital_id
        ).populate_existing()
        if for_update:
            query = query.with_for_update()
        return query.order_by(self.model_class.id.desc()).first()

    def count_similar_available(self, title: str, author: str) -> int:
        """
        유사 도서 수 (희소성 산정용)

        제목/저자 각각 대소문자 무시 부분 일치 + 교환 가능 상태.
        기준 도서 자신도 포함된다.
        """
        return (
            self.db.query(func.count(self.model_class.id))
            .filter(
                and_(
                    self.model_class.title.ilike(_like_pattern(title), escape="\\"),
                    self.model_class.author.ilike(_like_pattern(author), escape="\\"),
                    self.model_class.is_available.is_(True),
                )
            )
            .scalar()
            or 0
        )

    def similar_books_filter(self, title: str, author: str):
        """유사 도서 조건 (가용 여부 무관) - 수요 산정 join 용"""
        return and_(
            self.model_class.title.ilike(_like_pattern(title), escape="\\"),
            self.model_class.author.ilike(_like_pattern(author), escape="\\"),
        )

    def update_point_value(self, book_id: int, point_value: int) -> bool:
        updated = (
            self.db.query(self.model_class)
            .filter(self.model_class.id == book_id)
            .update(
                {self.model_class.point_value: point_value},
                synchronize_session=False,
            )
        )
        return updated > 0

    def transfer_ownership(self, book_id: int, new_owner_id: int) -> bool:
        """소유권 이전 - 이전 후에도 계속 교환 가능 상태"""
        updated = (
            self.db.query(self.model_class)
            .filter(self.model_class.id == book_id)
            .update(
                {
                    self.model_class.owner_id: new_owner_id,
                    self.model_class.is_available: True,
                },
                synchronize_session=False,
            )
        )
        return updated > 0

    def set_availability(self, book_id: int, is_available: bool) -> bool:
        updated = (
            self.db.query(self.model_class)
            .filter(self.model_class.id == book_id)
            .update(
                {self.model_class.is_available: is_available},
                synchronize_session=False,
            )
        )
        return updated > 0

    def list_by_owner(self, owner_id: int) -> List[BookSchema]:
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.owner_id == owner_id)
            .order_by(self.model_class.created_at.desc(), self.model_class.id.desc())
            .all()
        )
        return self._to_schemas(rows)
