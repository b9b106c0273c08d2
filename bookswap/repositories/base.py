from abc import ABC
from typing import TypeVar, Generic, Optional, List, Type, Any
from sqlalchemy.orm import Session
from pydantic import BaseModel

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스 - Pydantic 응답 보장

    리포지토리는 commit 하지 않는다. 트랜잭션 경계는 서비스 계층이 소유한다.
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def _to_schemas(self, model_instances: List[Any]) -> List[SchemaType]:
        return [self.schema_class.model_validate(m) for m in model_instances]

    def get_model(self, id: Any, for_update: bool = False) -> Optional[T]:
        """ID로 ORM 인스턴스 조회

        for_update=True 이면 행 잠금 (postgres SELECT ... FOR UPDATE).
        populate_existing 으로 identity map 의 오래된 값을 덮어쓴다.
        """
        query = (
            self.db.query(self.model_class)
            .filter(getattr(self.model_class, "id") == id)
            .populate_existing()
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        """ID로 조회 - Pydantic 스키마 반환"""
        return self._to_schema(self.get_model(id))
