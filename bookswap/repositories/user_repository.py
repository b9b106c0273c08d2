from typing import Optional

from sqlalchemy.orm import Session

from bookswap.models.user import User as UserModel, UserRole
from bookswap.schemas.user import User as UserSchema
from bookswap.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserModel, UserSchema]):
    """사용자 리포지토리

    points 컬럼은 여기서 직접 수정하지 않는다 (PointsRepository 전용).
    """

    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def get_by_email(self, email: str) -> Optional[UserSchema]:
        model_instance = (
            self.db.query(self.model_class)
            .filter(self.model_class.email == email)
            .first()
        )
        return self._to_schema(model_instance)

    def get_display_name(self, user_id: int, default: str = "Someone") -> str:
        """알림 표시용 닉네임"""
        nickname = (
            self.db.query(self.model_class.nickname)
            .filter(self.model_class.id == user_id)
            .scalar()
        )
        return nickname or default

    def create_user(
        self, email: str, nickname: str, role: UserRole = UserRole.USER
    ) -> UserModel:
        """사용자 생성 - 잔액은 0 에서 시작하며 원장을 통해서만 증가"""
        instance = self.model_class(
            email=email, nickname=nickname, points=0, role=role.value, is_active=True
        )
        self.db.add(instance)
        self.db.flush()
        return instance
