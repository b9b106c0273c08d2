from enum import Enum
from typing import Union

from sqlalchemy import Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bookswap.models.base import BaseModel, PrimaryKeyType


class UserRole(str, Enum):
    """사용자 역할 정의"""

    USER = "user"  # 일반 사용자
    ADMIN = "admin"  # 관리자

    @classmethod
    def is_admin(cls, role: Union[str, "UserRole"]) -> bool:
        if isinstance(role, cls):
            role = role.value
        return role == cls.ADMIN.value


class User(BaseModel):
    __tablename__ = "users"
    __table_args__ = (
        # 잔액은 원장 append 로만 변경되며 절대 음수가 될 수 없음
        CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )

    id: Mapped[int] = mapped_column(PrimaryKeyType, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    nickname: Mapped[str] = mapped_column(String(100), nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.USER.value, nullable=False
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, points={self.points})>"

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(str(self.role))
