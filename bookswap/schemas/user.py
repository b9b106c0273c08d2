from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional

from bookswap.models.user import UserRole


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    nickname: str
    points: int = 0
    is_active: bool = True
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(self.role)


class TokenPayload(BaseModel):
    user_id: int
    sub: str  # subject, typically user's email


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
