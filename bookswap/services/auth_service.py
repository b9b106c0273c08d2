import logging
from typing import Optional

from sqlalchemy.orm import Session

from bookswap.config import Settings
from bookswap.core.exceptions import NotFoundError
from bookswap.core.security import create_access_token, decode_access_token
from bookswap.repositories.user_repository import UserRepository
from bookswap.schemas.user import Token, TokenPayload, User as UserSchema

logger = logging.getLogger(__name__)


class AuthService:
    """토큰 발급/검증 서비스

    로그인 수단(OAuth 등)은 외부에서 처리되고 여기서는 사용자 ID 기반 JWT 만 다룬다.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.user_repo = UserRepository(db)

    def issue_token(self, user_id: int) -> Token:
        user = self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        access_token = create_access_token(data={"sub": user.email, "user_id": user.id})
        return Token(access_token=access_token, token_type="bearer")

    def verify_token(self, token: str) -> Optional[TokenPayload]:
        """JWT 토큰 검증"""
        token_data = decode_access_token(token)
        if token_data is None:
            logger.debug("Rejected invalid or expired token")
        return token_data

    def get_current_user(self, token: str) -> Optional[UserSchema]:
        """토큰으로 현재 사용자 조회"""
        token_data = self.verify_token(token)
        if not token_data or not token_data.user_id:
            return None

        user = self.user_repo.get_by_id(token_data.user_id)
        if not user or not user.is_active:
            return None

        return user
