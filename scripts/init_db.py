"""
데이터베이스 초기화 스크립트

    python -m scripts.init_db
    python -m scripts.init_db --admin-email admin@example.com --admin-nickname admin
"""

import argparse
import logging

from bookswap.config import settings
from bookswap.database.connection import engine
from bookswap.database.session import atomic, get_db_context
from bookswap.logging_config import setup_logging
from bookswap.models import Base, UserRole
from bookswap.repositories.user_repository import UserRepository
from bookswap.services.auth_service import AuthService

logger = logging.getLogger("bookswap.scripts.init_db")


def init_db():
    """테이블 생성 (이미 있으면 건너뜀)"""
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized: {engine.url.render_as_string(hide_password=True)}")


def ensure_admin(email: str, nickname: str) -> str:
    """관리자 계정 생성 (없을 때만) 후 접근 토큰 반환"""
    with get_db_context() as db:
        user_repo = UserRepository(db)
        admin = user_repo.get_by_email(email)
        if admin is None:
            with atomic(db):
                user_repo.create_user(email=email, nickname=nickname, role=UserRole.ADMIN)
            admin = user_repo.get_by_email(email)
            logger.info(f"Admin user created: {email}")
        return AuthService(db, settings=settings).issue_token(admin.id).access_token


def main():
    parser = argparse.ArgumentParser(description="Initialize the BookSwap database")
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-nickname", default="admin")
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)
    init_db()

    if args.admin_email:
        token = ensure_admin(args.admin_email, args.admin_nickname)
        print(token)


if __name__ == "__main__":
    main()
