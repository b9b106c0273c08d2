import os

# 애플리케이션 모듈 import 전에 테스트 환경 구성
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["SIBLING_REFUND_BACKOFF_SECONDS"] = "0"

from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402

from bookswap.config import Settings  # noqa: E402
from bookswap.database.connection import SessionLocal, engine  # noqa: E402
from bookswap.models import Base, BookCondition, TransactionType, UserRole  # noqa: E402
from bookswap.repositories.book_repository import BookRepository  # noqa: E402
from bookswap.repositories.points_repository import PointsRepository  # noqa: E402
from bookswap.repositories.user_repository import UserRepository  # noqa: E402
from bookswap.schemas.book import Book  # noqa: E402
from bookswap.schemas.user import User  # noqa: E402
from bookswap.services.anti_farming_service import AntiFarmingService  # noqa: E402
from bookswap.services.book_service import BookService  # noqa: E402
from bookswap.services.exchange_service import ExchangeService  # noqa: E402
from bookswap.services.notification_service import NotificationService  # noqa: E402
from bookswap.services.point_service import PointService  # noqa: E402
from bookswap.services.valuation_service import ValuationService  # noqa: E402


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        REDIS_ENABLED=False,
        NOTIFICATIONS_ENABLED=False,
        SIBLING_REFUND_BACKOFF_SECONDS=0,
        SIBLING_REFUND_BACKOFF_MAX_SECONDS=0,
    )


@pytest.fixture
def db_session():
    """테이블을 새로 만든 in-memory sqlite 세션"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db_session):
    """사용자 생성 - 초기 포인트는 BONUS 원장 행으로 지급해 정합성 유지"""
    counter = {"n": 0}

    def _make_user(points: int = 0, nickname: str = None, role: UserRole = UserRole.USER) -> User:
        counter["n"] += 1
        nickname = nickname or f"user{counter['n']}"
        user = UserRepository(db_session).create_user(
            email=f"{nickname}@example.com", nickname=nickname, role=role
        )
        if points:
            PointsRepository(db_session).credit(
                user.id, points, TransactionType.BONUS, "Initial points"
            )
        db_session.commit()
        return UserRepository(db_session).get_by_id(user.id)

    return _make_user


@pytest.fixture
def make_book(db_session):
    """도서 직접 생성 (등록 보상 없이)"""
    counter = {"n": 0}

    def _make_book(
        owner: User,
        title: str = "Dune",
        author: str = "Frank Herbert",
        condition: BookCondition = BookCondition.GOOD,
        digital_id: str = None,
        is_available: bool = True,
    ) -> Book:
        counter["n"] += 1
        repo = BookRepository(db_session)
        book = repo.create_book(
            owner_id=owner.id,
            digital_id=digital_id or f"DIGITAL-{counter['n']}",
            title=title,
            author=author,
            condition=condition,
        )
        if not is_available:
            repo.set_availability(book.id, False)
        db_session.commit()
        return repo.get_by_id(book.id)

    return _make_book


@pytest.fixture
def notifier():
    notifier = Mock(spec=NotificationService)
    notifier.publish.return_value = True
    return notifier


@pytest.fixture
def valuation_service(db_session, settings):
    return ValuationService(db_session, settings)


@pytest.fixture
def exchange_service(db_session, settings, valuation_service, notifier):
    return ExchangeService(
        db_session,
        settings,
        valuation_service=valuation_service,
        anti_farming_service=AntiFarmingService(db_session),
        notification_service=notifier,
    )


@pytest.fixture
def point_service(db_session, settings):
    return PointService(db_session, settings)


@pytest.fixture
def book_service(db_session, settings, valuation_service):
    return BookService(db_session, settings, valuation_service=valuation_service)


@pytest.fixture
def balance_of(db_session):
    def _balance_of(user: User) -> int:
        return PointsRepository(db_session).get_balance(user.id)

    return _balance_of
