from dependency_injector import containers, providers

from bookswap.config import Settings
from bookswap.database.session import get_db
from bookswap.services.anti_farming_service import AntiFarmingService
from bookswap.services.auth_service import AuthService
from bookswap.services.book_service import BookService
from bookswap.services.exchange_service import ExchangeService
from bookswap.services.notification_service import NotificationService
from bookswap.services.point_service import PointService
from bookswap.services.redis_service import RedisService
from bookswap.services.valuation_service import ValuationService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class RepositoryModule(containers.DeclarativeContainer):
    """Database session."""

    get_db = providers.Resource(get_db)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    redis_service = providers.Singleton(RedisService, settings=config.config)
    notification_service = providers.Singleton(NotificationService, settings=config.config)

    auth_service = providers.Factory(AuthService, db=repositories.get_db, settings=config.config)
    valuation_service = providers.Factory(
        ValuationService,
        db=repositories.get_db,
        settings=config.config,
        redis_service=redis_service,
    )
    anti_farming_service = providers.Factory(AntiFarmingService, db=repositories.get_db)
    point_service = providers.Factory(PointService, db=repositories.get_db, settings=config.config)
    book_service = providers.Factory(
        BookService,
        db=repositories.get_db,
        settings=config.config,
        valuation_service=valuation_service,
    )
    exchange_service = providers.Factory(
        ExchangeService,
        db=repositories.get_db,
        settings=config.config,
        valuation_service=valuation_service,
        anti_farming_service=anti_farming_service,
        notification_service=notification_service,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "bookswap.routers.exchange_router",
            "bookswap.routers.point_router",
            "bookswap.routers.book_router",
        ],
    )

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
