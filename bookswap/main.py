import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

load_dotenv("bookswap/.env")

from bookswap import containers  # noqa: E402
from bookswap.config import settings  # noqa: E402
from bookswap.core.exception_handlers import register_exception_handlers  # noqa: E402
from bookswap.core.logging_middleware import LoggingMiddleware  # noqa: E402
from bookswap.logging_config import setup_logging  # noqa: E402
from bookswap.routers import (  # noqa: E402
    book_router,
    exchange_router,
    health_router,
    point_router,
)

setup_logging(settings.LOG_LEVEL, debug=settings.DEBUG)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.APP_NAME} starting ({settings.ENVIRONMENT})")
    yield
    app.container.services.redis_service().close()  # type: ignore[attr-defined]
    logger.info(f"{settings.APP_NAME} stopped")


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)
    app.container = containers.Container()  # type: ignore[attr-defined]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router.router)
    app.include_router(exchange_router.router, prefix=settings.API_V1_STR)
    app.include_router(point_router.router, prefix=settings.API_V1_STR)
    app.include_router(book_router.router, prefix=settings.API_V1_STR)

    return app


app = create_app()

handler = Mangum(app)
