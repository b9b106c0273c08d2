import logging.config
import sys
from typing import Any, Dict

# 외부 SDK 는 요청마다 디버그 로그를 쏟아내므로 WARNING 이상만
NOISY_LIBRARY_LOGGERS = ("botocore", "boto3", "urllib3", "redis")


def build_logging_config(log_level: str = "INFO", debug: bool = False) -> Dict[str, Any]:
    """
    dictConfig 용 설정

    - bookswap.*: 서비스/리포지토리 로그 (stdout, WARNING 이상은 stderr 상세 포맷)
    - bookswap.http: LoggingMiddleware 의 요청 로그 ([request_id] 접두어 포함)
    - uvicorn.error / uvicorn.access: 서버 로그
    - sqlalchemy.engine: debug 일 때만 SQL 출력
    """
    log_level = log_level.upper()
    both = ["console", "error_console"]

    loggers: Dict[str, Any] = {
        "": {  # root logger
            "handlers": both,
            "level": log_level,
        },
        "bookswap": {
            "handlers": both,
            "level": log_level,
            "propagate": False,
        },
        "bookswap.http": {
            "handlers": ["access_console", "error_console"],
            "level": log_level,
            "propagate": False,
        },
        "uvicorn.error": {
            "handlers": both,
            "level": log_level,
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["access_console"],
            "level": log_level,
            "propagate": False,
        },
        "sqlalchemy.engine": {
            "handlers": ["console"],
            "level": "INFO" if debug else "WARNING",
            "propagate": False,
        },
    }
    for name in NOISY_LIBRARY_LOGGERS:
        loggers[name] = {"handlers": both, "level": "WARNING", "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s\n%(pathname)s:%(lineno)d\n%(message)s",
            },
            "simple": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s",
            },
            "access": {
                "format": "%(asctime)s | %(levelname)-8s | access | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "formatter": "simple",
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
            },
            "access_console": {
                "formatter": "access",
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
            },
            "error_console": {
                "formatter": "detailed",
                "class": "logging.StreamHandler",
                "stream": sys.stderr,
                "level": "WARNING",
            },
        },
        "loggers": loggers,
    }


def setup_logging(log_level: str = "INFO", debug: bool = False):
    logging.config.dictConfig(build_logging_config(log_level, debug))
