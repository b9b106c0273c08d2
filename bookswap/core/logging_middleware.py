import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("bookswap.http")

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로그 + 요청 ID 전파

    클라이언트가 X-Request-ID 를 보내면 그대로 사용하고 없으면 새로 발급한다.
    request.state.request_id 로 핸들러에서도 참조 가능.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        client = request.client.host if request.client else "-"
        prefix = f"[{request_id}] {request.method} {request.url.path}"

        logger.info(f"{prefix} from {client}")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"{prefix} failed with unhandled error")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        line = f"{prefix} -> {response.status_code} in {duration_ms:.1f}ms"
        if response.status_code >= 500:
            logger.error(line)
        elif response.status_code >= 400:
            logger.warning(line)
        else:
            logger.info(line)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
