import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a request-id (incoming header or a fresh uuid4),
    echoes it back in the response headers and logs one access line per call.
    """

    def __init__(self, app, header_name: str = "X-Request-Id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = rid

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        response.headers[self.header_name] = rid
        logger.info(
            "[http] %s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"request_id": rid, "elapsed_ms": round(elapsed_ms, 2)},
        )
        return response
