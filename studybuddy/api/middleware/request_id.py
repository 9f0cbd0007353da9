"""
Request context middleware for log correlation.

- Generates or accepts the X-Request-ID header and echoes it on the response
- Pulls the user id out of /users/{user_id}/... paths
- Sets both as context vars so engine logs carry them for the whole request
"""

import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from studybuddy.logging_config import get_logger, request_id_var, request_user_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000

_USER_PATH = re.compile(r"/users/([^/]+)")


def user_id_from_path(path: str) -> Optional[str]:
    """The user id segment of a /users/{user_id}/... path, if it is a valid UUID."""
    match = _USER_PATH.search(path)
    if match is None:
        return None
    try:
        return str(uuid.UUID(match.group(1)))
    except ValueError:
        return None


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with a request ID and, for per-user routes, the user id.

    Requests slower than SLOW_REQUEST_MS are logged with both.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        user_id = user_id_from_path(request.url.path)
        request.state.request_id = request_id
        request.state.user_id = user_id

        id_token = request_id_var.set(request_id)
        user_token = request_user_var.set(user_id)
        try:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers[REQUEST_ID_HEADER] = request_id
            if duration_ms > SLOW_REQUEST_MS:
                logger.warning(
                    "Slow request",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 1),
                    },
                )
            return response
        finally:
            request_user_var.reset(user_token)
            request_id_var.reset(id_token)
