"""
Request ID middleware for correlating every log line of one request.
"""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.logging_config import request_id_ctx


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Adds a unique request ID to each request.

    The client may supply one in X-Request-ID; otherwise a UUID4 is generated.
    The ID is stored on request.state, exposed to log records through a
    context variable, and echoed back in the response headers.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        token = request_id_ctx.set(request_id)
        try:
            response: Response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_ctx.reset(token)


def get_request_id(request: Request) -> str:
    """
    Request ID from request state, or "no-request-id" outside the middleware.
    """
    return getattr(request.state, "request_id", "no-request-id")
