"""Request ID middleware — unique ID per request for tracing.

Every request gets an id, either from the incoming X-Request-ID header
or freshly generated. It is bound to structlog's contextvars for the
duration of the request and echoed back, together with the pid of the
worker that served it (X-Worker-PID), which is how you tell CLUSTER
workers apart from the outside.
"""

import os
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate a unique request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response: Response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Worker-PID"] = str(os.getpid())
        return response
