"""
ytclipper Backend — Request ID Middleware
===========================================

What:  Assigns a short correlation ID to each request and echoes it back.
Why:   Error responses carry the ID, so a user report maps straight to the
       matching log lines.
How:   Takes X-Request-ID from the client if present, else generates one;
       stores it in a ContextVar and in request.state; sets the response header.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Accepts a client-provided X-Request-ID so frontend traces line up."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # 8 hex chars is enough to correlate and stays readable in logs
        rid = request.headers.get("X-Request-ID", uuid.uuid4().hex[:8])

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
