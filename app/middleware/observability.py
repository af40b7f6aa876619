from __future__ import annotations

import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import get_logger

REQUEST_ID_HEADER = "x-request-id"


def normalize_path(request: Request) -> str:
    """Route template (``/api/v1/cart/{cart_id}``) when routing matched, raw path otherwise."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def request_context(request: Request) -> dict[str, Any]:
    """Request id plus the cart and item ids from the path, for log records."""
    context: dict[str, Any] = {"request_id": getattr(request.state, "request_id", None)}
    for key in ("cart_id", "item_id"):
        if key in request.path_params:
            context[key] = request.path_params[key]
    return context


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and log the ones that fail."""

    def __init__(self, app, *, log_4xx: bool = True, log_5xx: bool = True) -> None:
        super().__init__(app)
        self.logger = get_logger("app.requests")
        self.log_4xx = log_4xx
        self.log_5xx = log_5xx

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._log(request, 500, time.perf_counter() - start, "Unhandled server error", "error")
            raise

        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        status_code = response.status_code
        duration = time.perf_counter() - start
        if status_code >= 500 and self.log_5xx:
            self._log(request, status_code, duration, "Server error response", "error")
        elif status_code >= 400 and self.log_4xx:
            self._log(request, status_code, duration, "Client error response", "warning")

        return response

    def _log(self, request: Request, status_code: int, duration: float, message: str, level: str) -> None:
        payload = {
            **request_context(request),
            "method": request.method,
            "path": normalize_path(request),
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 3),
        }
        getattr(self.logger, level)(message, extra=payload)
