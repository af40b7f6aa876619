"""Custom FastAPI middleware components."""

from .observability import ObservabilityMiddleware, request_context

__all__ = [
    "ObservabilityMiddleware",
    "request_context",
]
