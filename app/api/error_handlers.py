from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.logging import storage_alert
from app.middleware.observability import request_context
from app.services.exceptions import (
    DomainValidationError,
    OperationCancelledError,
    ResourceNotFoundError,
    ServiceError,
    StorageError,
)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResourceNotFoundError)
    async def handle_not_found(_: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.detail})

    @app.exception_handler(DomainValidationError)
    async def handle_validation(_: Request, exc: DomainValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(OperationCancelledError)
    async def handle_cancelled(_: Request, exc: OperationCancelledError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_408_REQUEST_TIMEOUT, content={"detail": exc.detail})

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError) -> JSONResponse:
        storage_alert(
            "Storage failure while serving request",
            phase=exc.phase,
            **request_context(request),
            method=request.method,
            path=request.url.path,
            error=exc.detail,
            cause=repr(exc.__cause__),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.detail})
