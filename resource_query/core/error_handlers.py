from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from resource_query.core.exceptions import (
    DomainError,
    NotFoundError,
    QueryExecutionError,
)


ERROR_STATUS_MAP: dict[type[DomainError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    QueryExecutionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = ERROR_STATUS_MAP.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)

    return JSONResponse(
        status_code=status_code,
        content={
            "data": None,
            "meta": {
                "request_id": getattr(request.state, "request_id", None),
                "timestamp": datetime.utcnow().isoformat() + "Z",
            },
            "errors": [
                {
                    "code": exc.code,
                    "message": exc.message,
                    "details": exc.details,
                }
            ],
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the domain error handler on a FastAPI application."""
    app.add_exception_handler(DomainError, domain_error_handler)
