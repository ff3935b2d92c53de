from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(AppError):
    """A referenced request or ledger does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(AppError):
    """The target is not in a state that allows the operation."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedError(AppError):
    """The actor lacks the admin/manager relationship the operation needs."""

    status_code = status.HTTP_403_FORBIDDEN


class QuotaExceededError(AppError):
    """The annual optional-holiday allowance would be exceeded."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InsufficientBalanceError(AppError):
    """General leave cannot be covered by the quarterly and carried buckets."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, shortfall: int) -> None:
        self.shortfall = shortfall
        super().__init__(f"Insufficient leave balance. Short by {shortfall} days.")


class ConcurrencyConflictError(AppError):
    """A concurrent write to the same ledger could not be serialized; retry."""

    status_code = status.HTTP_409_CONFLICT


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
