from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic_core import ValidationError as PydanticValidationError
from starlette import status

from app.services.errors import (
    BaseServiceError,
    InsufficientBalanceError,
    InsufficientDataError,
    NotFoundError,
    PersistenceError,
    TrainingInProgressError,
    ValidationError,
)


class DetailJsonExceptionHandler:
    def __init__(self, status_code: int):
        self.status_code = status_code

    async def __call__(self, request: Request, exc: BaseServiceError) -> JSONResponse:
        return JSONResponse({"detail": exc.detail}, status_code=self.status_code)


async def validation_error_exception_handler(
    request: Request, exc: PydanticValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(
        NotFoundError, DetailJsonExceptionHandler(status.HTTP_404_NOT_FOUND)
    )
    app.add_exception_handler(
        ValidationError, DetailJsonExceptionHandler(status.HTTP_400_BAD_REQUEST)
    )
    app.add_exception_handler(
        InsufficientBalanceError, DetailJsonExceptionHandler(status.HTTP_400_BAD_REQUEST)
    )
    app.add_exception_handler(
        InsufficientDataError,
        DetailJsonExceptionHandler(status.HTTP_422_UNPROCESSABLE_ENTITY),
    )
    app.add_exception_handler(
        TrainingInProgressError, DetailJsonExceptionHandler(status.HTTP_409_CONFLICT)
    )
    app.add_exception_handler(
        PersistenceError,
        DetailJsonExceptionHandler(status.HTTP_500_INTERNAL_SERVER_ERROR),
    )
    app.add_exception_handler(
        BaseServiceError, DetailJsonExceptionHandler(status.HTTP_400_BAD_REQUEST)
    )
    app.add_exception_handler(PydanticValidationError, validation_error_exception_handler)
