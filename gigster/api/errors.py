"""Exception handlers mapping validation and lifecycle errors to HTTP."""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from statemachine.exceptions import TransitionNotAllowed

from gigster.core.logging import get_logger
from gigster.workflows.errors import (
    ConflictError,
    DocumentNotFoundError,
    InvalidOperationError,
    ProposalExpiredError,
)

logger = get_logger(__name__)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report schema mismatches as 400 with field-level detail."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "message": "Invalid request data",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


async def transition_error_handler(
    request: Request, exc: TransitionNotAllowed
) -> JSONResponse:
    logger.info("transition_rejected", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": f"Invalid transition: {exc}"},
    )


async def not_found_handler(request: Request, exc: DocumentNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)}
    )


async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


async def bad_request_handler(
    request: Request, exc: InvalidOperationError | ProposalExpiredError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(TransitionNotAllowed, transition_error_handler)
    app.add_exception_handler(DocumentNotFoundError, not_found_handler)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(InvalidOperationError, bad_request_handler)
    app.add_exception_handler(ProposalExpiredError, bad_request_handler)
