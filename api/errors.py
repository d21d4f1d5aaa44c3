"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.errors import ConfigurationIncomplete, InvalidAmount, NoBudgetData, SequenceCollision

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _json(request: Request, status_code: int, code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, details, _request_id(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(ConfigurationIncomplete)
    async def configuration_incomplete_handler(request: Request, exc: ConfigurationIncomplete):
        # Clients show the onboarding step for these fields
        return _json(
            request, 409, ErrorCodes.CONFIGURATION_INCOMPLETE, str(exc),
            {"missing": sorted(exc.missing), "kind": exc.kind},
        )

    @app.exception_handler(InvalidAmount)
    async def invalid_amount_handler(request: Request, exc: InvalidAmount):
        return _json(request, 422, ErrorCodes.INVALID_AMOUNT, str(exc))

    @app.exception_handler(SequenceCollision)
    async def sequence_collision_handler(request: Request, exc: SequenceCollision):
        logger.error(f"Sequence collision surfaced to client: {exc}")
        return _json(
            request, 409, ErrorCodes.SEQUENCE_COLLISION, str(exc),
            {"kind": exc.kind, "number": exc.number},
        )

    @app.exception_handler(NoBudgetData)
    async def no_budget_data_handler(request: Request, exc: NoBudgetData):
        return _json(request, 422, ErrorCodes.NO_BUDGET_DATA, str(exc), {"field": exc.field})

    @app.exception_handler(ValidationError)
    async def model_validation_error_handler(request: Request, exc: ValidationError):
        return _json(
            request, 422, ErrorCodes.VALIDATION_ERROR, "Invalid data",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return _json(request, 404, ErrorCodes.NOT_FOUND, message)
        return _json(request, 400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
