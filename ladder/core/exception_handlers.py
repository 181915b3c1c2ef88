"""
Exception handlers for the ranked ladder API.
"""
import logging
from fastapi import Request, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ladder.core.config import settings
from ladder.core.exceptions import (
    LadderException, NotFound, PlayerNotFound, MatchNotFound,
    InvalidMatchState, InvalidWinner
)

logger = logging.getLogger(__name__)


def create_error_response(status_code: int, detail: str, error_code: str, request: Request) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "error_code": error_code,
            "request_id": getattr(request.state, 'request_id', None)
        }
    )


async def player_not_found_handler(request: Request, exc: PlayerNotFound) -> JSONResponse:
    """Handle player not found exceptions."""
    return create_error_response(404, str(exc), "PLAYER_NOT_FOUND", request)


async def match_not_found_handler(request: Request, exc: MatchNotFound) -> JSONResponse:
    """Handle match not found exceptions."""
    return create_error_response(404, str(exc), "MATCH_NOT_FOUND", request)


async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    """Handle any other missing record."""
    return create_error_response(404, str(exc), "NOT_FOUND", request)


async def invalid_match_state_handler(request: Request, exc: InvalidMatchState) -> JSONResponse:
    """Handle transitions on matches that are no longer in progress."""
    return create_error_response(409, str(exc), "INVALID_MATCH_STATE", request)


async def invalid_winner_handler(request: Request, exc: InvalidWinner) -> JSONResponse:
    """Handle winners that did not play in the match."""
    return create_error_response(400, str(exc), "INVALID_WINNER", request)


async def ladder_exception_handler(request: Request, exc: LadderException) -> JSONResponse:
    """Handle generic ladder exceptions."""
    return create_error_response(400, str(exc), "LADDER_ERROR", request)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation errors with better formatting."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(x) for x in error["loc"][1:]),
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "errors": errors,
            "error_code": "VALIDATION_ERROR",
            "request_id": getattr(request.state, 'request_id', None)
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle generic HTTP exceptions."""
    return create_error_response(exc.status_code, exc.detail, f"HTTP_{exc.status_code}", request)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)

    # Don't expose internal errors in production
    if settings.DEBUG:
        detail = str(exc)
    else:
        detail = "An unexpected error occurred"

    return create_error_response(500, detail, "INTERNAL_ERROR", request)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(PlayerNotFound, player_not_found_handler)
    app.add_exception_handler(MatchNotFound, match_not_found_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(InvalidMatchState, invalid_match_state_handler)
    app.add_exception_handler(InvalidWinner, invalid_winner_handler)
    app.add_exception_handler(LadderException, ladder_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
