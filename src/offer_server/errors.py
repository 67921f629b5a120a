"""Global exception handlers — map SDK exceptions to HTTP status codes.

Route handlers stay on the happy path; every SDK error class has one
handler here:

  - StepValidationError   → 422, with the failing field and a message the
                            UI shows next to the input
  - SessionNotFoundError,
    OfferNotFoundError    → 404
  - SessionClosedError    → 409
  - ValueError            → 400 (e.g. "Back" on the first step)
  - anything else         → 500 with a generic "try again"

Only validation messages reach the client verbatim; other details (session
ids, statuses) stay in the server log.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from offer_funnel.errors import (
    OfferNotFoundError,
    SessionClosedError,
    SessionNotFoundError,
    StepValidationError,
)

logger = logging.getLogger(__name__)


async def validation_error_handler(request: Request, exc: StepValidationError) -> JSONResponse:
    """Answer rejected: the session is unchanged, the UI re-prompts."""
    logger.info("Validation failed at %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "field": exc.field},
    )


async def not_found_handler(
    request: Request, exc: SessionNotFoundError | OfferNotFoundError
) -> JSONResponse:
    logger.warning("Not found at %s: %s", request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def session_closed_handler(request: Request, exc: SessionClosedError) -> JSONResponse:
    logger.warning("Closed session mutated at %s: %s", request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": "Session is already finished"})


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Any other ``ValueError`` from the SDK is a bad request.

    The raw message is logged server-side; only "already at the first step"
    is meaningful enough to forward to the client.
    """
    msg = str(exc)
    logger.warning("ValueError [400] at %s: %s", request.url.path, msg)
    detail = msg if "first step" in msg else "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for storage and other unexpected failures — log traceback, return 500.

    The request transaction has been rolled back, so the visitor's last
    accepted answer is intact and retrying the same action is safe.
    """
    logger.exception("Unhandled exception at %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Something went wrong. Please try again."},
    )
