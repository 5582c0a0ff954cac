"""Maps engine errors onto HTTP responses.

``RegenerationFailed`` answers 502 like ``GenerationFailed`` but its body says
the rejection itself was recorded, so a client never retries the decision.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse

from feedback_engine.errors import (
    Conflict,
    EngineError,
    GenerationFailed,
    InvalidState,
    InvalidTransition,
    NotFound,
    RegenerationFailed,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[EngineError], int] = {
    NotFound: 404,
    InvalidState: 409,
    InvalidTransition: 409,
    Conflict: 409,
    ValidationError: 422,
    GenerationFailed: 502,
    RegenerationFailed: 502,
}


def status_for(exc: EngineError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def error_body(exc: EngineError) -> dict:
    body = {
        "error": exc.code,
        "message": exc.message,
        "details": jsonable_encoder(exc.details),
    }
    if isinstance(exc, RegenerationFailed):
        body["rejected"] = True
        body["regenerated"] = False
        rejected = exc.rejected
        body["rejected_response_id"] = getattr(rejected, "id", None)
        body["rejected_version"] = getattr(rejected, "version", None)
    return body


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=error_body(exc))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, engine_error_handler)  # type: ignore[arg-type]
