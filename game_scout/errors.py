"""Custom exceptions and FastAPI error handler registration."""
from __future__ import annotations

import traceback

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ── Custom Exceptions ────────────────────────────────────────────────


class JobNotFoundError(Exception):
    """Requested job ID does not exist."""


class UnknownCommandError(Exception):
    """No unit of work is registered under the requested command name."""


class SimilarityInputError(ValueError):
    """Similarity query is malformed (empty corpus, mismatched dimensions, bad k)."""


class ItemNotFoundError(KeyError):
    """Item to find neighbours for is not present in the corpus."""

    def __str__(self) -> str:
        # KeyError repr-quotes its argument
        return str(self.args[0]) if self.args else ""


class CorpusNotReadyError(Exception):
    """A corpus file has not been produced yet."""


# ── Error → HTTP mapping ────────────────────────────────────────────

EXCEPTION_STATUS = {
    JobNotFoundError: 404,
    UnknownCommandError: 404,
    ItemNotFoundError: 404,
    CorpusNotReadyError: 409,
    SimilarityInputError: 400,
}


def error_envelope(message: str) -> dict:
    """Failure body shared by every endpoint."""
    return {"success": False, "message": message}


def _make_handler(status_code: int):
    """Create a handler that wraps an exception in the failure envelope."""

    async def _handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=error_envelope(str(exc)))

    return _handler


def register_error_handlers(app: FastAPI) -> None:
    """Register custom exception handlers on the FastAPI app."""
    for exc_cls, status in EXCEPTION_STATUS.items():
        app.add_exception_handler(exc_cls, _make_handler(status))

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), traceback=traceback.format_exc())
        return JSONResponse(status_code=500, content=error_envelope("Internal server error"))
