"""Ledger exceptions and their mapping to HTTP responses."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class PodLedgerException(Exception):
    """Base class for every error raised by the ledger.

    ``context`` carries whatever a caller needs to render a message
    without a second lookup (references, lock timestamps, ...).
    """

    code = "ledger_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


class NotFoundError(PodLedgerException):
    code = "not_found"

    def __init__(self, entity_type: str, entity_id: str, **context: Any):
        super().__init__(
            f"{entity_type.capitalize()} {entity_id} not found",
            entity_type=entity_type,
            entity_id=entity_id,
            **context,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ForbiddenError(PodLedgerException):
    code = "forbidden"


class DeactivatedError(PodLedgerException):
    code = "deactivated"


class LockedError(PodLedgerException):
    code = "locked"


class AlreadyLockedError(PodLedgerException):
    code = "already_locked"


class DuplicatePodError(PodLedgerException):
    code = "duplicate_pod"


class AlreadyCollectedError(PodLedgerException):
    code = "already_collected"


class InvalidTransitionError(PodLedgerException):
    code = "invalid_transition"


class ValidationError(PodLedgerException):
    code = "validation_error"


# Most specific first; the base class must stay last.
_STATUS_CODES: list[tuple[type[PodLedgerException], int]] = [
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (DeactivatedError, 403),
    (LockedError, 423),
    (AlreadyLockedError, 409),
    (DuplicatePodError, 409),
    (AlreadyCollectedError, 409),
    (InvalidTransitionError, 409),
    (ValidationError, 422),
    (PodLedgerException, 400),
]


def error_body(exc: PodLedgerException) -> dict[str, Any]:
    """Serialise an exception into the JSON body returned to callers."""
    body = {"detail": str(exc), "code": exc.code}
    body.update(jsonable_encoder(exc.context))
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Register ledger exception handlers on a FastAPI app.

    More specific handlers must be registered first so FastAPI
    matches them before the generic PodLedgerException handler.

    Handler order (most specific first):
    1. NotFoundError → 404
    2. ForbiddenError, DeactivatedError → 403
    3. LockedError → 423
    4. AlreadyLockedError, DuplicatePodError, AlreadyCollectedError,
       InvalidTransitionError → 409
    5. ValidationError → 422
    6. PodLedgerException → 400 (catch-all)
    """
    for exc_class, status_code in _STATUS_CODES:
        app.add_exception_handler(exc_class, _make_handler(status_code))


def _make_handler(status_code: int):
    async def _handler(
        request: Request,
        exc: PodLedgerException,
    ) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=error_body(exc))

    return _handler
