# Overview: Shared helpers for API routes; maps domain errors to JSON responses.

from flask import current_app

from ..money import to_json_amount
from ..validation import NotFoundError, ValidationError
from ..services.balance_service import InconsistentStateError, InsufficientBalanceError


def error_response(exc: Exception):
    """
    JSON error body and status for a domain error.

    ValidationError -> 400, NotFoundError -> 404,
    InsufficientBalanceError -> 409, InconsistentStateError -> 500.
    """
    if isinstance(exc, ValidationError):
        body = {"error": str(exc)}
        if exc.field:
            body["field"] = exc.field
        return body, 400
    if isinstance(exc, NotFoundError):
        return {"error": str(exc)}, 404
    if isinstance(exc, InsufficientBalanceError):
        return {
            "error": str(exc),
            "available": to_json_amount(exc.available),
            "requested": to_json_amount(exc.requested),
        }, 409
    if isinstance(exc, InconsistentStateError):
        current_app.logger.error("Inconsistent ledger state: %s", exc)
        return {"error": str(exc)}, 500
    current_app.logger.exception("Unhandled error")
    return {"error": "Internal server error"}, 500


DOMAIN_ERRORS = (ValidationError, NotFoundError, InsufficientBalanceError, InconsistentStateError)
