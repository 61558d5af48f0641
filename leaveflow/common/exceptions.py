"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://leaveflow.dev/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ForbiddenException(AppException):
    """403 — actor may not perform this action."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class NotAuthorizedApproverException(ForbiddenException):
    """403 — actor holds no undecided step for the current stage, directly or by delegation."""

    def __init__(self, request_id: Any) -> None:
        super().__init__(
            detail=(
                f"You are not an approver for the pending stage of leave "
                f"request '{request_id}'."
            ),
        )
        self.error_type = "not-authorized-approver"


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


class CommentRequiredException(AppException):
    """422 — refusal or return without a comment."""

    def __init__(self, action: str) -> None:
        super().__init__(
            status_code=422,
            error_type="comment-required",
            title="Comment Required",
            detail=f"A comment is required to mark a request as {action}.",
            errors={"comment": ["This field is required."]},
        )


class EmptyWorkingRangeException(AppException):
    """422 — the date range contains no working time."""

    def __init__(self) -> None:
        super().__init__(
            status_code=422,
            error_type="empty-working-range",
            title="Empty Working Range",
            detail=(
                "No working days found in the selected range "
                "(all days may be weekends or holidays)."
            ),
        )


class InvalidTransitionException(AppException):
    """409 — operation not allowed from the request's current status."""

    def __init__(self, current: Any, operation: Any) -> None:
        current_value = getattr(current, "value", current)
        operation_value = getattr(operation, "value", operation)
        super().__init__(
            status_code=409,
            error_type="invalid-transition",
            title="Invalid Transition",
            detail=(
                f"Cannot {operation_value} a leave request in status "
                f"'{current_value}'."
            ),
        )
        self.current = current
        self.operation = operation


class ConcurrentModificationException(AppException):
    """409 — a concurrent writer changed the row first."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="concurrent-modification",
            title="Concurrent Modification",
            detail=(
                f"{entity_type} '{entity_id}' was modified concurrently. "
                "Reload and retry."
            ),
        )


class LedgerInvariantException(AppException):
    """409 — a balance mutation would drive a counter below zero."""

    def __init__(self, balance_id: Any, field: str) -> None:
        super().__init__(
            status_code=409,
            error_type="ledger-invariant",
            title="Ledger Invariant Violated",
            detail=f"Balance '{balance_id}' would end with negative {field}.",
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
