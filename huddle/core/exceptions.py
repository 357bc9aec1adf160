"""
Custom HTTP exceptions and global exception handlers for Huddle.
All application-level errors are defined here for consistency.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ── Custom exception classes ──────────────────────────────────────────────────

class HuddleException(Exception):
    """Base exception for all Huddle domain errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code or "HUDDLE_ERROR"
        self.extra = extra or {}
        super().__init__(detail)


class NotFoundException(HuddleException):
    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} with id '{resource_id}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND",
        )


class InvalidInputException(HuddleException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="INVALID_INPUT",
        )


class UnauthorizedException(HuddleException):
    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
        )


class ForbiddenException(HuddleException):
    def __init__(self, detail: str = "You do not have permission to perform this action") -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN",
        )


class CommentAuthorException(ForbiddenException):
    def __init__(self, user_id: uuid.UUID, comment_id: uuid.UUID) -> None:
        super().__init__(f"User '{user_id}' is not the author of comment '{comment_id}'")
        self.user_id = user_id
        self.comment_id = comment_id


class ConflictException(HuddleException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT",
        )


class StoreError(HuddleException):
    """A storage backend operation failed (I/O, driver or constraint error)."""

    def __init__(self, detail: str = "Comment store is unavailable") -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="STORE_UNAVAILABLE",
        )


class CorruptStateException(HuddleException):
    """
    The comment forest is structurally broken (a cycle or a dangling parent).
    Never recovered from: the operation is aborted and the condition alerted.
    """

    def __init__(self, detail: str, comment_ids: Iterable[uuid.UUID] = ()) -> None:
        self.comment_ids = list(comment_ids)
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="CORRUPT_STATE",
            extra={"comment_ids": [str(cid) for cid in self.comment_ids]},
        )


class PartialCascadeFailureException(HuddleException):
    """
    A cascade stopped part way. ``deleted_ids`` are gone from the store and
    must still be pruned from the group index; ``pending_ids`` are still live.
    """

    def __init__(
        self,
        root_id: uuid.UUID,
        deleted_ids: Iterable[uuid.UUID],
        pending_ids: Iterable[uuid.UUID],
    ) -> None:
        self.root_id = root_id
        self.deleted_ids = set(deleted_ids)
        self.pending_ids = set(pending_ids)
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=(
                f"Deletion of comment '{root_id}' stopped after "
                f"{len(self.deleted_ids)} of "
                f"{len(self.deleted_ids) + len(self.pending_ids)} comments"
            ),
            error_code="PARTIAL_CASCADE_FAILURE",
            extra={
                "root_id": str(root_id),
                "deleted_ids": sorted(str(cid) for cid in self.deleted_ids),
                "pending_ids": sorted(str(cid) for cid in self.pending_ids),
            },
        )


# ── Exception handlers ────────────────────────────────────────────────────────

def _error_response(
    status_code: int,
    detail: str,
    error_code: str,
    extra: dict[str, Any] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "error": error_code,
        "detail": detail,
    }
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def huddle_exception_handler(
    request: Request, exc: HuddleException
) -> JSONResponse:
    if isinstance(exc, CorruptStateException):
        logger.critical(
            "Corrupt comment forest on %s %s: %s ids=%s",
            request.method,
            request.url.path,
            exc.detail,
            exc.comment_ids,
        )
    return _error_response(exc.status_code, exc.detail, exc.error_code, exc.extra)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"]})
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "VALIDATION_ERROR",
            "detail": "Request validation failed",
            "errors": errors,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected internal server error occurred",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI application."""
    app.add_exception_handler(HuddleException, huddle_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
