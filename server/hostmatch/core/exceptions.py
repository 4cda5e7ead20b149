"""Domain errors rendered as RFC 9457 problem documents."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://hostmatch.dev/problems/"
PROBLEM_MEDIA_TYPE = "application/problem+json"


def problem_type(slug: str) -> str:
    return PROBLEM_BASE_URI + slug


class ProblemDetailsException(HTTPException):
    """
    Base class for every error the engine reports to callers.

    https://tools.ietf.org/rfc/rfc9457.txt

    Services raise subclasses directly; the registered handler renders them,
    so routers never translate errors by hand. Each problem carries a
    machine-readable ``code`` and a ``retryable`` flag telling the caller
    whether re-reading state and trying again can succeed.
    """

    status_code: int = 500
    title: str = "Error"
    slug: str = "error"

    def __init__(
        self,
        detail: Optional[str] = None,
        code: str = "ERROR",
        retryable: bool = False,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.retryable = retryable
        self.problem_details = self.build_problem(detail, extensions or {})
        super().__init__(status_code=self.status_code, detail=self.problem_details, headers=headers)

    def build_problem(self, detail: Optional[str], extensions: Dict[str, Any]) -> Dict[str, Any]:
        problem = {
            "type": problem_type(self.slug),
            "title": self.title,
            "status": self.status_code,
            "code": self.code,
            "retryable": self.retryable,
        }
        if detail:
            problem["detail"] = detail
        problem.update(extensions)
        return problem


class ValidationError(ProblemDetailsException):
    """Malformed input combination (e.g. an unknown commission path/tier pair)."""

    status_code = 400
    title = "Validation Error"
    slug = "validation-error"

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        code: str = "VALIDATION_ERROR",
    ):
        super().__init__(detail=detail, code=code, extensions={"errors": errors} if errors else None)


class AuthenticationError(ProblemDetailsException):
    status_code = 401
    title = "Authentication Required"
    slug = "authentication-required"

    def __init__(self, detail: str = "A valid bearer token is required"):
        super().__init__(detail=detail, code="UNAUTHENTICATED", headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(ProblemDetailsException):
    """Actor is not authorized for this action on this entity."""

    status_code = 403
    title = "Access Forbidden"
    slug = "access-forbidden"

    def __init__(self, detail: str = "You are not a party to this resource", code: str = "FORBIDDEN"):
        super().__init__(detail=detail, code=code)


class NotFoundError(ProblemDetailsException):
    status_code = 404
    title = "Resource Not Found"
    slug = "resource-not-found"

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id
            detail = detail or f"No {resource_type} with ID '{resource_id}'"
        super().__init__(detail=detail or f"No such {resource_type}", code="NOT_FOUND", extensions=extensions)


class ConflictError(ProblemDetailsException):
    """Exclusivity, state or date-overlap violation."""

    status_code = 409
    title = "Resource Conflict"
    slug = "resource-conflict"

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        code: str = "CONFLICT",
        retryable: bool = False,
    ):
        super().__init__(
            detail=detail,
            code=code,
            retryable=retryable,
            extensions={"conflicting_resource": conflicting_resource} if conflicting_resource else None,
        )


class ExpiredError(ProblemDetailsException):
    """A deadline-bound resource (claim, token, invitation) is no longer usable."""

    status_code = 410
    title = "Resource Expired"
    slug = "resource-expired"

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        expired_at: Optional[datetime] = None,
        detail: Optional[str] = None,
        code: str = "EXPIRED",
    ):
        extensions = {"resource_type": resource_type, "resource_id": resource_id}
        if expired_at:
            extensions["expired_at"] = expired_at.isoformat() + "Z"
        super().__init__(
            detail=detail or f"The {resource_type} '{resource_id}' is no longer usable",
            code=code,
            extensions=extensions,
        )


class RoundsExhaustedError(ProblemDetailsException):
    """The negotiation has used every counter-offer round."""

    status_code = 409
    title = "Negotiation Rounds Exhausted"
    slug = "rounds-exhausted"

    def __init__(self, invitation_id: str, max_rounds: int):
        super().__init__(
            detail=(
                f"Invitation {invitation_id} reached the limit of {max_rounds} "
                "counter-offers; only accept or decline remain"
            ),
            code="ROUNDS_EXHAUSTED",
            extensions={"invitation_id": invitation_id, "max_rounds": max_rounds},
        )


def problem_response(request: Request, status_code: int, content: Dict[str, Any], headers=None) -> JSONResponse:
    body = dict(content)
    body.setdefault("instance", request.url.path)
    return JSONResponse(status_code=status_code, content=body, headers=headers, media_type=PROBLEM_MEDIA_TYPE)


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    return problem_response(request, exc.status_code, exc.problem_details, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as a 422 problem with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return problem_response(
        request,
        422,
        {
            "type": problem_type("request-validation"),
            "title": "Unprocessable Request",
            "status": 422,
            "code": "REQUEST_INVALID",
            "retryable": False,
            "violations": violations,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort handler for anything a service did not anticipate.

    The traceback is logged under a fresh ``error_id`` that is also returned
    to the caller, so a support ticket can be matched to the log line.
    """
    error_id = str(uuid.uuid4())
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"error_id": error_id, "path": request.url.path, "method": request.method},
    )
    return problem_response(
        request,
        500,
        {
            "type": problem_type("internal-server-error"),
            "title": "Internal Server Error",
            "status": 500,
            "code": "INTERNAL",
            "retryable": False,
            "detail": "An unexpected error occurred while processing the request",
            "error_id": error_id,
            "timestamp": datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
        },
    )
