"""Common Pydantic schemas."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Actor(BaseModel):
    """Authenticated account acting on the engine."""

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(..., min_length=1, description="Account identifier (token subject)")
    email: Optional[str] = Field(None, description="Account email, used when a party is known only by email")

    @property
    def label(self) -> str:
        """Identifier recorded in audit trails and negotiation history."""
        return self.account_id or (self.email or "")


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class PaginatedResponse(BaseModel):
    """Base class for paginated responses."""

    next_cursor: Optional[str] = Field(None, description="Cursor for next page")


# Error responses documented on every domain router
PROBLEM_RESPONSES = {
    status_code: {"model": Problem, "description": description}
    for status_code, description in (
        (400, "Business rule violation"),
        (401, "Missing or invalid bearer token"),
        (403, "Actor may not perform this action"),
        (404, "Entity not found"),
        (409, "Conflicting state or concurrent change"),
        (410, "Claim, token or invitation expired"),
        (422, "Malformed request body"),
    )
}
