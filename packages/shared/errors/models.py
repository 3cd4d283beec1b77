"""Structured error records."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from .exceptions import CouponEngineError


class ErrorDetail(BaseModel):
    """Structured error details, e.g. for a policy record skipped at load time."""

    code: str = Field(..., description="Error code in format MODULE_NUMBER")
    message: str = Field(..., description="Human-readable error message")
    category: str = Field(
        ...,
        description="Error category: data_unavailable, malformed_policy, usage_mutation, system",
    )
    details: Optional[dict[str, Any]] = Field(
        default=None,
        description="Additional context (policy_id, index, path, etc.)",
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        description="Error timestamp in ISO 8601",
    )


def error_detail_from(exc: CouponEngineError) -> ErrorDetail:
    """Build an ErrorDetail from an engine exception."""
    return ErrorDetail(
        code=exc.code,
        message=exc.message,
        category=exc.category,
        details=exc.details or None,
    )
