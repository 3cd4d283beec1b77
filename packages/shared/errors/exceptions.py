"""Coupon engine exceptions with error codes."""

from typing import Any, Optional


class CouponEngineError(Exception):
    """Base exception for the coupon rule engine."""

    def __init__(
        self,
        message: str,
        code: str = "CPN_000",
        category: str = "system",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}
        super().__init__(message)


class PolicySourceError(CouponEngineError):
    """Policy catalog missing, unreadable or not valid JSON."""

    def __init__(
        self,
        message: str,
        code: str = "CPN_100",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "data_unavailable", details)


class MalformedPolicyError(CouponEngineError):
    """A single policy record could not be parsed."""

    def __init__(
        self,
        message: str,
        code: str = "CPN_200",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "malformed_policy", details)


class UsageMutationError(CouponEngineError):
    """Usage counter could not be changed."""

    def __init__(
        self,
        message: str,
        code: str = "CPN_300",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "usage_mutation", details)


class PolicyNotFoundError(UsageMutationError):
    """No policy with the given id."""

    def __init__(
        self,
        message: str,
        code: str = "CPN_304",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class UsageBoundaryError(UsageMutationError):
    """Counter already at zero or at its usage limit."""

    def __init__(
        self,
        message: str,
        code: str = "CPN_309",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
