"""Error taxonomy shared by the coupon engine."""

from .models import ErrorDetail, error_detail_from
from .exceptions import (
    CouponEngineError,
    PolicySourceError,
    MalformedPolicyError,
    UsageMutationError,
    PolicyNotFoundError,
    UsageBoundaryError,
)

__all__ = [
    "ErrorDetail",
    "error_detail_from",
    "CouponEngineError",
    "PolicySourceError",
    "MalformedPolicyError",
    "UsageMutationError",
    "PolicyNotFoundError",
    "UsageBoundaryError",
]
