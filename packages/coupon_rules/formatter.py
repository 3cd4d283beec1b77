"""Display projections for policies and threshold suggestions."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .config import Settings
from .models import CartSnapshot, DiscountKind, Policy, Suggestion, UserSnapshot, utcnow
from .predicates import evaluate, format_amount

logger = logging.getLogger(__name__)

FORMAT_ERROR_REASON = "Error formatting coupon"


def discount_badge(policy: Policy) -> str:
    """Short badge text, e.g. "10% OFF" or "FREE SHIP"."""
    amount = format_amount(policy.discount)
    kind = policy.discount_type
    if kind == DiscountKind.PERCENTAGE.value:
        return f"{amount}% OFF"
    if kind == DiscountKind.FIXED.value:
        return f"₹{amount} OFF"
    if kind == DiscountKind.SHIPPING.value:
        return "FREE SHIP"
    if kind == DiscountKind.BOGO.value:
        return "BOGO"
    if kind == DiscountKind.CASHBACK.value:
        return f"₹{amount} BACK"
    return "DISCOUNT"


def format_policy(
    policy: Policy,
    cart: Optional[CartSnapshot] = None,
    user: Optional[UserSnapshot] = None,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Policy as a display dict (camelCase keys). With a cart, adds the live
    verdict: isApplicable, reasons, calculatedDiscount, finalTotal.
    """
    now = now or utcnow()
    try:
        out: Dict[str, Any] = {
            "id": policy.id,
            "name": policy.name,
            "description": policy.description,
            "discount": policy.discount,
            "discountType": policy.discount_type,
            "threshold": policy.threshold,
            "maxDiscount": policy.max_discount,
            "validUpto": policy.valid_upto.isoformat().replace("+00:00", "Z"),
            "isActive": policy.is_active,
            "priority": policy.priority,
            "badge": discount_badge(policy),
            "isExpired": policy.is_expired(now),
        }
        if cart is not None:
            verdict = evaluate(policy, cart, user, now, config)
            out["isApplicable"] = verdict.is_valid
            out["reasons"] = verdict.reasons
            out["calculatedDiscount"] = verdict.discount_amount
            out["finalTotal"] = verdict.final_total
        return out
    except Exception:
        logger.exception("Error formatting coupon %s", policy.id)
        fallback = policy.model_dump(mode="json", by_alias=True)
        fallback["isApplicable"] = False
        fallback["reasons"] = [FORMAT_ERROR_REASON]
        return fallback


def format_suggestion(suggestion: Suggestion, cart: CartSnapshot) -> Dict[str, Any]:
    """Suggestion as a display dict with progress toward the threshold."""
    policy = suggestion.policy
    progress = 100.0
    if policy.threshold > 0:
        progress = max(0.0, min(100.0, cart.total / policy.threshold * 100))
    badge = discount_badge(policy)
    return {
        "coupon": {
            "id": policy.id,
            "name": policy.name,
            "discount": policy.discount,
            "discountType": policy.discount_type,
            "threshold": policy.threshold,
            "badge": badge,
        },
        "amountNeeded": suggestion.amount_needed,
        "potentialSavings": suggestion.potential_savings,
        "progress": round(progress, 1),
        "message": f"Add ₹{format_amount(suggestion.amount_needed)} more to get {badge} with {policy.name}",
    }
