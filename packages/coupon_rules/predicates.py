"""Predicate evaluation: is a policy valid for this cart and user right now?

Checks run in a fixed order and stop at the first failure, which becomes the
only reason on the verdict. The threshold advisor relies on this: a policy
whose sole reason is the minimum-order-value one is a suggestion candidate.
"""

import logging
from datetime import datetime, time
from typing import Optional

from .calculator import calculate_discount
from .config import Settings, settings as default_settings
from .models import (
    WEEKDAYS,
    CartSnapshot,
    Policy,
    TimeWindow,
    UserSnapshot,
    Verdict,
    as_utc,
    utcnow,
)

logger = logging.getLogger(__name__)

MIN_ORDER_VALUE_REASON = "Minimum order value"
USAGE_LIMIT_REASON = "Coupon usage limit reached"
EVALUATION_ERROR_REASON = "Error validating coupon"


def format_amount(value: float) -> str:
    """500.0 -> "500", 499.5 -> "499.5"."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def wall_clock(now: datetime, config: Settings) -> datetime:
    """now in the configured timezone, or in system local time when none is set."""
    return as_utc(now).astimezone(config.tzinfo)


def is_within_time_window(window: TimeWindow, at: datetime) -> bool:
    """Minute resolution. start > end wraps past midnight; a half-open window always passes."""
    if not window.start or not window.end:
        return True
    start = datetime.strptime(window.start, "%H:%M").time()
    end = datetime.strptime(window.end, "%H:%M").time()
    current = time(at.hour, at.minute)
    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def _first_failure(
    policy: Policy,
    cart: CartSnapshot,
    user: UserSnapshot,
    now: datetime,
    config: Settings,
) -> Optional[str]:
    if not policy.is_active:
        return "Coupon is not active"

    if not policy.is_within_window(now):
        return "Coupon has expired or not yet valid"

    if policy.usage_exhausted:
        return USAGE_LIMIT_REASON

    if cart.total < policy.threshold:
        return f"{MIN_ORDER_VALUE_REASON} ₹{format_amount(policy.threshold)} required"

    cond = policy.conditions
    if cond is not None:
        if cond.cart_value is not None:
            if cond.cart_value.min and cart.total < cond.cart_value.min:
                return f"Minimum cart value ₹{format_amount(cond.cart_value.min)} required"
            if cond.cart_value.max and cart.total > cond.cart_value.max:
                return f"Maximum cart value ₹{format_amount(cond.cart_value.max)} exceeded"

        if cond.item_count is not None:
            total_items = cart.item_quantity
            if cond.item_count.min and total_items < cond.item_count.min:
                return f"Minimum {format_amount(cond.item_count.min)} items required"
            if cond.item_count.max and total_items > cond.item_count.max:
                return f"Maximum {format_amount(cond.item_count.max)} items allowed"

        if cond.user_type and user.type != cond.user_type:
            return f"This coupon is only for {cond.user_type} users"

        if cond.time_restriction is not None:
            if not is_within_time_window(cond.time_restriction, wall_clock(now, config)):
                return "Coupon not valid at this time"

        if cond.day_restriction:
            if WEEKDAYS[wall_clock(now, config).weekday()] not in cond.day_restriction:
                return f"Coupon only valid on {', '.join(cond.day_restriction)}"

    if policy.payment_methods and user.payment_method:
        if user.payment_method not in policy.payment_methods:
            return f"Payment method {user.payment_method} not supported"

    if policy.categories:
        if not any(item.category in policy.categories for item in cart.items):
            return f"Coupon only applicable to {', '.join(policy.categories)} categories"

    return None


def evaluate(
    policy: Policy,
    cart: CartSnapshot,
    user: Optional[UserSnapshot] = None,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> Verdict:
    """Evaluate one policy. Never raises; unexpected errors become an invalid verdict."""
    user = user or UserSnapshot()
    now = now or utcnow()
    config = config or default_settings
    try:
        reason = _first_failure(policy, cart, user, now, config)
        if reason is not None:
            return Verdict(is_valid=False, reasons=[reason], final_total=cart.total)

        discount = calculate_discount(policy, cart, config)
        return Verdict(
            is_valid=True,
            discount_amount=discount,
            final_total=max(0.0, cart.total - discount),
        )
    except Exception:
        logger.exception("Error validating coupon %s", policy.id)
        return Verdict(is_valid=False, reasons=[EVALUATION_ERROR_REASON], final_total=cart.total)


def is_threshold_only_rejection(verdict: Verdict) -> bool:
    """Invalid solely because the cart is below the policy's minimum order value."""
    return (
        not verdict.is_valid
        and len(verdict.reasons) == 1
        and verdict.reasons[0].startswith(MIN_ORDER_VALUE_REASON)
    )
