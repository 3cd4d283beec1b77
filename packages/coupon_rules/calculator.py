"""Discount calculation per discount strategy."""

import logging
from typing import Optional

from .config import Settings, settings as default_settings
from .models import (
    BogoDiscount,
    CartSnapshot,
    CashbackDiscount,
    FixedDiscount,
    PercentageDiscount,
    Policy,
    ShippingDiscount,
)

logger = logging.getLogger(__name__)


def calculate_discount(
    policy: Policy,
    cart: CartSnapshot,
    config: Optional[Settings] = None,
) -> float:
    """
    Discount amount for policy on cart, clamped to [0, cart.total].
    Unknown discount kinds yield 0.
    """
    config = config or default_settings
    strategy = policy.strategy()
    amount = 0.0

    if isinstance(strategy, PercentageDiscount):
        amount = cart.total * strategy.percent / 100
        if strategy.max_discount and amount > strategy.max_discount:
            amount = strategy.max_discount
    elif isinstance(strategy, (FixedDiscount, CashbackDiscount)):
        amount = strategy.amount
    elif isinstance(strategy, ShippingDiscount):
        amount = cart.shipping_cost if cart.shipping_cost is not None else config.default_shipping_cost
    elif isinstance(strategy, BogoDiscount):
        # Only the single cheapest unit, regardless of quantities
        if len(cart.items) >= 2:
            cheapest = min(item.price for item in cart.items)
            amount = cheapest * strategy.percent / 100
    else:
        logger.debug("Unknown discount type %r on policy %s", policy.discount_type, policy.id)

    return max(0.0, min(amount, cart.total))
