#!/usr/bin/env python3
"""Evaluate a cart against the coupon catalog and print the result as JSON."""

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_root))

from packages.coupon_rules import CartSnapshot, CouponRuleEngine, JsonFilePolicyStore, settings
from packages.shared.monitoring.logging import configure_logging


def main() -> int:
    parser = argparse.ArgumentParser(description="Check which coupons apply to a cart")
    parser.add_argument("cart", help="Path to cart JSON: {total, shippingCost, items: [{price, quantity, category}]}")
    parser.add_argument("--catalog", default=settings.policy_path, help="Path to coupons.json")
    parser.add_argument("--user-type", default=None, help="User type, e.g. new, premium")
    parser.add_argument("--payment-method", default=None, help="UPI | Card | Wallet | COD")
    args = parser.parse_args()

    configure_logging(service_name="coupon-check", level=settings.log_level, json_format=settings.log_json)

    try:
        with open(args.cart, encoding="utf-8") as f:
            cart = CartSnapshot.model_validate(json.load(f))
    except (OSError, ValueError, ValidationError) as e:
        print(f"Cannot read cart: {e}", file=sys.stderr)
        return 2

    user = {"type": args.user_type, "paymentMethod": args.payment_method}
    engine = CouponRuleEngine(store=JsonFilePolicyStore(args.catalog))

    applicable = engine.find_applicable(cart, user)
    auto = engine.auto_apply(cart, user)
    best = engine.best_threshold_suggestion(cart, user)

    result = {
        "applicable": [engine.format_policy(p, cart, user) for p in applicable],
        "autoApply": auto.name if auto else None,
        "thresholdSuggestion": engine.format_suggestion(best, cart) if best else None,
    }
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
