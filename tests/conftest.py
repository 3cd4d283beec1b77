"""Shared fixtures: policy factory, cart factory, fixed clock, isolated settings."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from packages.coupon_rules import CartSnapshot, Policy, Settings

# Wednesday
FIXED_NOW = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)


def policy_record(**overrides: Any) -> Dict[str, Any]:
    """Wire-format policy record valid at FIXED_NOW; override any camelCase key."""
    record: Dict[str, Any] = {
        "id": "p1",
        "name": "P1",
        "description": "Test coupon",
        "discountType": "percentage",
        "discount": 10,
        "threshold": 0,
        "isActive": True,
        "validFrom": "2026-01-01T00:00:00Z",
        "validUpto": "2026-12-31T23:59:59Z",
        "used": 0,
        "priority": 3,
    }
    record.update(overrides)
    return record


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def config() -> Settings:
    cfg = Settings()
    cfg.timezone = "UTC"
    cfg.default_shipping_cost = 40.0
    cfg.suggestion_ceiling = 2000.0
    cfg.suggestion_tie_window = 50.0
    return cfg


@pytest.fixture
def make_policy():
    def _make(**overrides: Any) -> Policy:
        return Policy.model_validate(policy_record(**overrides))

    return _make


@pytest.fixture
def make_cart():
    def _make(
        total: float,
        items: Optional[List[Dict[str, Any]]] = None,
        shipping_cost: Optional[float] = None,
    ) -> CartSnapshot:
        return CartSnapshot(total=total, items=items or [], shipping_cost=shipping_cost)

    return _make
