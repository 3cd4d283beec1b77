"""Coupon rule engine: policy validation, discount calculation, ranking and threshold suggestions."""

from .advisor import best_suggestion, suggest_thresholds
from .calculator import calculate_discount
from .config import Settings, settings
from .engine import CouponRuleEngine
from .formatter import discount_badge, format_policy, format_suggestion
from .models import (
    CartSnapshot,
    DiscountKind,
    LineItem,
    Policy,
    PolicyConditions,
    PolicyWithDiscount,
    Suggestion,
    UsageStats,
    UserSnapshot,
    Verdict,
)
from .predicates import evaluate, is_threshold_only_rejection
from .ranking import find_applicable, pick_auto_apply
from .store import InMemoryPolicyStore, JsonFilePolicyStore, PolicyStore

__all__ = [
    "CouponRuleEngine",
    "Settings",
    "settings",
    "PolicyStore",
    "InMemoryPolicyStore",
    "JsonFilePolicyStore",
    "CartSnapshot",
    "DiscountKind",
    "LineItem",
    "Policy",
    "PolicyConditions",
    "PolicyWithDiscount",
    "Suggestion",
    "UsageStats",
    "UserSnapshot",
    "Verdict",
    "evaluate",
    "is_threshold_only_rejection",
    "calculate_discount",
    "find_applicable",
    "pick_auto_apply",
    "suggest_thresholds",
    "best_suggestion",
    "discount_badge",
    "format_policy",
    "format_suggestion",
]
