"""CouponRuleEngine: single entry point over store, evaluator, ranker and advisor."""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .advisor import best_suggestion, suggest_thresholds
from .calculator import calculate_discount
from .config import Settings, settings as default_settings
from .formatter import format_policy, format_suggestion
from .models import (
    CartSnapshot,
    Policy,
    PolicyWithDiscount,
    Suggestion,
    UsageStats,
    UserSnapshot,
    Verdict,
    as_utc,
    utcnow,
)
from .predicates import evaluate
from .ranking import find_applicable, pick_auto_apply
from .store import JsonFilePolicyStore, PolicyStore

logger = logging.getLogger(__name__)

CartInput = Union[CartSnapshot, Dict[str, Any]]
UserInput = Union[UserSnapshot, Dict[str, Any], None]


def _as_cart(cart: CartInput) -> CartSnapshot:
    if isinstance(cart, CartSnapshot):
        return cart
    return CartSnapshot.model_validate(cart)


def _as_user(user: UserInput) -> UserSnapshot:
    if user is None:
        return UserSnapshot()
    if isinstance(user, UserSnapshot):
        return user
    return UserSnapshot.model_validate(user)


class CouponRuleEngine:
    """
    Evaluates the policy catalog against cart/user snapshots.
    Read paths load a fresh snapshot per call and never mutate policy state;
    only increment_usage/decrement_usage write, through the store.
    """

    def __init__(self, store: Optional[PolicyStore] = None, config: Optional[Settings] = None):
        self._config = config or default_settings
        self.store = store or JsonFilePolicyStore(self._config.policy_path)

    # Catalog

    def all_policies(self) -> List[Policy]:
        return self.store.load_all()

    def active_policies(self, now: Optional[datetime] = None) -> List[Policy]:
        return self.store.active_policies(now)

    def get_policy(self, policy_id: str) -> Optional[Policy]:
        return self.store.get(policy_id)

    def is_code_valid(self, code: str) -> bool:
        """True if any policy's name equals code, case-insensitively."""
        wanted = code.strip().upper()
        return any(p.name == wanted for p in self.all_policies())

    def expired_policies(self, now: Optional[datetime] = None) -> List[Policy]:
        now = now or utcnow()
        return [p for p in self.all_policies() if p.is_expired(now)]

    def policies_for_category(self, category: str, now: Optional[datetime] = None) -> List[Policy]:
        """Active policies with no category restriction or one that includes category."""
        return [
            p for p in self.active_policies(now)
            if not p.categories or category in p.categories
        ]

    def policies_for_payment_method(self, method: str, now: Optional[datetime] = None) -> List[Policy]:
        return [
            p for p in self.active_policies(now)
            if not p.payment_methods or method in p.payment_methods
        ]

    def usage_stats(self, policy_id: str, now: Optional[datetime] = None) -> Optional[UsageStats]:
        policy = self.get_policy(policy_id)
        if policy is None:
            return None
        now = as_utc(now or utcnow())
        remaining = (policy.valid_upto - now).total_seconds() / 86400
        return UsageStats(
            id=policy.id,
            name=policy.name,
            used=policy.used,
            usage_limit=policy.usage_limit,
            usage_percentage=(policy.used / policy.usage_limit * 100) if policy.has_usage_limit else 0.0,
            is_active=policy.is_active,
            days_until_expiry=math.ceil(remaining),
        )

    # Evaluation

    def validate(
        self,
        policy: Policy,
        cart: CartInput,
        user: UserInput = None,
        now: Optional[datetime] = None,
    ) -> Verdict:
        return evaluate(policy, _as_cart(cart), _as_user(user), now, self._config)

    def calculate_discount(self, policy: Policy, cart: CartInput) -> float:
        return calculate_discount(policy, _as_cart(cart), self._config)

    def find_applicable(
        self,
        cart: CartInput,
        user: UserInput = None,
        now: Optional[datetime] = None,
    ) -> List[PolicyWithDiscount]:
        now = now or utcnow()
        return find_applicable(
            self.active_policies(now), _as_cart(cart), _as_user(user), now, self._config
        )

    def auto_apply(
        self,
        cart: CartInput,
        user: UserInput = None,
        now: Optional[datetime] = None,
    ) -> Optional[PolicyWithDiscount]:
        return pick_auto_apply(self.find_applicable(cart, user, now))

    def threshold_suggestions(
        self,
        cart: CartInput,
        user: UserInput = None,
        now: Optional[datetime] = None,
    ) -> List[Suggestion]:
        now = now or utcnow()
        return suggest_thresholds(
            self.active_policies(now), _as_cart(cart), _as_user(user), now, self._config
        )

    def best_threshold_suggestion(
        self,
        cart: CartInput,
        user: UserInput = None,
        now: Optional[datetime] = None,
    ) -> Optional[Suggestion]:
        return best_suggestion(self.threshold_suggestions(cart, user, now))

    # Display

    def format_policy(
        self,
        policy: Policy,
        cart: Optional[CartInput] = None,
        user: UserInput = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        snapshot = _as_cart(cart) if cart is not None else None
        return format_policy(policy, snapshot, _as_user(user), now, self._config)

    def format_suggestion(self, suggestion: Suggestion, cart: CartInput) -> Dict[str, Any]:
        return format_suggestion(suggestion, _as_cart(cart))

    # Usage bookkeeping

    def increment_usage(self, policy_id: str) -> bool:
        """Call on confirmed redemption."""
        return self.store.increment_usage(policy_id)

    def decrement_usage(self, policy_id: str) -> bool:
        """Call on order cancellation/reversal."""
        return self.store.decrement_usage(policy_id)
