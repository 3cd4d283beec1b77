"""Threshold advisor: "add X more to unlock Y" suggestions."""

from datetime import datetime
from functools import cmp_to_key
from typing import Iterable, List, Optional

from .calculator import calculate_discount
from .config import Settings, settings as default_settings
from .models import CartSnapshot, Policy, Suggestion, UserSnapshot
from .predicates import evaluate, is_threshold_only_rejection


def _compare(a: Suggestion, b: Suggestion, tie_window: float) -> float:
    # Shortfalls within the tie window: bigger savings first
    if abs(a.amount_needed - b.amount_needed) < tie_window:
        return b.potential_savings - a.potential_savings
    return a.amount_needed - b.amount_needed


def suggest_thresholds(
    policies: Iterable[Policy],
    cart: CartSnapshot,
    user: Optional[UserSnapshot] = None,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> List[Suggestion]:
    """
    Suggestions for policies rejected only by their minimum order value,
    where the shortfall is positive and within the configured ceiling.
    """
    config = config or default_settings
    suggestions: List[Suggestion] = []

    for policy in policies:
        verdict = evaluate(policy, cart, user, now, config)
        if not is_threshold_only_rejection(verdict):
            continue
        amount_needed = policy.threshold - cart.total
        if amount_needed <= 0 or amount_needed > config.suggestion_ceiling:
            continue
        at_threshold = cart.model_copy(update={"total": policy.threshold})
        suggestions.append(
            Suggestion(
                policy=policy,
                amount_needed=amount_needed,
                potential_savings=calculate_discount(policy, at_threshold, config),
            )
        )

    tie_window = config.suggestion_tie_window
    suggestions.sort(key=cmp_to_key(lambda a, b: _compare(a, b, tie_window)))
    return suggestions


def best_suggestion(suggestions: List[Suggestion]) -> Optional[Suggestion]:
    return suggestions[0] if suggestions else None
