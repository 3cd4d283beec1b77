"""Policy ranking: applicable policies by priority, then by discount size."""

from datetime import datetime
from typing import Iterable, List, Optional

from .config import Settings
from .models import CartSnapshot, Policy, PolicyWithDiscount, UserSnapshot
from .predicates import evaluate

TOP_PRIORITY = 1


def find_applicable(
    policies: Iterable[Policy],
    cart: CartSnapshot,
    user: Optional[UserSnapshot] = None,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> List[PolicyWithDiscount]:
    """
    Valid policies annotated with calculated_discount and final_total.
    Sorted by priority ascending (1 = highest), ties by larger discount first.
    """
    applicable: List[PolicyWithDiscount] = []
    for policy in policies:
        verdict = evaluate(policy, cart, user, now, config)
        if verdict.is_valid:
            applicable.append(PolicyWithDiscount.from_verdict(policy, verdict))

    applicable.sort(key=lambda p: (p.priority, -p.calculated_discount))
    return applicable


def pick_auto_apply(applicable: List[PolicyWithDiscount]) -> Optional[PolicyWithDiscount]:
    """First ranked policy flagged auto_apply or at top priority."""
    for policy in applicable:
        if policy.auto_apply or policy.priority == TOP_PRIORITY:
            return policy
    return None
