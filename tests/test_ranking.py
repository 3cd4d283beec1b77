"""Tests for ranking applicable policies and auto-apply selection."""

from packages.coupon_rules import find_applicable, pick_auto_apply


class TestFindApplicable:
    def test_priority_beats_discount(self, make_policy, make_cart, now, config):
        policies = [
            make_policy(id="big", name="BIG", discountType="fixed", discount=200, priority=2),
            make_policy(id="small", name="SMALL", discountType="fixed", discount=50, priority=1),
        ]
        ranked = find_applicable(policies, make_cart(1000), now=now, config=config)
        assert [p.id for p in ranked] == ["small", "big"]
        assert ranked[0].calculated_discount == 50
        assert ranked[0].final_total == 950
        assert pick_auto_apply(ranked).id == "small"

    def test_equal_priority_larger_discount_first(self, make_policy, make_cart, now, config):
        policies = [
            make_policy(id="a", discountType="fixed", discount=30, priority=2),
            make_policy(id="b", discountType="fixed", discount=90, priority=2),
            make_policy(id="c", discountType="fixed", discount=60, priority=2),
            make_policy(id="d", discountType="fixed", discount=500, priority=3),
        ]
        ranked = find_applicable(policies, make_cart(1000), now=now, config=config)
        assert [p.id for p in ranked] == ["b", "c", "a", "d"]
        for earlier, later in zip(ranked, ranked[1:]):
            assert (earlier.priority, -earlier.calculated_discount) <= (later.priority, -later.calculated_discount)

    def test_invalid_excluded(self, make_policy, make_cart, now, config):
        policies = [
            make_policy(id="ok"),
            make_policy(id="too_high", threshold=5000),
            make_policy(id="off", isActive=False),
        ]
        ranked = find_applicable(policies, make_cart(1000), now=now, config=config)
        assert [p.id for p in ranked] == ["ok"]

    def test_discounts_within_bounds(self, make_policy, make_cart, now, config):
        policies = [
            make_policy(id="pct", discountType="percentage", discount=150),
            make_policy(id="fixed", discountType="fixed", discount=10000),
            make_policy(id="ship", discountType="shipping"),
            make_policy(id="cash", discountType="cashback", discount=5),
        ]
        cart = make_cart(250)
        for p in find_applicable(policies, cart, now=now, config=config):
            assert 0 <= p.calculated_discount <= cart.total

    def test_keeps_policy_fields(self, make_policy, make_cart, now, config):
        ranked = find_applicable([make_policy(name="KEEP", categories=None)], make_cart(100), now=now, config=config)
        assert ranked[0].name == "KEEP"
        assert ranked[0].valid_upto == make_policy().valid_upto


class TestPickAutoApply:
    def test_flagged_policy_at_lower_priority(self, make_policy, make_cart, now, config):
        policies = [
            make_policy(id="p2", priority=2),
            make_policy(id="p3", priority=3, autoApply=True),
        ]
        ranked = find_applicable(policies, make_cart(1000), now=now, config=config)
        assert pick_auto_apply(ranked).id == "p3"

    def test_none_when_nothing_qualifies(self, make_policy, make_cart, now, config):
        ranked = find_applicable([make_policy(priority=2)], make_cart(1000), now=now, config=config)
        assert pick_auto_apply(ranked) is None
        assert pick_auto_apply([]) is None
