"""Tests for policy stores: fail-soft loading, active filter, usage counters."""

import json
import threading
from datetime import datetime, timezone

import pytest

from packages.coupon_rules import InMemoryPolicyStore, JsonFilePolicyStore, Policy

from conftest import policy_record


def write_catalog(path, records):
    path.write_text(json.dumps({"coupons": records}), encoding="utf-8")


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "coupons.json"
    write_catalog(
        path,
        [
            policy_record(id="a", name="A", usageLimit=3, used=1, couponType="seasonal"),
            policy_record(id="b", name="B"),
        ],
    )
    return path


class TestLoading:
    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFilePolicyStore(tmp_path / "nope.json")
        assert store.load_all() == []
        assert store.active_policies() == []
        assert store.last_load_errors[0].category == "data_unavailable"

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "coupons.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFilePolicyStore(path)
        assert store.load_all() == []
        assert store.last_load_errors[0].details["reason"] == "corrupt"

    def test_wrong_shape_is_empty(self, tmp_path):
        path = tmp_path / "coupons.json"
        path.write_text(json.dumps({"coupons": "nope"}), encoding="utf-8")
        assert JsonFilePolicyStore(path).load_all() == []

    def test_malformed_record_skipped(self, tmp_path):
        path = tmp_path / "coupons.json"
        write_catalog(
            path,
            [
                policy_record(id="good"),
                policy_record(id="bad_date", validUpto="not-a-date"),
                policy_record(id="bad_time", conditions={"timeRestriction": {"start": "25:99", "end": "06:00"}}),
                policy_record(id="negative", used=-1),
                "garbage",
            ],
        )
        store = JsonFilePolicyStore(path)
        assert [p.id for p in store.load_all()] == ["good"]
        assert len(store.last_load_errors) == 4
        assert store.last_load_errors[0].category == "malformed_policy"
        assert store.last_load_errors[0].details["policy_id"] == "bad_date"

    def test_bare_list_accepted(self, tmp_path):
        path = tmp_path / "coupons.json"
        path.write_text(json.dumps([policy_record(id="x")]), encoding="utf-8")
        assert [p.id for p in JsonFilePolicyStore(path).load_all()] == ["x"]

    def test_round_trip_is_lossless(self, catalog_path, tmp_path):
        store = JsonFilePolicyStore(catalog_path)
        policies = store.load_all()
        copy_path = tmp_path / "copy.json"
        copy_store = JsonFilePolicyStore(copy_path)
        copy_store.save_all(policies)
        assert copy_store.load_all() == policies
        saved = json.loads(copy_path.read_text(encoding="utf-8"))["coupons"][0]
        assert saved["couponType"] == "seasonal"
        assert saved["usageLimit"] == 3
        assert saved["used"] == 1
        assert saved["validUpto"] == "2026-12-31T23:59:59Z"

    def test_save_keeps_record_keys_and_formats(self, tmp_path):
        source = tmp_path / "coupons.json"
        record = {
            "id": "d",
            "name": "DATES",
            "discountType": "fixed",
            "discount": 500,
            "maxDiscount": None,
            "validFrom": "2026-01-01",
            "validUpto": "2026-12-31",
        }
        write_catalog(source, [record])
        policies = JsonFilePolicyStore(source).load_all()

        target = tmp_path / "saved.json"
        JsonFilePolicyStore(target).save_all(policies)
        saved = json.loads(target.read_text(encoding="utf-8"))["coupons"]
        assert saved == [record]

    def test_get(self, catalog_path):
        store = JsonFilePolicyStore(catalog_path)
        assert store.get("b").name == "B"
        assert store.get("zzz") is None


class TestActivePolicies:
    def test_filters(self, now):
        store = InMemoryPolicyStore(
            [
                policy_record(id="ok"),
                policy_record(id="expired", validUpto="2026-03-01T00:00:00Z"),
                policy_record(id="future", validFrom="2026-06-01T00:00:00Z"),
                policy_record(id="inactive", isActive=False),
                policy_record(id="exhausted", usageLimit=2, used=2),
                policy_record(id="unlimited", used=999),
            ]
        )
        assert [p.id for p in store.active_policies(now)] == ["ok", "unlimited"]

    def test_expired_never_active(self):
        store = InMemoryPolicyStore([policy_record(id="old", validUpto="2020-01-01T00:00:00Z")])
        assert store.active_policies() == []

    def test_snapshot_is_independent(self, now):
        store = InMemoryPolicyStore([policy_record(id="a")])
        snapshot = store.load_all()
        store.increment_usage("a")
        assert snapshot[0].used == 0
        assert store.get("a").used == 1


class TestUsageCounters:
    @pytest.fixture(params=["memory", "file"])
    def store(self, request, catalog_path):
        if request.param == "memory":
            return InMemoryPolicyStore(json.loads(catalog_path.read_text(encoding="utf-8"))["coupons"])
        return JsonFilePolicyStore(catalog_path)

    def test_increment_then_decrement_restores(self, store):
        assert store.increment_usage("b")
        assert store.increment_usage("b")
        assert store.get("b").used == 2
        assert store.decrement_usage("b")
        assert store.decrement_usage("b")
        assert store.get("b").used == 0

    def test_decrement_at_zero(self, store):
        assert not store.decrement_usage("b")
        assert store.get("b").used == 0
        assert store.increment_usage("b")
        assert store.get("b").used == 1

    def test_increment_stops_at_limit(self, store):
        assert store.increment_usage("a")
        assert store.increment_usage("a")
        assert not store.increment_usage("a")
        assert store.get("a").used == 3

    def test_unknown_policy(self, store):
        assert not store.increment_usage("missing")
        assert not store.decrement_usage("missing")

    def test_file_write_preserves_other_fields(self, catalog_path):
        store = JsonFilePolicyStore(catalog_path)
        assert store.increment_usage("a")
        saved = json.loads(catalog_path.read_text(encoding="utf-8"))["coupons"]
        assert saved[0]["used"] == 2
        assert saved[0]["couponType"] == "seasonal"
        assert saved[1] == policy_record(id="b", name="B")

    def test_missing_file_mutation_fails(self, tmp_path):
        store = JsonFilePolicyStore(tmp_path / "nope.json")
        assert not store.increment_usage("a")


class TestConcurrency:
    def _hammer(self, fn, threads: int, per_thread: int) -> int:
        results = []
        lock = threading.Lock()

        def work():
            for _ in range(per_thread):
                ok = fn()
                with lock:
                    results.append(ok)

        workers = [threading.Thread(target=work) for _ in range(threads)]
        for w in workers:
            w.start()
        for w in workers:
            w.join()
        return sum(results)

    def test_no_lost_increments_in_memory(self):
        store = InMemoryPolicyStore([policy_record(id="hot")])
        successes = self._hammer(lambda: store.increment_usage("hot"), threads=8, per_thread=50)
        assert successes == 400
        assert store.get("hot").used == 400

    def test_limit_respected_under_contention(self):
        store = InMemoryPolicyStore([policy_record(id="hot", usageLimit=150)])
        successes = self._hammer(lambda: store.increment_usage("hot"), threads=8, per_thread=50)
        assert successes == 150
        assert store.get("hot").used == 150

    def test_no_lost_increments_in_file_across_ids(self, tmp_path):
        path = tmp_path / "coupons.json"
        write_catalog(path, [policy_record(id="x"), policy_record(id="y")])
        store = JsonFilePolicyStore(path)
        successes = self._hammer(lambda: store.increment_usage("x"), threads=4, per_thread=10)
        successes += self._hammer(lambda: store.increment_usage("y"), threads=4, per_thread=10)
        assert successes == 80

        def both():
            return store.increment_usage("x") and store.increment_usage("y")

        self._hammer(both, threads=4, per_thread=5)
        assert store.get("x").used == 60
        assert store.get("y").used == 60


def test_policy_model_accepts_python_names():
    policy = Policy(
        id="p",
        name="P",
        discount_type="fixed",
        valid_from=datetime(2026, 1, 1),
        valid_upto=datetime(2026, 12, 31, tzinfo=timezone.utc),
    )
    assert policy.valid_from.tzinfo is not None
    assert policy.to_record()["discountType"] == "fixed"
