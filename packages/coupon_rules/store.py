"""Policy store: catalog loading and usage-count bookkeeping.

Reads fail soft: a missing or corrupt catalog yields no policies, a malformed
record is skipped. Usage mutations are serialized per policy id so concurrent
increments never drop an update.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from packages.shared.errors import (
    CouponEngineError,
    ErrorDetail,
    MalformedPolicyError,
    PolicyNotFoundError,
    PolicySourceError,
    UsageBoundaryError,
    error_detail_from,
)
from packages.shared.monitoring.logging import log_with_context

from .models import Policy, utcnow

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One lock per key, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


def parse_policy(record: Any, index: int) -> Policy:
    """Parse one wire record. Raises MalformedPolicyError."""
    if not isinstance(record, dict):
        raise MalformedPolicyError(
            "Policy record is not an object",
            details={"index": index},
        )
    try:
        return Policy.model_validate(record)
    except ValidationError as e:
        raise MalformedPolicyError(
            f"Invalid policy record: {e.error_count()} field error(s)",
            details={
                "index": index,
                "policy_id": record.get("id"),
                "fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()],
            },
        ) from e


class PolicyStore(ABC):
    """Storage contract for policy records."""

    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self.last_load_errors: List[ErrorDetail] = []

    @abstractmethod
    def _read_records(self) -> List[Any]:
        """Return raw wire records. Raises PolicySourceError."""

    @abstractmethod
    def _write_usage(self, policy_id: str, used: int) -> bool:
        """Persist a new usage count. False if the record is gone. Raises PolicySourceError."""

    def load_all(self) -> List[Policy]:
        """All well-formed policies; [] when the source is unavailable."""
        try:
            records = self._read_records()
        except PolicySourceError as e:
            level = logging.WARNING if e.details.get("reason") == "missing" else logging.ERROR
            log_with_context(logger, level, "Policy catalog unavailable: %s" % e.message, **e.details)
            self.last_load_errors = [error_detail_from(e)]
            return []

        policies: List[Policy] = []
        errors: List[ErrorDetail] = []
        for index, record in enumerate(records):
            try:
                policies.append(parse_policy(record, index))
            except MalformedPolicyError as e:
                log_with_context(logger, logging.WARNING, "Skipping malformed policy", **e.details)
                errors.append(error_detail_from(e))
        self.last_load_errors = errors
        logger.debug("Loaded %d policies (%d skipped)", len(policies), len(errors))
        return policies

    def get(self, policy_id: str) -> Optional[Policy]:
        for policy in self.load_all():
            if policy.id == policy_id:
                return policy
        return None

    def active_policies(self, now: Optional[datetime] = None) -> List[Policy]:
        """Active, inside the validity window and below the usage limit."""
        now = now or utcnow()
        active = [p for p in self.load_all() if p.is_currently_active(now)]
        logger.debug("Active policies: %d", len(active))
        return active

    def increment_usage(self, policy_id: str) -> bool:
        """Record one redemption. False when not found or at the usage limit."""
        return self._mutate_usage(policy_id, +1)

    def decrement_usage(self, policy_id: str) -> bool:
        """Reverse one redemption. False when not found or already zero."""
        return self._mutate_usage(policy_id, -1)

    def _mutate_usage(self, policy_id: str, delta: int) -> bool:
        with self._locks.get(policy_id):
            try:
                policy = self._require(policy_id)
                if delta > 0 and policy.usage_exhausted:
                    raise UsageBoundaryError(
                        "Usage limit reached",
                        details={"policy_id": policy_id, "used": policy.used, "usage_limit": policy.usage_limit},
                    )
                if delta < 0 and policy.used <= 0:
                    raise UsageBoundaryError(
                        "Usage count already zero",
                        details={"policy_id": policy_id, "used": policy.used},
                    )
                used = policy.used + delta
                if not self._write_usage(policy_id, used):
                    raise PolicyNotFoundError("Policy not found", details={"policy_id": policy_id})
            except CouponEngineError as e:
                log_with_context(logger, logging.INFO, "Usage update rejected: %s" % e.message, code=e.code, **e.details)
                return False
        log_with_context(logger, logging.INFO, "Usage count updated", policy_id=policy_id, used=used)
        return True

    def _require(self, policy_id: str) -> Policy:
        for index, record in enumerate(self._read_records()):
            if isinstance(record, dict) and str(record.get("id")) == policy_id:
                return parse_policy(record, index)
        raise PolicyNotFoundError("Policy not found", details={"policy_id": policy_id})


class InMemoryPolicyStore(PolicyStore):
    """Process-local store. Records are kept in wire format."""

    def __init__(self, policies: Iterable[Union[Policy, Dict[str, Any]]] = ()) -> None:
        super().__init__()
        self._data_lock = threading.Lock()
        self._records: List[Dict[str, Any]] = [
            p.to_record() if isinstance(p, Policy) else copy.deepcopy(p) for p in policies
        ]

    def _read_records(self) -> List[Any]:
        with self._data_lock:
            return copy.deepcopy(self._records)

    def _write_usage(self, policy_id: str, used: int) -> bool:
        with self._data_lock:
            for record in self._records:
                if isinstance(record, dict) and str(record.get("id")) == policy_id:
                    record["used"] = used
                    return True
        return False

    def save_all(self, policies: Iterable[Policy]) -> None:
        with self._data_lock:
            self._records = [p.to_record() for p in policies]


class JsonFilePolicyStore(PolicyStore):
    """Catalog in a JSON file: {"coupons": [...]}. Writes replace the file atomically."""

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self.path = Path(path)
        # Serializes read-modify-write of the whole file across policy ids
        self._write_lock = threading.Lock()

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            raise PolicySourceError(
                "Coupons file not found",
                details={"path": str(self.path), "reason": "missing"},
            )
        try:
            with open(self.path, encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError) as e:
            raise PolicySourceError(
                f"Coupons file unreadable: {e}",
                details={"path": str(self.path), "reason": "corrupt"},
            ) from e
        if isinstance(doc, list):
            doc = {"coupons": doc}
        if not isinstance(doc, dict) or not isinstance(doc.get("coupons", []), list):
            raise PolicySourceError(
                "Coupons file has no coupons list",
                details={"path": str(self.path), "reason": "corrupt"},
            )
        doc.setdefault("coupons", [])
        return doc

    def _read_records(self) -> List[Any]:
        return self._read_document()["coupons"]

    def _write_usage(self, policy_id: str, used: int) -> bool:
        with self._write_lock:
            doc = self._read_document()
            for record in doc["coupons"]:
                if isinstance(record, dict) and str(record.get("id")) == policy_id:
                    record["used"] = used
                    self._write_document(doc)
                    return True
        return False

    def save_all(self, policies: Iterable[Policy]) -> None:
        with self._write_lock:
            self._write_document({"coupons": [p.to_record() for p in policies]})

    def _write_document(self, doc: Dict[str, Any]) -> None:
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".coupons-", suffix=".json", dir=str(directory))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(doc, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PolicySourceError(
                f"Coupons file not writable: {e}",
                details={"path": str(self.path), "reason": "write_failed"},
            ) from e
