"""Coupon policy, cart, user and verdict models.

Field names are snake_case in Python and camelCase on the wire
(the ``coupons.json`` layout), so ``Policy.model_validate(record)`` and
``policy.to_record()`` round-trip a catalog record.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Set, Union

from pydantic import (
    BaseModel,
    Field,
    FieldSerializationInfo,
    PrivateAttr,
    field_serializer,
    field_validator,
    model_validator,
)


class DiscountKind(str, Enum):
    """Known discount kinds."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"
    SHIPPING = "shipping"
    BOGO = "bogo"
    CASHBACK = "cashback"


WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Discount strategies: one variant per kind, each with only the fields it needs.


@dataclass(frozen=True)
class PercentageDiscount:
    percent: float
    max_discount: Optional[float] = None


@dataclass(frozen=True)
class FixedDiscount:
    amount: float


@dataclass(frozen=True)
class ShippingDiscount:
    pass


@dataclass(frozen=True)
class BogoDiscount:
    percent: float


@dataclass(frozen=True)
class CashbackDiscount:
    """Post-purchase credit; calculates like FixedDiscount."""

    amount: float


DiscountStrategy = Union[
    PercentageDiscount, FixedDiscount, ShippingDiscount, BogoDiscount, CashbackDiscount
]


class ValueRange(BaseModel):
    """Inclusive bounds. Zero or missing bound means unbounded on that side."""

    min: Optional[float] = None
    max: Optional[float] = None


class TimeWindow(BaseModel):
    """Time-of-day window, "HH:MM". start > end wraps past midnight."""

    start: Optional[str] = None
    end: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def check_hhmm(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        datetime.strptime(v, "%H:%M")
        return v


class PolicyConditions(BaseModel):
    """Optional eligibility conditions; each block is checked only when present."""

    cart_value: Optional[ValueRange] = Field(default=None, alias="cartValue")
    item_count: Optional[ValueRange] = Field(default=None, alias="itemCount")
    user_type: Optional[str] = Field(default=None, alias="userType")
    time_restriction: Optional[TimeWindow] = Field(default=None, alias="timeRestriction")
    day_restriction: Optional[List[str]] = Field(default=None, alias="dayRestriction")

    class Config:
        populate_by_name = True
        extra = "allow"


class Policy(BaseModel):
    """A coupon/discount policy record."""

    id: str
    name: str
    description: str = ""
    discount_type: str = Field(alias="discountType")
    discount: float = 0.0
    max_discount: Optional[float] = Field(default=None, alias="maxDiscount")
    threshold: float = 0.0
    is_active: bool = Field(default=True, alias="isActive")
    valid_from: datetime = Field(alias="validFrom")
    valid_upto: datetime = Field(alias="validUpto")
    usage_limit: Optional[int] = Field(default=None, alias="usageLimit")
    used: int = Field(default=0, ge=0)
    priority: int = 3
    auto_apply: Optional[bool] = Field(default=None, alias="autoApply")
    conditions: Optional[PolicyConditions] = None
    payment_methods: Optional[List[str]] = Field(default=None, alias="paymentMethods")
    categories: Optional[List[str]] = None

    # Date fields that arrived as "YYYY-MM-DD" and are written back that way
    _date_only: Set[str] = PrivateAttr(default_factory=set)

    class Config:
        populate_by_name = True
        extra = "allow"

    @model_validator(mode="wrap")
    @classmethod
    def remember_date_only(cls, data: Any, handler: Any) -> Any:
        policy = handler(data)
        if isinstance(data, dict):
            for name, alias in (("valid_from", "validFrom"), ("valid_upto", "validUpto")):
                raw = data.get(alias, data.get(name))
                if isinstance(raw, str) and len(raw) == 10:
                    policy._date_only.add(name)
        return policy

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("valid_from", "valid_upto", mode="before")
    @classmethod
    def parse_date_only(cls, v: Any) -> Any:
        # "2025-12-31" means midnight UTC
        if isinstance(v, str) and len(v) == 10:
            return v + "T00:00:00Z"
        return v

    @field_validator("valid_from", "valid_upto")
    @classmethod
    def normalize_tz(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_serializer("valid_from", "valid_upto", when_used="json")
    def serialize_dt(self, v: datetime, info: FieldSerializationInfo) -> str:
        if info.field_name in self._date_only and v.time() == datetime.min.time():
            return v.date().isoformat()
        return v.isoformat().replace("+00:00", "Z")

    @field_serializer("discount", "max_discount", "threshold", when_used="json")
    def serialize_amount(self, v: Optional[float]) -> Optional[Union[int, float]]:
        # 500.0 is written as 500
        if v is not None and float(v).is_integer():
            return int(v)
        return v

    @property
    def has_usage_limit(self) -> bool:
        return bool(self.usage_limit)

    @property
    def usage_exhausted(self) -> bool:
        return self.has_usage_limit and self.used >= self.usage_limit

    def is_within_window(self, now: datetime) -> bool:
        now = as_utc(now)
        return self.valid_from <= now <= self.valid_upto

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) > self.valid_upto or not self.is_active

    def is_currently_active(self, now: datetime) -> bool:
        return self.is_active and self.is_within_window(now) and not self.usage_exhausted

    def strategy(self) -> Optional[DiscountStrategy]:
        """Discount strategy for this policy's kind; None for unknown kinds."""
        kind = self.discount_type
        if kind == DiscountKind.PERCENTAGE.value:
            return PercentageDiscount(percent=self.discount, max_discount=self.max_discount)
        if kind == DiscountKind.FIXED.value:
            return FixedDiscount(amount=self.discount)
        if kind == DiscountKind.SHIPPING.value:
            return ShippingDiscount()
        if kind == DiscountKind.BOGO.value:
            return BogoDiscount(percent=self.discount)
        if kind == DiscountKind.CASHBACK.value:
            return CashbackDiscount(amount=self.discount)
        return None

    def to_record(self) -> dict[str, Any]:
        """Wire-format (camelCase, JSON-safe) dict with the keys the record was built from."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class LineItem(BaseModel):
    price: float
    quantity: int = 1
    category: Optional[str] = None


class CartSnapshot(BaseModel):
    """Cart state supplied per call by the checkout collaborator."""

    total: float = 0.0
    shipping_cost: Optional[float] = Field(default=None, alias="shippingCost")
    items: List[LineItem] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @property
    def item_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


class UserSnapshot(BaseModel):
    type: Optional[str] = None
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")

    class Config:
        populate_by_name = True


class Verdict(BaseModel):
    """Result of evaluating one policy against one cart/user snapshot."""

    is_valid: bool = Field(default=False, alias="isValid")
    reasons: List[str] = Field(default_factory=list)
    discount_amount: float = Field(default=0.0, alias="discountAmount")
    final_total: float = Field(default=0.0, alias="finalTotal")

    class Config:
        populate_by_name = True


class PolicyWithDiscount(Policy):
    """A valid policy annotated with its computed discount."""

    calculated_discount: float = Field(default=0.0, alias="calculatedDiscount")
    final_total: float = Field(default=0.0, alias="finalTotal")

    @classmethod
    def from_verdict(cls, policy: Policy, verdict: Verdict) -> "PolicyWithDiscount":
        data = policy.model_dump(by_alias=True)
        data["calculatedDiscount"] = verdict.discount_amount
        data["finalTotal"] = verdict.final_total
        return cls.model_validate(data)


class Suggestion(BaseModel):
    """How much more spend unlocks a currently-ineligible policy."""

    policy: Policy
    amount_needed: float = Field(alias="amountNeeded")
    potential_savings: float = Field(alias="potentialSavings")

    class Config:
        populate_by_name = True


class UsageStats(BaseModel):
    id: str
    name: str
    used: int
    usage_limit: Optional[int] = Field(default=None, alias="usageLimit")
    usage_percentage: float = Field(default=0.0, alias="usagePercentage")
    is_active: bool = Field(alias="isActive")
    days_until_expiry: int = Field(alias="daysUntilExpiry")

    class Config:
        populate_by_name = True
