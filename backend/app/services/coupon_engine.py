from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone

from app.models.coupon import Coupon, CouponType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ValidationReason(str, enum.Enum):
    NOT_ACTIVE = "not_active"
    OUT_OF_WINDOW = "expired_or_not_yet_valid"
    USAGE_LIMIT_EXCEEDED = "usage_limit_exceeded"
    MINIMUM_AMOUNT_NOT_MET = "minimum_amount_not_met"
    PER_USER_LIMIT_REACHED = "per_user_limit_reached"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: ValidationReason | None = None
    message: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: ValidationReason, message: str) -> "ValidationResult":
        return cls(valid=False, reason=reason, message=message)


def user_usage_count(coupon: Coupon, user_id: str) -> int:
    uid = str(user_id)
    return sum(1 for usage in (coupon.used_by or []) if str(usage.user_id) == uid)


def check_validity(
    coupon: Coupon,
    user_id: str,
    cart_amount: float,
    now: datetime | None = None,
) -> ValidationResult:
    """Decide whether ``user_id`` may apply ``coupon`` to a cart of ``cart_amount``.

    Rules run in a fixed order and the first failing one is reported, so the
    reason shown to the user is stable. Reads only; never mutates the coupon.
    """
    if not str(user_id or "").strip():
        raise ValueError("user_id is required")
    if cart_amount < 0:
        raise ValueError("cart_amount must be non-negative")
    now = as_utc(now or utcnow())

    if not coupon.is_active:
        return ValidationResult.fail(ValidationReason.NOT_ACTIVE, "Coupon is not active")

    if now < as_utc(coupon.valid_from) or now > as_utc(coupon.valid_until):
        return ValidationResult.fail(ValidationReason.OUT_OF_WINDOW, "Coupon has expired or not yet valid")

    if coupon.usage_limit is not None and int(coupon.used_count or 0) >= coupon.usage_limit:
        return ValidationResult.fail(ValidationReason.USAGE_LIMIT_EXCEEDED, "Coupon usage limit exceeded")

    minimum = float(coupon.minimum_amount or 0.0)
    if cart_amount < minimum:
        return ValidationResult.fail(
            ValidationReason.MINIMUM_AMOUNT_NOT_MET,
            f"Minimum amount not met: order must be at least {minimum:.2f}",
        )

    if user_usage_count(coupon, user_id) >= int(coupon.user_limit if coupon.user_limit is not None else 1):
        return ValidationResult.fail(
            ValidationReason.PER_USER_LIMIT_REACHED,
            "Per-user limit reached for this coupon",
        )

    return ValidationResult.ok()


def compute_discount(coupon: Coupon, amount: float) -> float:
    if amount < 0:
        raise ValueError("amount must be non-negative")
    value = float(coupon.value or 0.0)

    if CouponType(coupon.type) == CouponType.PERCENTAGE:
        discount = amount * value / 100.0
        if coupon.maximum_discount is not None and discount > coupon.maximum_discount:
            discount = float(coupon.maximum_discount)
    else:
        discount = value

    return max(0.0, min(discount, amount))
