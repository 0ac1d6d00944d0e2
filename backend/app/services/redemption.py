from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from app.core.settings import settings
from app.models.coupon import Coupon
from app.services.coupon_engine import ValidationReason, ValidationResult, check_validity, compute_discount, utcnow
from app.services.coupon_errors import RedemptionConflict
from app.services.coupon_store import CouponStore, RedemptionRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class RedemptionResult:
    coupon: Coupon
    validation: ValidationResult

    @property
    def redeemed(self) -> bool:
        return self.validation.valid


@dataclass(frozen=True)
class ApplyResult:
    valid: bool
    reason: ValidationReason | None
    message: str | None
    discount_amount: float
    payable_amount: float
    coupon: Coupon


def _money(v: float) -> float:
    return round(float(v), 2)


class RedemptionCoordinator:
    def __init__(self, store: CouponStore, clock: Clock = utcnow, max_retries: int | None = None) -> None:
        self.store = store
        self.clock = clock
        self.max_retries = max(1, int(max_retries or settings.coupon_redeem_max_retries))

    def redeem(self, coupon: Coupon, user_id: str, order_amount: float, discount_amount: float) -> RedemptionResult:
        """Record one redemption of ``coupon`` by ``user_id``.

        The caller must already have validated the coupon and computed
        ``discount_amount``; both amounts are recorded as given. When another
        request commits first, the coupon is reloaded and revalidated: a
        coupon that is no longer applicable yields a failed
        ``RedemptionResult``, otherwise the write is retried. After
        ``max_retries`` lost races ``RedemptionConflict`` is raised.
        """
        current = coupon
        for attempt in range(1, self.max_retries + 1):
            now = self.clock()
            record = RedemptionRecord(
                user_id=str(user_id),
                used_at=now,
                order_amount=float(order_amount),
                discount_amount=float(discount_amount),
            )
            try:
                updated = self.store.conditional_redeem(current.id, int(current.used_count or 0), record)
            except RedemptionConflict:
                logger.info(
                    "coupons.redeem.conflict code=%s user_id=%s attempt=%s",
                    current.code,
                    user_id,
                    attempt,
                )
                current = self.store.get(current.id)
                revalidated = check_validity(current, user_id, order_amount, now=self.clock())
                if not revalidated.valid:
                    logger.info(
                        "coupons.redeem.revalidation_failed code=%s user_id=%s reason=%s",
                        current.code,
                        user_id,
                        revalidated.reason.value if revalidated.reason else None,
                    )
                    return RedemptionResult(coupon=current, validation=revalidated)
                continue

            logger.info(
                "coupons.redeem.committed code=%s user_id=%s used_count=%s discount=%s",
                updated.code,
                user_id,
                updated.used_count,
                discount_amount,
            )
            return RedemptionResult(coupon=updated, validation=ValidationResult.ok())

        raise RedemptionConflict(current.id, attempts=self.max_retries)


def preview_coupon(
    store: CouponStore,
    code: str,
    user_id: str,
    cart_amount: float,
    *,
    clock: Clock = utcnow,
) -> ApplyResult:
    coupon = store.find_by_code(code)
    validation = check_validity(coupon, user_id, cart_amount, now=clock())
    discount = compute_discount(coupon, cart_amount) if validation.valid else 0.0
    return ApplyResult(
        valid=validation.valid,
        reason=validation.reason,
        message=validation.message,
        discount_amount=_money(discount),
        payable_amount=_money(cart_amount - discount),
        coupon=coupon,
    )


def apply_coupon(
    store: CouponStore,
    code: str,
    user_id: str,
    cart_amount: float,
    *,
    clock: Clock = utcnow,
    max_retries: int | None = None,
) -> ApplyResult:
    preview = preview_coupon(store, code, user_id, cart_amount, clock=clock)
    if not preview.valid:
        return preview

    discount = compute_discount(preview.coupon, cart_amount)
    coordinator = RedemptionCoordinator(store, clock=clock, max_retries=max_retries)
    result = coordinator.redeem(preview.coupon, user_id, cart_amount, discount)
    if not result.redeemed:
        return ApplyResult(
            valid=False,
            reason=result.validation.reason,
            message=result.validation.message,
            discount_amount=0.0,
            payable_amount=_money(cart_amount),
            coupon=result.coupon,
        )
    return ApplyResult(
        valid=True,
        reason=None,
        message=None,
        discount_amount=_money(discount),
        payable_amount=_money(cart_amount - discount),
        coupon=result.coupon,
    )
