from __future__ import annotations


class CouponError(Exception):
    pass


class CouponNotFound(CouponError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon not found: {code}")
        self.code = code


class DuplicateCode(CouponError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon code already exists: {code}")
        self.code = code


class RedemptionConflict(CouponError):
    """A concurrent redemption committed first.

    Callers should revalidate the coupon before trying again; the failure is
    not permanent.
    """

    def __init__(self, coupon_id: int, attempts: int = 1) -> None:
        super().__init__(f"Coupon {coupon_id} was redeemed concurrently (attempts={attempts})")
        self.coupon_id = coupon_id
        self.attempts = attempts
