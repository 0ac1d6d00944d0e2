from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.coupon import Coupon, CouponRedemption, CouponType, normalize_code
from app.services.coupon_errors import CouponNotFound, DuplicateCode, RedemptionConflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedemptionRecord:
    user_id: str
    used_at: datetime
    order_amount: float
    discount_amount: float


class CouponStore:
    """Durable coupon storage on top of a SQLAlchemy session.

    ``conditional_redeem`` is the only write path that touches ``used_count``;
    it is a compare-and-increment executed in a single transaction together
    with the redemption insert.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_code(self, code: str) -> Coupon:
        normalized = normalize_code(code)
        if not normalized:
            raise CouponNotFound(normalized)
        coupon = self.db.query(Coupon).filter(Coupon.code == normalized).first()
        if coupon is None:
            raise CouponNotFound(normalized)
        return coupon

    def get(self, coupon_id: int) -> Coupon:
        coupon = self.db.get(Coupon, coupon_id, populate_existing=True)
        if coupon is None:
            raise CouponNotFound(str(coupon_id))
        self.db.refresh(coupon, attribute_names=["used_by"])
        return coupon

    def list_coupons(self, active_only: bool = False) -> list[Coupon]:
        q = self.db.query(Coupon)
        if active_only:
            q = q.filter(Coupon.is_active.is_(True))
        return q.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()

    def user_redemption_count(self, coupon_id: int, user_id: str) -> int:
        total = (
            self.db.query(func.count(CouponRedemption.id))
            .filter(CouponRedemption.coupon_id == coupon_id, CouponRedemption.user_id == str(user_id))
            .scalar()
        )
        return int(total or 0)

    def create(self, **fields: Any) -> Coupon:
        fields.pop("used_count", None)
        if "type" in fields:
            fields["type"] = CouponType(fields["type"])
        coupon = Coupon(used_count=0, **fields)
        if not coupon.code:
            raise ValueError("code is required")
        self.db.add(coupon)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if self._code_taken(coupon.code):
                raise DuplicateCode(coupon.code) from e
            raise
        self.db.refresh(coupon)
        logger.info("coupons.create code=%s type=%s created_by=%s", coupon.code, coupon.type, coupon.created_by)
        return coupon

    def rename(self, coupon_id: int, new_code: str) -> Coupon:
        coupon = self.get(coupon_id)
        old_code = coupon.code
        coupon.code = new_code
        if not coupon.code:
            self.db.rollback()
            raise ValueError("code is required")
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateCode(normalize_code(new_code)) from e
        self.db.refresh(coupon)
        logger.info("coupons.rename coupon_id=%s from=%s to=%s", coupon_id, old_code, coupon.code)
        return coupon

    def set_active(self, coupon_id: int, is_active: bool) -> Coupon:
        coupon = self.get(coupon_id)
        coupon.is_active = bool(is_active)
        self.db.commit()
        self.db.refresh(coupon)
        logger.info("coupons.set_active code=%s is_active=%s", coupon.code, coupon.is_active)
        return coupon

    def conditional_redeem(self, coupon_id: int, expected_used_count: int, record: RedemptionRecord) -> Coupon:
        stmt = (
            update(Coupon)
            .where(Coupon.id == coupon_id)
            .where(Coupon.used_count == int(expected_used_count))
            .where(or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit))
            .values(used_count=Coupon.used_count + 1, updated_at=record.used_at)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                raise RedemptionConflict(coupon_id)
            self.db.add(
                CouponRedemption(
                    coupon_id=coupon_id,
                    user_id=str(record.user_id),
                    used_at=record.used_at,
                    order_amount=float(record.order_amount),
                    discount_amount=float(record.discount_amount),
                )
            )
            self.db.commit()
        except RedemptionConflict:
            raise
        except Exception:
            self.db.rollback()
            logger.exception("coupons.conditional_redeem.error coupon_id=%s", coupon_id)
            raise
        return self.get(coupon_id)

    def _code_taken(self, code: str) -> bool:
        return self.db.query(Coupon.id).filter(Coupon.code == normalize_code(code)).first() is not None
