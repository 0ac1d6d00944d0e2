import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from app.core.database import Base


class CouponType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(value: str | None) -> str:
    return str(value or "").strip().upper()


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("used_count >= 0", name="coupons_used_count_nonneg_chk"),
        CheckConstraint(
            "usage_limit IS NULL OR used_count <= usage_limit",
            name="coupons_usage_limit_chk",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, index=True, nullable=False)
    description = Column(String, nullable=False)
    type = Column(
        Enum(CouponType, name="coupontype", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    value = Column(Float, nullable=False)
    minimum_amount = Column(Float, nullable=False, default=0.0)

    # None means uncapped / unlimited; 0 is a real limit.
    maximum_discount = Column(Float, nullable=True)
    usage_limit = Column(Integer, nullable=True)

    used_count = Column(Integer, nullable=False, default=0)
    user_limit = Column(Integer, nullable=False, default=1)

    applicable_products = Column(JSON, nullable=False, default=list)
    applicable_categories = Column(JSON, nullable=False, default=list)
    exclude_products = Column(JSON, nullable=False, default=list)

    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, index=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    used_by = relationship(
        "CouponRedemption",
        back_populates="coupon",
        order_by=lambda: [CouponRedemption.used_at, CouponRedemption.id],
        lazy="selectin",
    )

    @validates("code")
    def _normalize_code(self, _key, value):
        return normalize_code(value)

    @validates("created_by")
    def _freeze_created_by(self, _key, value):
        if self.id is not None and self.created_by != value:
            raise ValueError("created_by is immutable")
        return value

    def __repr__(self) -> str:
        return f"<Coupon {self.code} used={self.used_count}/{self.usage_limit}>"


class CouponRedemption(Base):
    __tablename__ = "coupon_redemptions"
    __table_args__ = (Index("ix_coupon_redemptions_coupon_user", "coupon_id", "user_id"),)

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=False)
    order_amount = Column(Float, nullable=False)
    discount_amount = Column(Float, nullable=False)

    coupon = relationship("Coupon", back_populates="used_by")
