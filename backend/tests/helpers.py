from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models.chat import Chat, Message, MessageRead  # noqa: F401
from app.models.coupon import Coupon, CouponType
from app.services.coupon_store import CouponStore

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock():
    return NOW


def make_session_factory(url: str = "sqlite://"):
    if url == "sqlite://":
        engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)


def coupon_fields(**overrides) -> dict:
    fields = {
        "code": "welcome10",
        "description": "Welcome discount",
        "type": CouponType.PERCENTAGE,
        "value": 10.0,
        "minimum_amount": 0.0,
        "maximum_discount": None,
        "usage_limit": None,
        "user_limit": 1,
        "valid_from": NOW - timedelta(days=1),
        "valid_until": NOW + timedelta(days=30),
        "is_active": True,
        "created_by": "admin-1",
    }
    fields.update(overrides)
    return fields


def make_coupon(**overrides) -> Coupon:
    """Transient coupon for the pure engine functions."""
    fields = coupon_fields(**overrides)
    fields.setdefault("used_count", 0)
    return Coupon(**fields)


def create_coupon(db, **overrides) -> Coupon:
    return CouponStore(db).create(**coupon_fields(**overrides))
