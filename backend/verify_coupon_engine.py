from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models.coupon import CouponRedemption, CouponType
from app.services.coupon_engine import ValidationReason
from app.services.coupon_store import CouponStore
from app.services.redemption import RedemptionCoordinator, apply_coupon


def main() -> None:
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    now = datetime.now(timezone.utc)
    window = {"valid_from": now - timedelta(days=1), "valid_until": now + timedelta(days=30)}

    db = TestingSessionLocal()
    try:
        store = CouponStore(db)

        # A: percentage coupon capped by maximum_discount
        store.create(code="capped", description="A", type=CouponType.PERCENTAGE, value=10, maximum_discount=50,
                     minimum_amount=100, created_by="admin", **window)
        res = apply_coupon(store, "CAPPED", "user-1", 1000)
        assert res.valid and res.discount_amount == 50, res

        # B: fixed coupon clamped to the cart amount
        store.create(code="flat30", description="B", type=CouponType.FIXED, value=30, created_by="admin", **window)
        res = apply_coupon(store, "FLAT30", "user-1", 20)
        assert res.valid and res.discount_amount == 20 and res.payable_amount == 0, res

        # C: usage_limit=1, a stale second redemption loses
        store.create(code="once", description="C", type=CouponType.FIXED, value=5, usage_limit=1, created_by="admin",
                     **window)
        stale = TestingSessionLocal()
        try:
            stale_store = CouponStore(stale)
            snapshot = stale_store.find_by_code("ONCE")
            assert apply_coupon(store, "ONCE", "user-1", 100).valid
            lost = RedemptionCoordinator(stale_store).redeem(snapshot, "user-2", 100, 5)
            assert not lost.redeemed and lost.validation.reason == ValidationReason.USAGE_LIMIT_EXCEEDED, lost
        finally:
            stale.close()

        # D: not yet valid
        store.create(code="later", description="D", type=CouponType.FIXED, value=5, created_by="admin",
                     valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=2))
        res = apply_coupon(store, "LATER", "user-1", 100)
        assert not res.valid and res.reason == ValidationReason.OUT_OF_WINDOW, res

        # E: per-user limit with global capacity left
        store.create(code="twice", description="E", type=CouponType.FIXED, value=5, usage_limit=100, user_limit=2,
                     created_by="admin", **window)
        assert apply_coupon(store, "TWICE", "user-1", 100).valid
        assert apply_coupon(store, "TWICE", "user-1", 100).valid
        res = apply_coupon(store, "TWICE", "user-1", 100)
        assert not res.valid and res.reason == ValidationReason.PER_USER_LIMIT_REACHED, res

        rows = db.query(CouponRedemption).count()
        assert rows == 5, rows
    finally:
        db.close()


if __name__ == "__main__":
    main()
    print("OK")
