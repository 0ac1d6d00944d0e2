import os
import tempfile
import threading
import unittest
from unittest import mock

from app.models.coupon import CouponRedemption, CouponType
from app.services.coupon_engine import ValidationReason
from app.services.coupon_errors import CouponNotFound, RedemptionConflict
from app.services.coupon_store import CouponStore
from app.services.redemption import RedemptionCoordinator, apply_coupon, preview_coupon

from tests.helpers import NOW, create_coupon, fixed_clock, make_session_factory


class TestApplyCoupon(unittest.TestCase):
    def setUp(self):
        self.engine, self.SessionLocal = make_session_factory()
        self.db = self.SessionLocal()
        self.store = CouponStore(self.db)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_successful_redemption_round_trip(self):
        coupon = create_coupon(self.db, type=CouponType.PERCENTAGE, value=10.0, maximum_discount=50.0, minimum_amount=100.0)
        before = coupon.used_count

        result = apply_coupon(self.store, "welcome10", "user-1", 1000.0, clock=fixed_clock)

        self.assertTrue(result.valid)
        self.assertEqual(result.discount_amount, 50.0)
        self.assertEqual(result.payable_amount, 950.0)
        fresh = self.store.get(coupon.id)
        self.assertEqual(fresh.used_count, before + 1)
        self.assertEqual(len(fresh.used_by), 1)
        entry = fresh.used_by[0]
        self.assertEqual(entry.user_id, "user-1")
        self.assertEqual(entry.order_amount, 1000.0)
        self.assertEqual(entry.discount_amount, 50.0)
        self.assertEqual(entry.used_at.replace(tzinfo=None), NOW.replace(tzinfo=None))

    def test_fixed_coupon_clamped_to_cart(self):
        create_coupon(self.db, code="FLAT30", type=CouponType.FIXED, value=30.0)
        result = apply_coupon(self.store, "flat30", "user-1", 20.0, clock=fixed_clock)
        self.assertTrue(result.valid)
        self.assertEqual(result.discount_amount, 20.0)
        self.assertEqual(result.payable_amount, 0.0)

    def test_invalid_coupon_is_not_recorded(self):
        coupon = create_coupon(self.db, minimum_amount=500.0)
        result = apply_coupon(self.store, "WELCOME10", "user-1", 100.0, clock=fixed_clock)
        self.assertFalse(result.valid)
        self.assertEqual(result.reason, ValidationReason.MINIMUM_AMOUNT_NOT_MET)
        self.assertEqual(result.discount_amount, 0.0)
        self.assertEqual(result.payable_amount, 100.0)
        self.assertEqual(self.store.get(coupon.id).used_count, 0)

    def test_second_use_by_same_user_hits_per_user_limit(self):
        create_coupon(self.db, usage_limit=100, user_limit=1)
        self.assertTrue(apply_coupon(self.store, "WELCOME10", "user-1", 100.0, clock=fixed_clock).valid)
        second = apply_coupon(self.store, "WELCOME10", "user-1", 100.0, clock=fixed_clock)
        self.assertFalse(second.valid)
        self.assertEqual(second.reason, ValidationReason.PER_USER_LIMIT_REACHED)
        self.assertTrue(apply_coupon(self.store, "WELCOME10", "user-2", 100.0, clock=fixed_clock).valid)

    def test_preview_does_not_redeem(self):
        coupon = create_coupon(self.db)
        for _ in range(3):
            result = preview_coupon(self.store, "WELCOME10", "user-1", 100.0, clock=fixed_clock)
            self.assertTrue(result.valid)
            self.assertEqual(result.discount_amount, 10.0)
        self.assertEqual(self.store.get(coupon.id).used_count, 0)

    def test_unknown_code(self):
        with self.assertRaises(CouponNotFound):
            apply_coupon(self.store, "MISSING", "user-1", 100.0, clock=fixed_clock)


class TestRedemptionRace(unittest.TestCase):
    def setUp(self):
        self.engine, self.SessionLocal = make_session_factory()
        setup_db = self.SessionLocal()
        try:
            self.coupon_id = create_coupon(setup_db, usage_limit=1).id
        finally:
            setup_db.close()

    def tearDown(self):
        self.engine.dispose()

    def test_stale_snapshot_loses_to_usage_limit(self):
        db_a, db_b = self.SessionLocal(), self.SessionLocal()
        try:
            store_a, store_b = CouponStore(db_a), CouponStore(db_b)
            snapshot_a = store_a.find_by_code("WELCOME10")
            snapshot_b = store_b.find_by_code("WELCOME10")

            first = RedemptionCoordinator(store_a, clock=fixed_clock).redeem(snapshot_a, "user-1", 100.0, 10.0)
            second = RedemptionCoordinator(store_b, clock=fixed_clock).redeem(snapshot_b, "user-2", 100.0, 10.0)

            self.assertTrue(first.redeemed)
            self.assertFalse(second.redeemed)
            self.assertEqual(second.validation.reason, ValidationReason.USAGE_LIMIT_EXCEEDED)
            self.assertEqual(store_b.get(self.coupon_id).used_count, 1)
            self.assertEqual(db_b.query(CouponRedemption).count(), 1)
        finally:
            db_a.close()
            db_b.close()

    def test_stale_snapshot_same_user_hits_per_user_limit(self):
        db = self.SessionLocal()
        try:
            coupon = CouponStore(db).get(self.coupon_id)
            coupon.usage_limit = None
            db.commit()
        finally:
            db.close()

        db_a, db_b = self.SessionLocal(), self.SessionLocal()
        try:
            store_a, store_b = CouponStore(db_a), CouponStore(db_b)
            snapshot_a = store_a.find_by_code("WELCOME10")
            snapshot_b = store_b.find_by_code("WELCOME10")

            self.assertTrue(RedemptionCoordinator(store_a, clock=fixed_clock).redeem(snapshot_a, "user-1", 100.0, 10.0).redeemed)
            second = RedemptionCoordinator(store_b, clock=fixed_clock).redeem(snapshot_b, "user-1", 100.0, 10.0)

            self.assertFalse(second.redeemed)
            self.assertEqual(second.validation.reason, ValidationReason.PER_USER_LIMIT_REACHED)
            self.assertEqual(store_b.user_redemption_count(self.coupon_id, "user-1"), 1)
        finally:
            db_a.close()
            db_b.close()

    def test_lost_race_retries_when_still_valid(self):
        db = self.SessionLocal()
        try:
            store = CouponStore(db)
            coupon = store.get(self.coupon_id)
            real = store.conditional_redeem
            calls = {"n": 0}

            def flaky(coupon_id, expected, record):
                calls["n"] += 1
                if calls["n"] == 1:
                    raise RedemptionConflict(coupon_id)
                return real(coupon_id, expected, record)

            with mock.patch.object(store, "conditional_redeem", side_effect=flaky):
                result = RedemptionCoordinator(store, clock=fixed_clock, max_retries=3).redeem(coupon, "user-1", 100.0, 10.0)

            self.assertTrue(result.redeemed)
            self.assertEqual(calls["n"], 2)
            self.assertEqual(result.coupon.used_count, 1)
        finally:
            db.close()

    def test_bounded_retries_surface_conflict(self):
        db = self.SessionLocal()
        try:
            store = CouponStore(db)
            coupon = store.get(self.coupon_id)
            with mock.patch.object(store, "conditional_redeem", side_effect=RedemptionConflict(self.coupon_id)) as cr:
                with self.assertRaises(RedemptionConflict) as ctx:
                    RedemptionCoordinator(store, clock=fixed_clock, max_retries=3).redeem(coupon, "user-1", 100.0, 10.0)
            self.assertEqual(cr.call_count, 3)
            self.assertEqual(ctx.exception.attempts, 3)
            self.assertEqual(store.get(self.coupon_id).used_count, 0)
        finally:
            db.close()


class TestConcurrentRedemption(unittest.TestCase):
    def setUp(self):
        fd, self.db_path = tempfile.mkstemp(suffix=".db")
        os.close(fd)
        self.engine, self.SessionLocal = make_session_factory(f"sqlite:///{self.db_path}")

    def tearDown(self):
        self.engine.dispose()
        os.remove(self.db_path)

    def _race(self, user_ids: list[str]) -> tuple[list, list]:
        barrier = threading.Barrier(len(user_ids))
        results: list = []
        errors: list = []
        lock = threading.Lock()

        def worker(user_id: str) -> None:
            db = self.SessionLocal()
            try:
                barrier.wait()
                result = apply_coupon(CouponStore(db), "WELCOME10", user_id, 100.0, clock=fixed_clock, max_retries=25)
                with lock:
                    results.append(result)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                db.close()

        threads = [threading.Thread(target=worker, args=(uid,)) for uid in user_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)
        return results, errors

    def test_usage_limit_holds_under_concurrency(self):
        db = self.SessionLocal()
        try:
            coupon_id = create_coupon(db, usage_limit=3, user_limit=1).id
        finally:
            db.close()

        results, errors = self._race([f"user-{i}" for i in range(8)])

        self.assertTrue(all(isinstance(e, RedemptionConflict) for e in errors), errors)
        committed = [r for r in results if r.valid]
        self.assertEqual(len(committed), 3)
        for r in results:
            if not r.valid:
                self.assertEqual(r.reason, ValidationReason.USAGE_LIMIT_EXCEEDED)

        db = self.SessionLocal()
        try:
            self.assertEqual(CouponStore(db).get(coupon_id).used_count, 3)
            self.assertEqual(db.query(CouponRedemption).count(), 3)
        finally:
            db.close()

    def test_user_limit_holds_under_concurrency(self):
        db = self.SessionLocal()
        try:
            coupon_id = create_coupon(db, usage_limit=None, user_limit=2).id
        finally:
            db.close()

        results, errors = self._race(["user-1"] * 6)

        self.assertTrue(all(isinstance(e, RedemptionConflict) for e in errors), errors)
        self.assertEqual(len([r for r in results if r.valid]), 2)

        db = self.SessionLocal()
        try:
            self.assertEqual(CouponStore(db).user_redemption_count(coupon_id, "user-1"), 2)
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
