from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user
from app.schemas.coupon import CouponCheckRequest, CouponCheckResponse
from app.services.coupon_errors import CouponNotFound, RedemptionConflict
from app.services.coupon_store import CouponStore
from app.services.redemption import ApplyResult, apply_coupon, preview_coupon


router = APIRouter(dependencies=[Depends(get_current_user)])


def _to_response(result: ApplyResult) -> CouponCheckResponse:
    return CouponCheckResponse(
        code=result.coupon.code,
        valid=result.valid,
        reason=(result.reason.value if result.reason else None),
        message=result.message,
        discount_amount=result.discount_amount,
        payable_amount=result.payable_amount,
    )


@router.post("/coupons/validate", response_model=CouponCheckResponse)
def validate_coupon(
    body: CouponCheckRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        result = preview_coupon(CouponStore(db), body.code, current_user.id, body.cart_amount)
    except CouponNotFound:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return _to_response(result)


@router.post("/coupons/apply", response_model=CouponCheckResponse)
def redeem_coupon(
    body: CouponCheckRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        result = apply_coupon(CouponStore(db), body.code, current_user.id, body.cart_amount)
    except CouponNotFound:
        raise HTTPException(status_code=404, detail="Coupon not found")
    except RedemptionConflict:
        raise HTTPException(status_code=409, detail="Coupon was redeemed concurrently, please retry")
    return _to_response(result)
