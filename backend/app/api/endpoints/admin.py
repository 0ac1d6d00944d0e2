from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, require_admin
from app.schemas.coupon import CouponCreate, CouponDetailResponse, CouponRename, CouponResponse
from app.services.coupon_errors import CouponNotFound, DuplicateCode
from app.services.coupon_store import CouponStore


router = APIRouter(dependencies=[Depends(require_admin)])


def _find(store: CouponStore, code: str):
    try:
        return store.find_by_code(code)
    except CouponNotFound:
        raise HTTPException(status_code=404, detail="Coupon not found")


@router.get("/admin/coupons", response_model=list[CouponResponse])
def admin_list_coupons(active_only: bool = False, db: Session = Depends(get_db)):
    return CouponStore(db).list_coupons(active_only=active_only)


@router.post("/admin/coupons", response_model=CouponResponse, status_code=201)
def admin_create_coupon(
    body: CouponCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    if body.valid_from > body.valid_until:
        raise HTTPException(status_code=400, detail="valid_from must not be after valid_until")
    try:
        return CouponStore(db).create(created_by=current_user.id, **body.model_dump())
    except DuplicateCode:
        raise HTTPException(status_code=409, detail="Coupon already exists")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/admin/coupons/{code}", response_model=CouponDetailResponse)
def admin_get_coupon(code: str, db: Session = Depends(get_db)):
    return _find(CouponStore(db), code)


@router.post("/admin/coupons/{code}/rename", response_model=CouponResponse)
def admin_rename_coupon(code: str, body: CouponRename, db: Session = Depends(get_db)):
    store = CouponStore(db)
    coupon = _find(store, code)
    try:
        return store.rename(coupon.id, body.code)
    except DuplicateCode:
        raise HTTPException(status_code=409, detail="Coupon already exists")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/admin/coupons/{code}/deactivate", response_model=CouponResponse)
def admin_deactivate_coupon(code: str, db: Session = Depends(get_db)):
    store = CouponStore(db)
    coupon = _find(store, code)
    return store.set_active(coupon.id, False)


@router.post("/admin/coupons/{code}/activate", response_model=CouponResponse)
def admin_activate_coupon(code: str, db: Session = Depends(get_db)):
    store = CouponStore(db)
    coupon = _find(store, code)
    return store.set_active(coupon.id, True)
