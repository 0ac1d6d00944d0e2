from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.models.coupon import CouponType


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    description: str = Field(..., min_length=1)
    type: CouponType
    value: float = Field(..., ge=0)
    minimum_amount: float = Field(0.0, ge=0)
    maximum_discount: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    user_limit: int = Field(1, ge=1)
    applicable_products: List[str] = []
    applicable_categories: List[str] = []
    exclude_products: List[str] = []
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True


class CouponRename(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class CouponCheckRequest(BaseModel):
    code: str
    cart_amount: float = Field(..., ge=0)


class CouponCheckResponse(BaseModel):
    code: str
    valid: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    discount_amount: float
    payable_amount: float


class RedemptionOut(BaseModel):
    user_id: str
    used_at: datetime
    order_amount: float
    discount_amount: float

    class Config:
        from_attributes = True


class CouponResponse(BaseModel):
    id: int
    code: str
    description: str
    type: CouponType
    value: float
    minimum_amount: float
    maximum_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    used_count: int
    user_limit: int
    applicable_products: List[str] = []
    applicable_categories: List[str] = []
    exclude_products: List[str] = []
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    created_by: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CouponDetailResponse(CouponResponse):
    used_by: List[RedemptionOut] = []
