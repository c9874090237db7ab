from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.models.user import User
from app.models.coupon import Coupon
from app.models.dynamic_pricing import DynamicPricingRule
from app.models.holiday import Holiday
from app.schemas.coupon import CouponCreate, CouponUpdate, Coupon as CouponSchema
from app.schemas.dynamic_pricing import (
    DynamicPricingRuleCreate,
    DynamicPricingRuleUpdate,
    DynamicPricingRule as DynamicPricingRuleSchema,
)
from app.schemas.holiday import HolidayCreate, HolidayUpdate, Holiday as HolidaySchema
from app.schemas.common import PaginatedResponse

coupon_router = APIRouter(prefix="/admin/coupons", tags=["Admin - Coupons"])
dynamic_pricing_router = APIRouter(prefix="/admin/dynamic-pricing", tags=["Admin - Dynamic Pricing"])
holiday_router = APIRouter(prefix="/admin/holidays", tags=["Admin - Holidays"])


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------


@coupon_router.get("/", response_model=PaginatedResponse[CouponSchema])
def list_coupons(
    active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    query = db.query(Coupon)
    if active is not None:
        query = query.filter(Coupon.active == active)

    total = query.count()
    coupons = query.order_by(Coupon.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=coupons,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@coupon_router.post("/", response_model=CouponSchema, status_code=status.HTTP_201_CREATED)
def create_coupon(
    data: CouponCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    if db.query(Coupon).filter(Coupon.code == data.code).first():
        raise HTTPException(status_code=400, detail="Coupon code already exists")
    coupon = Coupon(**data.model_dump())
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


@coupon_router.patch("/{coupon_id}", response_model=CouponSchema)
def update_coupon(
    coupon_id: int,
    data: CouponUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(coupon, field, value)
    db.commit()
    db.refresh(coupon)
    return coupon


@coupon_router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    db.delete(coupon)
    db.commit()


# ---------------------------------------------------------------------------
# Dynamic pricing rules
# ---------------------------------------------------------------------------


def _rule_fields(data, exclude_unset: bool = False) -> dict:
    fields = data.model_dump(exclude_unset=exclude_unset)
    # JSON column: ranges are stored as {"from": "YYYY-MM-DD", "to": "YYYY-MM-DD"}
    if fields.get("date_ranges") is not None:
        fields["date_ranges"] = data.model_dump(mode="json", by_alias=True, include={"date_ranges"})["date_ranges"]
    return fields


@dynamic_pricing_router.get("/", response_model=List[DynamicPricingRuleSchema])
def list_dynamic_pricing_rules(
    target_type: Optional[str] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    query = db.query(DynamicPricingRule)
    if target_type:
        query = query.filter(DynamicPricingRule.target_type == target_type)
    if active is not None:
        query = query.filter(DynamicPricingRule.active == active)
    return query.order_by(DynamicPricingRule.id.desc()).all()


@dynamic_pricing_router.post("/", response_model=DynamicPricingRuleSchema, status_code=status.HTTP_201_CREATED)
def create_dynamic_pricing_rule(
    data: DynamicPricingRuleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    rule = DynamicPricingRule(**_rule_fields(data))
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


@dynamic_pricing_router.patch("/{rule_id}", response_model=DynamicPricingRuleSchema)
def update_dynamic_pricing_rule(
    rule_id: int,
    data: DynamicPricingRuleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    rule = db.query(DynamicPricingRule).filter(DynamicPricingRule.id == rule_id).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Dynamic pricing rule not found")
    for field, value in _rule_fields(data, exclude_unset=True).items():
        setattr(rule, field, value)
    db.commit()
    db.refresh(rule)
    return rule


@dynamic_pricing_router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dynamic_pricing_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    rule = db.query(DynamicPricingRule).filter(DynamicPricingRule.id == rule_id).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Dynamic pricing rule not found")
    db.delete(rule)
    db.commit()


# ---------------------------------------------------------------------------
# Holidays
# ---------------------------------------------------------------------------


@holiday_router.get("/", response_model=List[HolidaySchema])
def list_holidays(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    query = db.query(Holiday)
    if year:
        query = query.filter(Holiday.holiday_date >= date(year, 1, 1), Holiday.holiday_date <= date(year, 12, 31))
    return query.order_by(Holiday.holiday_date).all()


@holiday_router.post("/", response_model=HolidaySchema, status_code=status.HTTP_201_CREATED)
def create_holiday(
    data: HolidayCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    if db.query(Holiday).filter(Holiday.holiday_date == data.holiday_date).first():
        raise HTTPException(status_code=400, detail="A holiday already exists on this date")
    holiday = Holiday(**data.model_dump())
    db.add(holiday)
    db.commit()
    db.refresh(holiday)
    return holiday


@holiday_router.patch("/{holiday_id}", response_model=HolidaySchema)
def update_holiday(
    holiday_id: int,
    data: HolidayUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    holiday = db.query(Holiday).filter(Holiday.id == holiday_id).first()
    if not holiday:
        raise HTTPException(status_code=404, detail="Holiday not found")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(holiday, field, value)
    db.commit()
    db.refresh(holiday)
    return holiday


@holiday_router.delete("/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_holiday(
    holiday_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    holiday = db.query(Holiday).filter(Holiday.id == holiday_id).first()
    if not holiday:
        raise HTTPException(status_code=404, detail="Holiday not found")
    db.delete(holiday)
    db.commit()
