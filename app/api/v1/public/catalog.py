from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.addon import Addon
from app.models.attraction import Attraction
from app.models.combo import Combo
from app.schemas.catalog import (
    Addon as AddonSchema,
    Attraction as AttractionSchema,
    Combo as ComboSchema,
    PricedSlot,
)
from app.schemas.common import PaginatedResponse
from app.schemas.coupon import CouponCheck
from app.services.availability import list_priced_slots
from app.services.coupons import compute_discount, get_coupon_by_code
from app.services.slots import SLOT_KIND_ATTRACTION, SLOT_KIND_COMBO

attractions_router = APIRouter(prefix="/attractions", tags=["Attractions"])
combos_router = APIRouter(prefix="/combos", tags=["Combos"])
addons_router = APIRouter(prefix="/addons", tags=["Add-ons"])
coupons_router = APIRouter(prefix="/coupons", tags=["Coupons"])


# ---------------------------------------------------------------------------
# Attractions
# ---------------------------------------------------------------------------


@attractions_router.get("/", response_model=PaginatedResponse[AttractionSchema])
def list_attractions(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Attraction).filter(Attraction.active == True)  # noqa: E712
    if search:
        query = query.filter(Attraction.title.ilike(f"%{search}%"))

    total = query.count()
    attractions = query.order_by(Attraction.title).offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=attractions,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


def _get_active_attraction(db: Session, key: str) -> Attraction:
    query = db.query(Attraction).filter(Attraction.active == True)  # noqa: E712
    attraction = (
        query.filter(Attraction.id == int(key)).first() if key.isdigit()
        else query.filter(Attraction.slug == key).first()
    )
    if not attraction:
        raise HTTPException(status_code=404, detail="Attraction not found")
    return attraction


@attractions_router.get("/{key}", response_model=AttractionSchema)
def get_attraction(key: str, db: Session = Depends(get_db)):
    """Look up an attraction by id or slug."""
    return _get_active_attraction(db, key)


@attractions_router.get("/{key}/slots", response_model=List[PricedSlot])
def list_attraction_slots(
    key: str,
    slot_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
):
    """Bookable slots for one day with live availability and offer pricing."""
    attraction = _get_active_attraction(db, key)
    return list_priced_slots(db, SLOT_KIND_ATTRACTION, attraction, slot_date)


# ---------------------------------------------------------------------------
# Combos
# ---------------------------------------------------------------------------


@combos_router.get("/", response_model=PaginatedResponse[ComboSchema])
def list_combos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Combo).filter(Combo.active == True)  # noqa: E712
    total = query.count()
    combos = query.order_by(Combo.name).offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=combos,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


def _get_active_combo(db: Session, key: str) -> Combo:
    query = db.query(Combo).filter(Combo.active == True)  # noqa: E712
    combo = (
        query.filter(Combo.id == int(key)).first() if key.isdigit()
        else query.filter(Combo.slug == key).first()
    )
    if not combo:
        raise HTTPException(status_code=404, detail="Combo not found")
    return combo


@combos_router.get("/{key}", response_model=ComboSchema)
def get_combo(key: str, db: Session = Depends(get_db)):
    return _get_active_combo(db, key)


@combos_router.get("/{key}/slots", response_model=List[PricedSlot])
def list_combo_slots(
    key: str,
    slot_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
):
    combo = _get_active_combo(db, key)
    return list_priced_slots(db, SLOT_KIND_COMBO, combo, slot_date)


# ---------------------------------------------------------------------------
# Add-ons & coupons
# ---------------------------------------------------------------------------


@addons_router.get("/", response_model=List[AddonSchema])
def list_addons(db: Session = Depends(get_db)):
    return db.query(Addon).filter(Addon.active == True).order_by(Addon.title).all()  # noqa: E712


@coupons_router.get("/{code}", response_model=CouponCheck)
def check_coupon(
    code: str,
    amount: Decimal = Query(Decimal("0"), ge=0, description="Amount the coupon would apply to"),
    db: Session = Depends(get_db),
):
    """Whether a coupon is usable today and what it would take off `amount`."""
    coupon = get_coupon_by_code(db, code, active_only=True)
    if coupon is None:
        return CouponCheck(code=code.strip().upper(), valid=False, discount=Decimal("0"))
    return CouponCheck(
        code=coupon.code,
        valid=True,
        discount=compute_discount(coupon, amount),
        description=coupon.description,
    )
