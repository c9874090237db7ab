from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, selectinload

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.core.errors import ValidationError
from app.models.user import User
from app.models.offer import Offer, OfferRule, RULE_TYPE_BUY_X_GET_Y
from app.schemas.offer import (
    OfferCreate,
    OfferUpdate,
    OfferRuleCreate,
    Offer as OfferSchema,
)
from app.schemas.common import PaginatedResponse
from app.services.buy_x_get_y import validate_buy_x_get_y_rule

router = APIRouter(prefix="/admin/offers", tags=["Admin - Offers"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_rules(db: Session, rule_type: Optional[str], rules) -> None:
    if rule_type != RULE_TYPE_BUY_X_GET_Y:
        return
    if not rules:
        raise ValidationError("A buy X get Y offer needs a rule")
    errors = []
    for rule in rules:
        errors += validate_buy_x_get_y_rule(db, rule)
    if errors:
        raise ValidationError(f"Invalid buy X get Y rule: {', '.join(errors)}")


def _build_rule(data: OfferRuleCreate) -> OfferRule:
    return OfferRule(**data.model_dump())


def _load_offer(db: Session, offer_id: int) -> Offer:
    offer = (
        db.query(Offer)
        .options(selectinload(Offer.rules))
        .filter(Offer.id == offer_id)
        .first()
    )
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


# ---------------------------------------------------------------------------
# Offer CRUD
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[OfferSchema])
def list_offers(
    active: Optional[bool] = None,
    rule_type: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    query = db.query(Offer).options(selectinload(Offer.rules))
    if active is not None:
        query = query.filter(Offer.active == active)
    if rule_type:
        query = query.filter(Offer.rule_type == rule_type)
    if search:
        query = query.filter(Offer.title.ilike(f"%{search}%"))

    total = query.count()
    offers = query.order_by(Offer.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=offers,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.get("/{offer_id}", response_model=OfferSchema)
def get_offer(
    offer_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    return _load_offer(db, offer_id)


@router.post("/", response_model=OfferSchema, status_code=status.HTTP_201_CREATED)
def create_offer(
    data: OfferCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    _validate_rules(db, data.rule_type, data.rules)

    offer = Offer(**data.model_dump(exclude={"rules"}))
    offer.rules = [_build_rule(r) for r in data.rules]
    db.add(offer)
    db.commit()
    return _load_offer(db, offer.id)


@router.patch("/{offer_id}", response_model=OfferSchema)
def update_offer(
    offer_id: int,
    data: OfferUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Partial update. When `rules` is sent it replaces every existing rule of the offer."""
    offer = _load_offer(db, offer_id)
    changes = data.model_dump(exclude_unset=True, exclude={"rules"})

    rule_type = changes.get("rule_type", offer.rule_type)
    if data.rules is not None:
        _validate_rules(db, rule_type, data.rules)
    elif "rule_type" in changes:
        _validate_rules(db, rule_type, offer.rules)

    for field, value in changes.items():
        setattr(offer, field, value)
    if data.rules is not None:
        offer.rules = [_build_rule(r) for r in data.rules]

    db.commit()
    return _load_offer(db, offer.id)


@router.delete("/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_offer(
    offer_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    offer = _load_offer(db, offer_id)
    db.delete(offer)
    db.commit()
