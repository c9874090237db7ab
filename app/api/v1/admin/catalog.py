from typing import List, Optional
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.core.errors import ValidationError
from app.models.user import User
from app.models.attraction import Attraction, AttractionSlot
from app.models.combo import Combo, ComboSlot
from app.models.addon import Addon
from app.schemas.catalog import (
    AttractionCreate,
    AttractionUpdate,
    Attraction as AttractionSchema,
    ComboCreate,
    ComboUpdate,
    Combo as ComboSchema,
    AddonCreate,
    AddonUpdate,
    Addon as AddonSchema,
    SlotCreate,
    SlotUpdate,
    AttractionSlot as AttractionSlotSchema,
    ComboSlot as ComboSlotSchema,
)
from app.schemas.common import PaginatedResponse
from app.utils.slug import make_unique_slug

router = APIRouter(prefix="/admin", tags=["Admin - Catalog"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_attraction(db: Session, attraction_id: int) -> Attraction:
    attraction = db.query(Attraction).filter(Attraction.id == attraction_id).first()
    if not attraction:
        raise HTTPException(status_code=404, detail="Attraction not found")
    return attraction


def _get_combo(db: Session, combo_id: int) -> Combo:
    combo = db.query(Combo).filter(Combo.id == combo_id).first()
    if not combo:
        raise HTTPException(status_code=404, detail="Combo not found")
    return combo


def _check_combo_attractions(db: Session, attraction_ids: List[int]) -> None:
    found = {
        row.id
        for row in db.query(Attraction.id).filter(Attraction.id.in_(attraction_ids)).all()
    }
    missing = [a for a in attraction_ids if a not in found]
    if missing:
        raise ValidationError(f"Unknown attraction ids in combo: {missing}")


def _combo_fields(data, exclude_unset: bool = False) -> dict:
    fields = data.model_dump(exclude_unset=exclude_unset)
    # JSON column: price shares are stored as plain strings
    if fields.get("attraction_prices") is not None:
        fields["attraction_prices"] = {k: str(v) for k, v in fields["attraction_prices"].items()}
    return fields


def _check_slot_times(start_time, end_time) -> None:
    if end_time <= start_time:
        raise ValidationError("Slot end_time must be after start_time")


# ---------------------------------------------------------------------------
# Attractions
# ---------------------------------------------------------------------------


@router.get("/attractions", response_model=PaginatedResponse[AttractionSchema])
def list_attractions(
    active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    query = db.query(Attraction)
    if active is not None:
        query = query.filter(Attraction.active == active)
    if search:
        query = query.filter(Attraction.title.ilike(f"%{search}%"))

    total = query.count()
    attractions = query.order_by(Attraction.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=attractions,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.post("/attractions", response_model=AttractionSchema, status_code=status.HTTP_201_CREATED)
def create_attraction(
    data: AttractionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    attraction = Attraction(**data.model_dump(), slug=make_unique_slug(db, Attraction, data.title))
    db.add(attraction)
    db.commit()
    db.refresh(attraction)
    return attraction


@router.patch("/attractions/{attraction_id}", response_model=AttractionSchema)
def update_attraction(
    attraction_id: int,
    data: AttractionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    attraction = _get_attraction(db, attraction_id)
    changes = data.model_dump(exclude_unset=True)
    if "title" in changes and changes["title"] != attraction.title:
        attraction.slug = make_unique_slug(db, Attraction, changes["title"])
    for field, value in changes.items():
        setattr(attraction, field, value)
    db.commit()
    db.refresh(attraction)
    return attraction


@router.delete("/attractions/{attraction_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_attraction(
    attraction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    # Soft delete: existing bookings keep their reference
    attraction = _get_attraction(db, attraction_id)
    attraction.active = False
    db.commit()


# ---------------------------------------------------------------------------
# Combos
# ---------------------------------------------------------------------------


@router.get("/combos", response_model=PaginatedResponse[ComboSchema])
def list_combos(
    active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    query = db.query(Combo)
    if active is not None:
        query = query.filter(Combo.active == active)
    if search:
        query = query.filter(Combo.name.ilike(f"%{search}%"))

    total = query.count()
    combos = query.order_by(Combo.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=combos,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.post("/combos", response_model=ComboSchema, status_code=status.HTTP_201_CREATED)
def create_combo(
    data: ComboCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    _check_combo_attractions(db, data.attraction_ids)
    combo = Combo(**_combo_fields(data), slug=make_unique_slug(db, Combo, data.name))
    db.add(combo)
    db.commit()
    db.refresh(combo)
    return combo


@router.patch("/combos/{combo_id}", response_model=ComboSchema)
def update_combo(
    combo_id: int,
    data: ComboUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    combo = _get_combo(db, combo_id)
    changes = _combo_fields(data, exclude_unset=True)
    if "attraction_ids" in changes:
        _check_combo_attractions(db, changes["attraction_ids"])
    if "name" in changes and changes["name"] != combo.name:
        combo.slug = make_unique_slug(db, Combo, changes["name"])
    for field, value in changes.items():
        setattr(combo, field, value)
    db.commit()
    db.refresh(combo)
    return combo


@router.delete("/combos/{combo_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_combo(
    combo_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    combo = _get_combo(db, combo_id)
    combo.active = False
    db.commit()


# ---------------------------------------------------------------------------
# Add-ons
# ---------------------------------------------------------------------------


@router.get("/addons", response_model=List[AddonSchema])
def list_addons(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    return db.query(Addon).order_by(Addon.id).all()


@router.post("/addons", response_model=AddonSchema, status_code=status.HTTP_201_CREATED)
def create_addon(
    data: AddonCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    addon = Addon(**data.model_dump())
    db.add(addon)
    db.commit()
    db.refresh(addon)
    return addon


@router.patch("/addons/{addon_id}", response_model=AddonSchema)
def update_addon(
    addon_id: int,
    data: AddonUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    addon = db.query(Addon).filter(Addon.id == addon_id).first()
    if not addon:
        raise HTTPException(status_code=404, detail="Add-on not found")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(addon, field, value)
    db.commit()
    db.refresh(addon)
    return addon


@router.delete("/addons/{addon_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_addon(
    addon_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    addon = db.query(Addon).filter(Addon.id == addon_id).first()
    if not addon:
        raise HTTPException(status_code=404, detail="Add-on not found")
    addon.active = False
    db.commit()


# ---------------------------------------------------------------------------
# Physical slots
# ---------------------------------------------------------------------------


@router.get("/attractions/{attraction_id}/slots", response_model=List[AttractionSlotSchema])
def list_attraction_slots(
    attraction_id: int,
    slot_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    _get_attraction(db, attraction_id)
    query = db.query(AttractionSlot).filter(AttractionSlot.attraction_id == attraction_id)
    if slot_date:
        query = query.filter(AttractionSlot.slot_date == slot_date)
    return query.order_by(AttractionSlot.slot_date, AttractionSlot.start_time).all()


@router.post(
    "/attractions/{attraction_id}/slots",
    response_model=List[AttractionSlotSchema],
    status_code=status.HTTP_201_CREATED,
)
def create_attraction_slots(
    attraction_id: int,
    slots: List[SlotCreate],
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Bulk-create physical slots for an attraction."""
    _get_attraction(db, attraction_id)
    created = []
    for data in slots:
        _check_slot_times(data.start_time, data.end_time)
        slot = AttractionSlot(attraction_id=attraction_id, **data.model_dump())
        db.add(slot)
        created.append(slot)
    db.commit()
    for slot in created:
        db.refresh(slot)
    return created


@router.patch("/attraction-slots/{slot_id}", response_model=AttractionSlotSchema)
def update_attraction_slot(
    slot_id: int,
    data: SlotUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    slot = db.query(AttractionSlot).filter(AttractionSlot.id == slot_id).first()
    if not slot:
        raise HTTPException(status_code=404, detail="Slot not found")
    changes = data.model_dump(exclude_unset=True)
    _check_slot_times(changes.get("start_time", slot.start_time), changes.get("end_time", slot.end_time))
    for field, value in changes.items():
        setattr(slot, field, value)
    db.commit()
    db.refresh(slot)
    return slot


@router.get("/combos/{combo_id}/slots", response_model=List[ComboSlotSchema])
def list_combo_slots(
    combo_id: int,
    slot_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    _get_combo(db, combo_id)
    query = db.query(ComboSlot).filter(ComboSlot.combo_id == combo_id)
    if slot_date:
        query = query.filter(ComboSlot.slot_date == slot_date)
    return query.order_by(ComboSlot.slot_date, ComboSlot.start_time).all()


@router.post(
    "/combos/{combo_id}/slots",
    response_model=List[ComboSlotSchema],
    status_code=status.HTTP_201_CREATED,
)
def create_combo_slots(
    combo_id: int,
    slots: List[SlotCreate],
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Bulk-create physical slots for a combo."""
    _get_combo(db, combo_id)
    created = []
    for data in slots:
        _check_slot_times(data.start_time, data.end_time)
        slot = ComboSlot(combo_id=combo_id, **data.model_dump())
        db.add(slot)
        created.append(slot)
    db.commit()
    for slot in created:
        db.refresh(slot)
    return created


@router.patch("/combo-slots/{slot_id}", response_model=ComboSlotSchema)
def update_combo_slot(
    slot_id: int,
    data: SlotUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    slot = db.query(ComboSlot).filter(ComboSlot.id == slot_id).first()
    if not slot:
        raise HTTPException(status_code=404, detail="Slot not found")
    changes = data.model_dump(exclude_unset=True)
    _check_slot_times(changes.get("start_time", slot.start_time), changes.get("end_time", slot.end_time))
    for field, value in changes.items():
        setattr(slot, field, value)
    db.commit()
    db.refresh(slot)
    return slot
