import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.models.addon import Addon
from app.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class AddonLine:
    addon_id: int
    title: str
    quantity: int
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


def get_addon_by_id(db: Session, addon_id: int) -> Optional[Addon]:
    return db.query(Addon).filter(Addon.id == addon_id, Addon.active == True).first()  # noqa: E712


def addon_unit_price(addon: Addon) -> Decimal:
    price = to_decimal(addon.price)
    discount_percent = to_decimal(addon.discount_percent)
    if discount_percent > ZERO:
        price = price * (Decimal(100) - min(discount_percent, Decimal(100))) / Decimal(100)
    return price


def normalize_addons(db: Session, requested: Iterable) -> List[AddonLine]:
    """
    Price requested add-ons from the catalogue. Client prices are ignored;
    unknown or inactive add-ons and non-positive quantities are dropped.
    """
    lines: List[AddonLine] = []
    for item in requested or []:
        addon_id = getattr(item, "addon_id", None)
        quantity = getattr(item, "quantity", 1) or 0
        if addon_id is None or quantity <= 0:
            continue
        addon = get_addon_by_id(db, addon_id)
        if addon is None:
            logger.warning("Skipping unknown or inactive add-on %s", addon_id)
            continue
        lines.append(AddonLine(
            addon_id=addon.id,
            title=addon.title,
            quantity=quantity,
            unit_price=addon_unit_price(addon),
        ))
    return lines
