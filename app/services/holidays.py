import logging
from datetime import date
from typing import Set

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.holiday import Holiday

logger = logging.getLogger(__name__)


def get_holidays(db: Session, year: int) -> Set[str]:
    """ISO dates ('YYYY-MM-DD') that count as holidays in ``year``."""
    holidays = {f"{year}-{month_day}" for month_day in settings.FIXED_HOLIDAYS}

    rows = (
        db.query(Holiday.holiday_date)
        .filter(
            Holiday.holiday_date >= date(year, 1, 1),
            Holiday.holiday_date <= date(year, 12, 31),
        )
        .all()
    )
    holidays.update(row.holiday_date.isoformat() for row in rows)
    return holidays
