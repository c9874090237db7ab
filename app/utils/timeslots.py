from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.models.attraction import AttractionSlot
from app.models.combo import ComboSlot


def deactivate_past_slots(db: Session) -> int:
    """
    Mark as unavailable all physical slots whose start date+time has already passed.

    A slot is considered past when:
      - slot_date  < today                              (entire day is gone), or
      - slot_date == today  AND  start_time < now.time (already started today)

    Covers both attraction and combo slots. Returns the number of slots deactivated.
    """
    # slot_date/start_time are stored as timezone-naive local values
    now = datetime.now()
    today = now.date()
    current_time = now.time()

    count = 0
    for model in (AttractionSlot, ComboSlot):
        count += (
            db.query(model)
            .filter(
                model.available == True,  # noqa: E712
                or_(
                    model.slot_date < today,
                    and_(
                        model.slot_date == today,
                        model.start_time < current_time,
                    ),
                ),
            )
            .update({"available": False}, synchronize_session="fetch")
        )
    db.commit()
    return count
