from sqlalchemy import Column, String, Boolean, DateTime, func, DECIMAL, Integer, ForeignKey, JSON, Date, Time
from sqlalchemy.orm import relationship
from app.db.session import Base

class Combo(Base):
    __tablename__ = "combos"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    image_url = Column(String(500), nullable=True)
    attraction_ids = Column(JSON, nullable=False, default=list) # ordered
    attraction_prices = Column(JSON, nullable=False, default=dict) # {"<attraction_id>": price share}
    total_price = Column(DECIMAL(10, 2), nullable=False, default=0)
    active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    slots = relationship("ComboSlot", back_populates="combo", cascade="all, delete-orphan")

    @property
    def slot_duration_hours(self) -> int:
        return max(1, len(self.attraction_ids or []))


class ComboSlot(Base):
    __tablename__ = "combo_slots"

    id = Column(Integer, primary_key=True, index=True)
    combo_id = Column(Integer, ForeignKey("combos.id", ondelete="CASCADE"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    capacity = Column(Integer, nullable=False)
    price = Column(DECIMAL(10, 2), nullable=True) # overrides combo total_price
    available = Column(Boolean, default=True)

    combo = relationship("Combo", back_populates="slots")
