from sqlalchemy import Column, String, Boolean, DateTime, func, DECIMAL, Integer, ForeignKey, Text, Date, Time
from sqlalchemy.orm import relationship
from app.db.session import Base

class Attraction(Base):
    __tablename__ = "attractions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    base_price = Column(DECIMAL(10, 2), nullable=False, default=0)
    active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    slots = relationship("AttractionSlot", back_populates="attraction", cascade="all, delete-orphan")


class AttractionSlot(Base):
    """Physical slot row. Only these carry enforced capacity."""
    __tablename__ = "attraction_slots"

    id = Column(Integer, primary_key=True, index=True)
    attraction_id = Column(Integer, ForeignKey("attractions.id", ondelete="CASCADE"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    capacity = Column(Integer, nullable=False)
    price = Column(DECIMAL(10, 2), nullable=True) # overrides attraction base_price
    available = Column(Boolean, default=True)

    attraction = relationship("Attraction", back_populates="slots")
