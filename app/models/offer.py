from sqlalchemy import Column, String, Boolean, DateTime, func, DECIMAL, Integer, ForeignKey, Text, Date, Time, JSON
from sqlalchemy.orm import relationship
from app.db.session import Base

RULE_TYPE_PLAIN = "plain"
RULE_TYPE_BUY_X_GET_Y = "buy_x_get_y"


class Offer(Base):
    __tablename__ = "offers"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    rule_type = Column(String(30), nullable=True) # plain (NULL), buy_x_get_y
    discount_type = Column(String(20), nullable=True, default="percent") # percent, amount
    discount_value = Column(DECIMAL(10, 2), nullable=True, default=0)
    max_discount = Column(DECIMAL(10, 2), nullable=True)
    valid_from = Column(Date, nullable=True)
    valid_to = Column(Date, nullable=True)
    active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    rules = relationship(
        "OfferRule",
        back_populates="offer",
        cascade="all, delete-orphan",
        order_by="OfferRule.id",
    )


class OfferRule(Base):
    __tablename__ = "offer_rules"

    id = Column(Integer, primary_key=True, index=True)
    offer_id = Column(Integer, ForeignKey("offers.id", ondelete="CASCADE"), nullable=False, index=True)

    # Target scoping
    target_type = Column(String(20), nullable=False, default="attraction", index=True) # attraction, combo
    target_id = Column(Integer, nullable=True, index=True)
    applies_to_all = Column(Boolean, default=False, nullable=False)

    # Date / time scoping
    date_from = Column(Date, nullable=True)
    date_to = Column(Date, nullable=True)
    time_from = Column(Time, nullable=True)
    time_to = Column(Time, nullable=True)
    specific_date = Column(Date, nullable=True)
    specific_time = Column(Time, nullable=True)
    day_type = Column(String(20), nullable=True) # weekday, weekend, holiday, custom
    specific_days = Column(JSON, nullable=True) # weekday numbers, 0 = Sunday

    # Exact slot scoping
    slot_type = Column(String(20), nullable=True) # attraction, combo
    slot_id = Column(Integer, nullable=True)

    rule_discount_type = Column(String(20), nullable=True)
    rule_discount_value = Column(DECIMAL(10, 2), nullable=True)
    priority = Column(Integer, default=100, nullable=False)

    # Buy X get Y
    buy_qty = Column(Integer, nullable=True)
    get_qty = Column(Integer, nullable=True)
    get_target_type = Column(String(20), nullable=True)
    get_target_id = Column(Integer, nullable=True)
    get_discount_type = Column(String(20), nullable=True) # percent, amount, NULL = free
    get_discount_value = Column(DECIMAL(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    offer = relationship("Offer", back_populates="rules")
