from sqlalchemy import Column, String, Boolean, DateTime, func, DECIMAL, Integer, JSON, Text
from app.db.session import Base

class DynamicPricingRule(Base):
    """Additive price adjustment, consulted only when no offer rule matches."""
    __tablename__ = "dynamic_pricing_rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    target_type = Column(String(20), nullable=False, index=True) # attraction, combo, all
    target_id = Column(Integer, nullable=True, index=True)
    date_ranges = Column(JSON, nullable=False, default=list) # [{"from": "YYYY-MM-DD", "to": "YYYY-MM-DD"}]
    price_adjustment_type = Column(String(20), nullable=False) # fixed, percentage
    price_adjustment_value = Column(DECIMAL(10, 2), nullable=False) # signed
    active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
