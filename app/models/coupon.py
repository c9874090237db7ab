from sqlalchemy import Column, String, Boolean, DateTime, func, DECIMAL, Integer, Date
from app.db.session import Base

class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True) # stored upper-case
    description = Column(String(255), nullable=True)
    discount_type = Column(String(20), nullable=False, default="percent") # percent, amount
    discount_value = Column(DECIMAL(10, 2), nullable=False)
    max_discount = Column(DECIMAL(10, 2), nullable=True)
    min_order_amount = Column(DECIMAL(10, 2), nullable=True)
    valid_from = Column(Date, nullable=True)
    valid_to = Column(Date, nullable=True)
    active = Column(Boolean, default=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
