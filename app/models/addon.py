from sqlalchemy import Column, String, Boolean, DateTime, func, DECIMAL, Integer, Text
from app.db.session import Base

class Addon(Base):
    __tablename__ = "addons"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(DECIMAL(10, 2), nullable=False, default=0)
    discount_percent = Column(DECIMAL(5, 2), nullable=False, default=0)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
