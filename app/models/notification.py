from sqlalchemy import Column, String, Boolean, DateTime, func, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.db.session import Base

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False) # booking_confirmed, cancelled
    is_read = Column(Boolean, default=False)
    reference_id = Column(Integer, nullable=True) # Order ID
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User")
