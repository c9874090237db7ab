from sqlalchemy import Column, String, DateTime, func, DECIMAL, Integer, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from app.db.session import Base

PAYMENT_PENDING = "Pending"
PAYMENT_COMPLETED = "Completed"
PAYMENT_CANCELLED = "Cancelled"
PAYMENT_FAILED = "Failed"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("final_amount >= 0", name="ck_orders_final_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    ref = Column(String(20), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    total_amount = Column(DECIMAL(10, 2), nullable=False, default=0) # gross
    discount_amount = Column(DECIMAL(10, 2), nullable=False, default=0) # offers + bundle + coupon
    final_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    payment_status = Column(String(20), default=PAYMENT_PENDING, nullable=False, index=True)
    payment_mode = Column(String(30), nullable=True)
    payment_ref = Column(String(100), nullable=True)
    coupon_code = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    user = relationship("User")
    bookings = relationship(
        "Booking",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="Booking.id",
    )
