from sqlalchemy import Column, String, Integer, Date
from app.db.session import Base

class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    holiday_date = Column(Date, unique=True, nullable=False, index=True)
    name = Column(String(150), nullable=False)
