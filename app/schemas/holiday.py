from typing import Optional
from pydantic import BaseModel
from datetime import date


class HolidayBase(BaseModel):
    holiday_date: date
    name: str


class HolidayCreate(HolidayBase):
    pass


class HolidayUpdate(BaseModel):
    holiday_date: Optional[date] = None
    name: Optional[str] = None


class Holiday(HolidayBase):
    id: int

    class Config:
        from_attributes = True
