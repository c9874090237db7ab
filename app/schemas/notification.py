from typing import Optional
from pydantic import BaseModel
from datetime import datetime


class NotificationBase(BaseModel):
    title: str
    message: str
    type: str
    reference_id: Optional[int] = None


class Notification(NotificationBase):
    id: int
    user_id: int
    is_read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
