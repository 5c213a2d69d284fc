from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class CategoryAvailability(BaseModel):
    categoryId: Optional[int] = None
    categoryKey: str
    name: str
    price: float
    currency: str
    quantityTotal: Optional[int] = None
    quantitySold: int
    available: Optional[int] = None





class EventAvailability(BaseModel):
    eventId: int
    title: str
    eventStart: datetime
    location: Optional[str] = None
    categories: List[CategoryAvailability]
