from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Optional


class SaleResponse(BaseModel):
    """One completed purchase as seen from the sales listings"""
    id: int
    user_id: int
    plan_id: Optional[int] = None
    service_id: Optional[int] = None
    plan_name: str
    service_name: str
    price: Decimal
    payment_method: str
    start_date: datetime
    end_date: datetime
    ticket_id: Optional[int] = None

    class Config:
        from_attributes = True
