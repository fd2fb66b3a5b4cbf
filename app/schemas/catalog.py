from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from app.models.catalog import AccountModel, DeliverableStatus


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    long_description: Optional[str] = None
    logo_url: Optional[str] = Field(None, max_length=1024)
    banner_url: Optional[str] = Field(None, max_length=1024)


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    long_description: Optional[str] = None
    logo_url: Optional[str] = Field(None, max_length=1024)
    banner_url: Optional[str] = Field(None, max_length=1024)


class ServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    long_description: Optional[str] = None
    logo_url: Optional[str] = None
    banner_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PlanCreate(BaseModel):
    service_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    features: List[str] = []
    account_model: AccountModel = AccountModel.CAPTURED
    user_limit: int = Field(1, ge=1)
    quality: Optional[str] = Field(None, max_length=50)
    banner_url: Optional[str] = Field(None, max_length=1024)


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    features: Optional[List[str]] = None
    account_model: Optional[AccountModel] = None
    user_limit: Optional[int] = Field(None, ge=1)
    quality: Optional[str] = Field(None, max_length=50)
    banner_url: Optional[str] = Field(None, max_length=1024)


class PlanResponse(BaseModel):
    id: int
    service_id: int
    seller_id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    features: List[str] = []
    account_model: AccountModel
    user_limit: int
    stock: int
    quality: Optional[str] = None
    banner_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DeliverablesCreate(BaseModel):
    """Bulk stock upload: one deliverable per entry"""
    contents: List[str] = Field(..., min_length=1)


class DeliverableResponse(BaseModel):
    id: int
    plan_id: int
    content: str
    status: DeliverableStatus
    created_at: datetime
    sold_at: Optional[datetime] = None
    user_subscription_id: Optional[int] = None

    class Config:
        from_attributes = True
