from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    discount_percentage: int = Field(..., ge=1, le=100)
    usage_limit: int = Field(0, ge=0, description="0 = ilimitado (não aplicado)")

    @field_validator("code")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return v.strip().upper()


class CouponUpdate(BaseModel):
    discount_percentage: Optional[int] = Field(None, ge=1, le=100)
    usage_limit: Optional[int] = Field(None, ge=0)


class CouponResponse(BaseModel):
    code: str
    discount_percentage: int
    usage_limit: int
    usage_count: int
    created_at: datetime

    class Config:
        from_attributes = True
