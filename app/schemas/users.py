from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from app.models.user import UserRole


class UserResponse(BaseModel):
    id: int
    email: str
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    role: UserRole
    created_at: datetime
    last_seen_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=20)


class RoleUpdate(BaseModel):
    role: UserRole


class PresenceResponse(BaseModel):
    online: bool
    last_seen_at: Optional[datetime] = None
    label: str


class WhatsappTokenUpdate(BaseModel):
    """Seller's own Evolution instance token; empty string clears it"""
    api_token: str


class WhatsappTokenStatus(BaseModel):
    configured: bool
    api_token_masked: str = ""
