from dataclasses import asdict
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User, UserRole
from app.auth.dependencies import get_current_user, require_admin, require_seller
from app.integrations import evolution
from app.schemas.users import (
    UserResponse,
    ProfileUpdate,
    RoleUpdate,
    PresenceResponse,
    WhatsappTokenUpdate,
    WhatsappTokenStatus,
)
from app.schemas.system_settings import WhatsappStatusResponse, WhatsappConnectResponse, mask_token
from app.services.encryption import encrypt_value, decrypt_value
from app.services.tickets import presence

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
def get_current_user_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UserResponse)
def update_profile(
    update_data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update display name and/or phone number"""
    if update_data.display_name is not None:
        current_user.display_name = update_data.display_name.strip() or None
    if update_data.phone_number is not None:
        current_user.phone_number = update_data.phone_number.strip() or None
    db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/me/presence", response_model=PresenceResponse)
def heartbeat(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record that the user is active now."""
    now = datetime.now(timezone.utc)
    current_user.last_seen_at = now
    db.commit()
    return asdict(presence(now, now))


@router.get("/{user_id}/presence", response_model=PresenceResponse)
def get_presence(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    return asdict(presence(user.last_seen_at))


# ---------------------------------------------------------------------------
# Seller-owned WhatsApp instance
# ---------------------------------------------------------------------------

@router.get("/me/whatsapp-token", response_model=WhatsappTokenStatus)
def get_whatsapp_token(current_user: User = Depends(require_seller)):
    token = decrypt_value(current_user.whatsapp_api_token_encrypted)
    return WhatsappTokenStatus(configured=bool(token), api_token_masked=mask_token(token))


@router.put("/me/whatsapp-token", response_model=WhatsappTokenStatus)
def set_whatsapp_token(
    payload: WhatsappTokenUpdate,
    current_user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    token = payload.api_token.strip()
    current_user.whatsapp_api_token_encrypted = encrypt_value(token) if token else None
    db.commit()
    return WhatsappTokenStatus(configured=bool(token), api_token_masked=mask_token(token))


def _seller_token(user: User) -> str:
    token = decrypt_value(user.whatsapp_api_token_encrypted)
    if not token:
        raise HTTPException(status_code=400, detail="Configure o token do WhatsApp primeiro")
    return token


@router.get("/me/whatsapp/status", response_model=WhatsappStatusResponse)
def seller_whatsapp_status(current_user: User = Depends(require_seller)):
    try:
        state = evolution.get_instance_status(_seller_token(current_user))
    except evolution.WhatsappGatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return WhatsappStatusResponse(state=state)


@router.post("/me/whatsapp/connect", response_model=WhatsappConnectResponse)
def seller_whatsapp_connect(current_user: User = Depends(require_seller)):
    try:
        result = evolution.connect_instance(_seller_token(current_user))
    except evolution.WhatsappGatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return WhatsappConnectResponse(**result)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[UserRole] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at.desc()).all()


@router.patch("/{user_id}/role", response_model=UserResponse)
def update_role(
    user_id: int,
    payload: RoleUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    if user.id == current_user.id and payload.role != UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Você não pode remover seu próprio acesso de administrador")
    user.role = payload.role
    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Você não pode excluir sua própria conta")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    db.delete(user)
    db.commit()
