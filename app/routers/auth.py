import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.pending_message import PendingMessageType
from app.models.user import User, UserRole
from app.schemas.auth import (
    UserRegister,
    UserLogin,
    TokenResponse,
    RefreshTokenRequest,
)
from app.auth.security import hash_password, verify_password, create_token_pair, verify_token
from app.auth.rate_limiter import rate_limiter
from app.services import notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Register a new customer account and queue the WhatsApp welcome message"""
    email = user_data.email.lower()
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    new_user = User(
        email=email,
        password_hash=hash_password(user_data.password),
        display_name=(user_data.display_name or "").strip() or None,
        phone_number=(user_data.phone_number or "").strip() or None,
        role=UserRole.CUSTOMER,
    )
    db.add(new_user)
    db.flush()

    welcome = notifications.enqueue(
        db,
        PendingMessageType.WELCOME,
        new_user.phone_number,
        {"customer_name": new_user.name, "customer_email": new_user.email},
    )
    db.commit()
    db.refresh(new_user)
    if welcome is not None:
        notifications.dispatch_pending_messages([welcome.id])

    logger.info("User %s registered", new_user.id)
    access_token, refresh_token = create_token_pair(new_user.id)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/login", response_model=TokenResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Authenticate user and return JWT tokens"""
    email = credentials.email.lower()
    if rate_limiter.is_blocked(email):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many failed attempts. Please try again in {rate_limiter.window_minutes} minutes."
        )

    user = db.query(User).filter(User.email == email).first()

    if user is None or not verify_password(credentials.password, user.password_hash):
        attempts = rate_limiter.record_failed_attempt(email)
        remaining = rate_limiter.max_attempts - attempts
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"X-Remaining-Attempts": str(max(0, remaining))}
        )

    rate_limiter.reset(email)

    access_token, refresh_token = create_token_pair(user.id)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/refresh", response_model=TokenResponse)
def refresh(request: RefreshTokenRequest, db: Session = Depends(get_db)):
    """Refresh access token using refresh token"""
    payload = verify_token(request.refresh_token, expected_type="refresh")

    if payload is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token"
        )

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    access_token, refresh_token = create_token_pair(user.id)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)
