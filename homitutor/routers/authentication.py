"""
Authentication router handling email/password sign up, login, token refresh and logout.
Implements JWT token based authentication with access and refresh tokens.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address
from jose import jwt
from datetime import datetime, timedelta
from typing import Tuple
import uuid
from homitutor.database.database import get_db, User, UserRole
from homitutor.database.redis import redis_client, ADMIN_STATS_KEY
from homitutor.logger import logger, audit_logger
from homitutor.schemas.authentication_schema import (RegisterRequest, RegisterResponse, LoginRequest,
                                                     LoggedInResponse, LoggedOutResponse,
                                                     DecodedAccessToken, DecodedRefreshToken)
from homitutor.schemas.user_schema import UserResponse
from homitutor.auth_tools import (get_current_user, get_refresh_token, hash_password, verify_password,
                                  account_error)
from homitutor.services import otp_service
from homitutor.services.mail import MailError
from homitutor.config import get_settings

# Check if we should use Redis
USE_REDIS = get_settings().use_redis

# Initialize router
router = APIRouter(prefix='/auth')

# Add rate limiting, shared by every router that limits requests
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().rate_limit_enabled)

# Token settings
SECRET_KEY = get_settings().secret_key
ALGORITHM = get_settings().hash_algorithm
TOKEN_EXPIRE_MINUTES = get_settings().access_token_expire_minutes
REFRESH_TOKEN_EXPIRE_DAYS = get_settings().refresh_token_expire_days

# Refresh token store used when Redis is disabled. Tokens do not survive a restart.
refresh_token_store = {}

def create_access_token(user: User, refresh_token_id: str, expires_in=TOKEN_EXPIRE_MINUTES) -> str:
    """Create a new access token with configurable expiration"""
    to_encode = {
        "sub": str(user.id),
        "name": user.full_name,
        "email": user.email,
        "role": user.role.value,
        "logged_in": True,
        "exp": datetime.utcnow() + timedelta(minutes=expires_in),
        "refresh_token_id": refresh_token_id
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def create_refresh_token(user_id: str) -> Tuple[str, str]:
    """Create a refresh token. Returns the token and the token id"""
    token_id = str(uuid.uuid4())
    to_encode = {
        "sub": user_id,
        "exp": datetime.utcnow() + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
        "refresh": True,
        "token_id": token_id
    }
    refresh_token = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    # Store the refresh token
    if USE_REDIS:
        redis_client.set_refresh_token(refresh_token, token_id, REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60) # Expiration in seconds
    else:
        refresh_token_store[token_id] = refresh_token

    return refresh_token, token_id

def issue_tokens(user: User) -> dict:
    """Log a user in: returns the LoggedInResponse payload"""
    refresh_token, refresh_token_id = create_refresh_token(user.id)
    access_token = create_access_token(user, refresh_token_id)
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "status": "logged_in",
        "user": UserResponse.model_validate(user)
    }

def try_send_otp(db: Session, email: str) -> bool:
    """Send a verification code if the resend cooldown allows it. Returns whether a code went out."""
    if otp_service.resend_wait_seconds(db, email) > 0:
        return False
    try:
        otp_service.send_otp(db, email)
        return True
    except MailError as e:
        logger.warning(f"Verification code for {email} could not be mailed: {str(e)}")
        return False

@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit("5/minute")
def register(request: Request, payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Create a new student or tutor account and send a verification code to its email.

    Args:
        request (Request): The request object (used for rate limiting).
        payload (RegisterRequest): The sign up form.
        db (Session): The database session.
    Raises:
        HTTPException: If someone tries to register an admin account (403).
        HTTPException: If the email is already registered (409).
    Returns:
        RegisterResponse: The created (unverified) user and whether the code was sent.
    """
    if payload.role == UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin accounts cannot be created through registration")

    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email is already registered")

    user = User(
        username=payload.username,
        email=email,
        password=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        is_verified=False
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered {user.role.value} {user.email}")
    if USE_REDIS:
        redis_client.delete_cache(ADMIN_STATS_KEY)

    otp_sent = try_send_otp(db, user.email)
    message = ("Registration successful. Please check your email for the verification code."
               if otp_sent else
               "Registration successful, but the verification code could not be sent. Please request a new code.")
    return {"message": message, "otp_sent": otp_sent, "user": user}

@router.post("/login", response_model=LoggedInResponse)
@limiter.limit("10/minute")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    """
    Log in with email and password.

    Raises:
        HTTPException: If the credentials are wrong (401).
        HTTPException: If the account is deactivated (403, code ACCOUNT_DEACTIVATED).
        HTTPException: If the email is not verified yet (403, code ACCOUNT_NOT_VERIFIED).
            A new verification code is sent when the resend cooldown allows it.
    Returns:
        LoggedInResponse: Access and refresh tokens plus the user.
    """
    email = payload.email.lower()
    user = db.query(User).filter(User.email == email).first()

    if not user or not verify_password(payload.password, user.password):
        audit_logger.log_security_event("login_failed", user.id if user else None, {"email": email})
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_active:
        audit_logger.log_security_event("login_blocked", user.id, {"reason": "deactivated"})
        raise account_error("ACCOUNT_DEACTIVATED", "Your account has been deactivated. Please contact an administrator.")

    if not user.is_verified:
        try_send_otp(db, user.email)
        raise account_error("ACCOUNT_NOT_VERIFIED", "Please verify your email before logging in. A verification code has been sent.")

    logger.info(f"Success. User {user.email} logged in.")
    return issue_tokens(user)

@router.post("/refresh", response_model=LoggedInResponse)
def refresh_token(request: Request, db: Session = Depends(get_db), payload: DecodedRefreshToken = Depends(get_refresh_token)):
    """Endpoint to get a new access token using a refresh token"""
    # Validate the refresh token by checking the store
    if USE_REDIS:
        stored = redis_client.get_refresh_token(payload.token_id)
    else:
        stored = refresh_token_store.get(payload.token_id, None)

    # If the refresh token is not found, then it is invalid
    if not stored:
        raise HTTPException(status_code=401, detail="Invalid refresh token. The refresh token may have expired.")

    user = db.query(User).filter(User.id == payload.sub).first()
    if not user:
        raise HTTPException(status_code=401, detail="Invalid refresh token. User no longer exists.")
    if not user.is_active:
        raise account_error("ACCOUNT_DEACTIVATED", "Your account has been deactivated. Please contact an administrator.")

    access_token = create_access_token(user, refresh_token_id=payload.token_id)
    return {"access_token": access_token, "refresh_token": stored, "token_type": "bearer", "status": "logged_in", "user": user}

@router.post("/logout", response_model=LoggedOutResponse)
def logout(request: Request, user: DecodedAccessToken = Depends(get_current_user)):
    # Invalidate the refresh token
    if USE_REDIS:
        redis_client.delete_refresh_token(user.refresh_token_id)
    else:
        refresh_token_store.pop(user.refresh_token_id, None)

    return {"message": "Logged out successfully. Refresh token invalidated.", "status": "logged_out"}

@router.get("/me", response_model=UserResponse)
def me(db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(get_current_user)):
    """The logged in user's account"""
    return db.query(User).filter(User.id == current_user.sub).first()
