from typing import Any, Iterable
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from datetime import datetime
from homitutor.logger import logger, audit_logger
from homitutor.database.database import UserRole, User, get_db
from homitutor.schemas.authentication_schema import DecodedAccessToken, DecodedRefreshToken
from homitutor.config import get_settings

# CONSTANTS
SECRET_KEY = get_settings().secret_key
ALGORITHM = get_settings().hash_algorithm

# security scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{get_settings().api_prefix}/auth/login")

# Passwords and one time codes are only ever stored hashed
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def account_error(code: str, message: str) -> HTTPException:
    """403 with a machine readable code the client can branch on"""
    return HTTPException(status_code=403, detail={"code": code, "message": message})

##################################
### AUTHORIZATION DEPENDENCIES ###
##################################

def decode_access_token(token: str) -> DecodedAccessToken:
    """
    Decode and validate an access token.

    Args:
    - token (str): The user's token

    Returns:
    - DecodedAccessToken: The token payload
    """
    try:
        payload : dict[str, Any] = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.error(f"Error decoding token: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token. Could not decode token.")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token. Missing user ID.")

    if payload.get("refresh"):
        raise HTTPException(status_code=401, detail="Invalid token. Refresh token provided.")

    if payload.get("logged_in") is False:
        raise HTTPException(status_code=401, detail="User is not logged in.")

    # Check if token has expired
    if payload.get("exp", 0) < int(datetime.now().timestamp()):
        raise HTTPException(status_code=401, detail="Token has expired.")

    return DecodedAccessToken(**payload)

def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> DecodedAccessToken:
    """
    Get the current user from the token.
    The account is re-read on every request so deactivation takes effect immediately.

    Args:
    - token (str): The user's token
    - db (Session): The database session

    Returns:
    - DecodedAccessToken: The user's token data
    """
    current_user = decode_access_token(token)

    user = db.query(User).filter(User.id == current_user.sub).first()
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token. User no longer exists.")

    if not user.is_active:
        raise account_error("ACCOUNT_DEACTIVATED", "Your account has been deactivated. Please contact an administrator.")

    return current_user

def get_refresh_token(token: str = Depends(oauth2_scheme)) -> DecodedRefreshToken:
    """
    Get the refresh token from the token.

    Args:
    - token (str): The user's token

    Returns:
    - DecodedRefreshToken: The refresh token payload
    """
    try:
        payload : dict[str, Any] = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.error(f"Error decoding token: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token. Could not decode token.")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token. Missing user ID.")

    if not payload.get("refresh"):
        raise HTTPException(status_code=401, detail="Invalid token. Not a refresh token.")

    # Check if token has expired
    if payload.get("exp", 0) < int(datetime.now().timestamp()):
        raise HTTPException(status_code=401, detail="Token has expired.")

    return DecodedRefreshToken(**payload)

def verify_user_role(user: DecodedAccessToken, allowed_roles: Iterable[UserRole]) -> DecodedAccessToken:
    """
    Verify that the user has the required role.

    Args:
    - user (DecodedAccessToken): The user's data
    - allowed_roles (list): List of allowed roles

    Returns:
    - DecodedAccessToken: The same user, when allowed
    """
    allowed = [role.value for role in allowed_roles]
    if not user or user.role not in allowed:
        audit_logger.log_security_event("role_denied", user.sub if user else None, {"role": user.role if user else None, "allowed": allowed})
        raise HTTPException(status_code=403,
                            detail=f"User must have one of these roles: {allowed}")

    return user

def require_roles(*roles: UserRole):
    def dependency(current_user: DecodedAccessToken = Depends(get_current_user)) -> DecodedAccessToken:
        return verify_user_role(current_user, roles)
    return dependency

def student_only(current_user: DecodedAccessToken = Depends(get_current_user)) -> DecodedAccessToken:
    """Verify that the user is a student"""
    return verify_user_role(current_user, [UserRole.STUDENT])

def tutor_only(current_user: DecodedAccessToken = Depends(get_current_user)) -> DecodedAccessToken:
    """Verify that the user is a tutor """
    return verify_user_role(current_user, [UserRole.TUTOR])

def admin_only(current_user: DecodedAccessToken = Depends(get_current_user)) -> DecodedAccessToken:
    """Verify that the user is an admin """
    return verify_user_role(current_user, [UserRole.ADMIN])
