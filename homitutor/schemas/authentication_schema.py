from pydantic import BaseModel, EmailStr, StringConstraints, field_validator
from typing import Annotated, Optional
from datetime import datetime
from bleach import clean
from homitutor.database.database import UserRole
from homitutor.schemas.user_schema import UserResponse

class RegisterRequest(BaseModel):
    """Sign-up data. Admin accounts are never created through this form."""
    username: Annotated[str, StringConstraints(min_length=3, max_length=50, strip_whitespace=True)]
    email: EmailStr
    password: Annotated[str, StringConstraints(min_length=6, max_length=128)]
    first_name: Annotated[str, StringConstraints(min_length=2, max_length=50, strip_whitespace=True)]
    last_name: Annotated[str, StringConstraints(min_length=2, max_length=50, strip_whitespace=True)]
    role: UserRole = UserRole.STUDENT

    @field_validator('username', 'first_name', 'last_name')
    def sanitize_names(cls, v):
        return clean(v, tags=set(), strip=True)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class RegisterResponse(BaseModel):
    """Sign-up response data"""
    message: str
    otp_sent: bool
    user: UserResponse

class LoggedInResponse(BaseModel):
    """Authentication response data"""
    access_token: str
    refresh_token: str
    token_type: str
    status: str
    user: Optional[UserResponse] = None

class LoggedOutResponse(BaseModel):
    """Logout response data"""
    message: str
    status: str

class DecodedAccessToken(BaseModel):
    """
    Decoded access token data
        Args:
        - sub (str): User ID
        - name (str): User full name
        - email (str): User email
        - role (str): User role
        - logged_in (bool): User logged in status
        - exp (int): Token expiration time
        - refresh_token_id (str): ID of the refresh token issued with this access token
    """
    sub: str
    name: str
    email: str
    role: str
    logged_in: bool
    exp: int
    refresh_token_id: str

class DecodedRefreshToken(BaseModel):
    """
    Decoded refresh token data
        Args:
        - sub (str): User ID
        - exp (int): Token expiration time
        - token_id (str): Token ID
        - refresh (bool): Refresh token status
    """
    sub: str
    exp: int
    token_id: str
    refresh: bool

######################
### OTP SCHEMAS ###
######################

class OtpRequest(BaseModel):
    email: EmailStr

class OtpVerifyRequest(BaseModel):
    email: EmailStr
    otp: Annotated[str, StringConstraints(pattern=r'^\d{6}$')]

class OtpInfo(BaseModel):
    created_at: datetime
    expires_at: datetime
    seconds_elapsed: int
    seconds_remaining: int
    used: bool
    expired: bool

class OtpStatusResponse(BaseModel):
    email: str
    is_verified: bool
    latest_otp: Optional[OtpInfo] = None
    active_otp_count: int
    can_request_new_otp: bool
    seconds_until_resend: int

class MessageResponse(BaseModel):
    """Plain acknowledgement"""
    message: str
