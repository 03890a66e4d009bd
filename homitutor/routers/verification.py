"""
Email verification router. Sends, checks and reports on one time codes.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import EmailStr
from sqlalchemy.orm import Session
from homitutor.database.database import get_db, User
from homitutor.logger import logger, audit_logger
from homitutor.routers.authentication import limiter
from homitutor.schemas.authentication_schema import OtpRequest, OtpVerifyRequest, OtpStatusResponse, MessageResponse
from homitutor.services import otp_service
from homitutor.services.mail import MailError

router = APIRouter(prefix='/verify')

def get_user_by_email(db: Session, email: str) -> User:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user:
        raise HTTPException(status_code=404, detail="No account is registered with this email")
    return user

@router.post('/send-otp', response_model=MessageResponse)
@limiter.limit("5/minute")
def send_otp(request: Request, payload: OtpRequest, db: Session = Depends(get_db)):
    """
    Send a new verification code.

    Raises:
        HTTPException: If the email is unknown (404).
        HTTPException: If the account is already verified (400).
        HTTPException: If a code was requested less than OTP_RESEND_SECONDS ago (429).
        HTTPException: If the email could not be sent (503).
    """
    user = get_user_by_email(db, payload.email)
    if user.is_verified:
        raise HTTPException(status_code=400, detail="Account is already verified")

    wait = otp_service.resend_wait_seconds(db, user.email)
    if wait > 0:
        raise HTTPException(status_code=429, detail=f"Please wait {wait} seconds before requesting a new code")

    try:
        otp_service.send_otp(db, user.email)
    except MailError:
        raise HTTPException(status_code=503, detail="Could not send the verification email. Please try again later.")

    return {"message": "Verification code sent"}

@router.post('/verify-otp', response_model=MessageResponse)
@limiter.limit("10/minute")
def verify_otp(request: Request, payload: OtpVerifyRequest, db: Session = Depends(get_db)):
    """
    Verify an account with the code from the email.

    Raises:
        HTTPException: If the email is unknown (404).
        HTTPException: If the code is wrong, used or expired (400).
    """
    user = get_user_by_email(db, payload.email)
    if user.is_verified:
        return {"message": "Account is already verified"}

    if not otp_service.verify_otp(db, user.email, payload.otp):
        audit_logger.log_security_event("otp_failed", user.id, {"email": user.email})
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")

    user.is_verified = True
    db.commit()
    logger.info(f"Account {user.email} verified")
    return {"message": "Account verified successfully"}

@router.get('/otp-status', response_model=OtpStatusResponse)
def otp_status(email: EmailStr, db: Session = Depends(get_db)):
    """Debugging aid: state of the codes issued to an address"""
    user = get_user_by_email(db, email)
    status = otp_service.otp_status(db, user.email)
    return {"email": user.email, "is_verified": user.is_verified, **status}
