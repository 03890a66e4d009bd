"""
One time passwords for email verification.

Codes are six digits, stored hashed, valid for OTP_EXPIRE_MINUTES and can be
re-requested once every OTP_RESEND_SECONDS. Issuing a new code invalidates every
older code for the same address.
"""
import secrets
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from homitutor.auth_tools import pwd_context
from homitutor.config import get_settings
from homitutor.database.database import EmailOtp
from homitutor.logger import logger
from homitutor.services.mail import send_otp_mail

OTP_EXPIRE_MINUTES = get_settings().otp_expire_minutes
OTP_RESEND_SECONDS = get_settings().otp_resend_seconds

def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"

def latest_otp(db: Session, email: str) -> Optional[EmailOtp]:
    return db.query(EmailOtp).filter(EmailOtp.email == email).order_by(EmailOtp.created_at.desc()).first()

def resend_wait_seconds(db: Session, email: str) -> int:
    """Seconds left before a new code may be requested, 0 when allowed now"""
    last = latest_otp(db, email)
    if not last:
        return 0
    elapsed = (datetime.now() - last.created_at).total_seconds()
    return max(0, int(OTP_RESEND_SECONDS - elapsed))

def invalidate_otps(db: Session, email: str):
    db.query(EmailOtp).filter(EmailOtp.email == email, EmailOtp.used.is_(False)).update(
        {EmailOtp.used: True}, synchronize_session=False
    )

def create_otp(db: Session, email: str) -> str:
    """Store a fresh hashed code for the address and return the plain code"""
    invalidate_otps(db, email)
    otp = generate_otp()
    db.add(EmailOtp(
        email=email,
        otp=pwd_context.hash(otp),
        expires_at=datetime.now() + timedelta(minutes=OTP_EXPIRE_MINUTES)
    ))
    db.commit()
    return otp

def send_otp(db: Session, email: str):
    """
    Create a code and mail it.

    Raises:
        MailError: If the email could not be sent. The code stays stored, so a
        later resend (after the cooldown) replaces it.
    """
    otp = create_otp(db, email)
    send_otp_mail(email, otp, OTP_EXPIRE_MINUTES)
    logger.info(f"Verification code issued for {email}")

def verify_otp(db: Session, email: str, otp: str) -> bool:
    """
    Check a code against the newest unused, unexpired code for the address.
    On success every code of the address is marked used.
    """
    record = db.query(EmailOtp).filter(
        EmailOtp.email == email,
        EmailOtp.used.is_(False),
        EmailOtp.expires_at > datetime.now()
    ).order_by(EmailOtp.created_at.desc()).first()

    if not record or not pwd_context.verify(otp, record.otp):
        return False

    invalidate_otps(db, email)
    return True

def otp_status(db: Session, email: str) -> dict:
    """Timing information about the codes issued for an address"""
    now = datetime.now()
    last = latest_otp(db, email)
    active_count = db.query(EmailOtp).filter(
        EmailOtp.email == email,
        EmailOtp.used.is_(False),
        EmailOtp.expires_at > now
    ).count()

    latest = None
    if last:
        latest = {
            "created_at": last.created_at,
            "expires_at": last.expires_at,
            "seconds_elapsed": int((now - last.created_at).total_seconds()),
            "seconds_remaining": max(0, int((last.expires_at - now).total_seconds())),
            "used": last.used,
            "expired": last.expires_at <= now,
        }

    wait = resend_wait_seconds(db, email)
    return {
        "latest_otp": latest,
        "active_otp_count": active_count,
        "can_request_new_otp": wait == 0,
        "seconds_until_resend": wait,
    }
