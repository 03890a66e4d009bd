"""
Outgoing email. Only used for account verification codes.
With MAIL_ENABLED=False nothing is sent and only the recipient and subject are logged.
"""
import smtplib
from email.message import EmailMessage
from homitutor.config import get_settings
from homitutor.logger import logger

class MailError(Exception):
    """Raised when the SMTP server refuses or cannot be reached"""

def send_mail(to: str, subject: str, body: str, html: str = None):
    """
    Send a single email.

    Args:
        to (str): Recipient address
        subject (str): Subject line
        body (str): Plain text body
        html (str): Optional HTML alternative

    Raises:
        MailError: If the message could not be delivered to the SMTP server
    """
    settings = get_settings()
    if not settings.mail_enabled:
        logger.info(f"Mail disabled, not sending '{subject}' to {to}")
        return

    message = EmailMessage()
    message["From"] = settings.mail_from
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)
    if html:
        message.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(settings.mail_host, settings.mail_port, timeout=10) as smtp:
            if settings.mail_use_tls:
                smtp.starttls()
            if settings.mail_username:
                smtp.login(settings.mail_username, settings.mail_password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send mail to {to}: {str(e)}")
        raise MailError(str(e)) from e

    logger.info(f"Sent '{subject}' to {to}")

def send_otp_mail(to: str, otp: str, expire_minutes: int):
    """Send the account verification code"""
    body = (
        f"Your HomiTutor verification code is {otp}.\n"
        f"The code expires in {expire_minutes} minutes. If you did not request it, ignore this email."
    )
    html = (
        f"<p>Your HomiTutor verification code is <strong>{otp}</strong>.</p>"
        f"<p>The code expires in {expire_minutes} minutes. If you did not request it, ignore this email.</p>"
    )
    send_mail(to, "HomiTutor verification code", body, html)
