"""One-time passcode issuing and verification.

Codes are generated and checked here; delivery goes through the
notification outbox so SMS/email sending never blocks a request.
"""

import logging
import re

from flask import current_app

from identity_api import db
from identity_api.models.otp import OtpRequest, OtpRateLimit, PURPOSE_LOGIN, PURPOSE_PASSWORD_RESET

logger = logging.getLogger(__name__)

CHANNEL_SMS = 'sms'
CHANNEL_EMAIL = 'email'

EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

# (purpose, channel) -> notification task code
TASK_CODES = {
    (PURPOSE_LOGIN, CHANNEL_SMS): 'OTP_SMS',
    (PURPOSE_LOGIN, CHANNEL_EMAIL): 'OTP_EMAIL',
    (PURPOSE_PASSWORD_RESET, CHANNEL_SMS): 'PASSWORD_RESET_SMS',
    (PURPOSE_PASSWORD_RESET, CHANNEL_EMAIL): 'PASSWORD_RESET_EMAIL',
}


def normalize_phone_number(phone: str) -> str:
    """Normalize a phone number to E.164 format.

    Args:
        phone: Phone number in any format

    Returns:
        '+' followed by digits (e.g. '+15551234567'), or None when the input
        holds no digits or is too short/long to be a real number.
    """
    if not phone:
        return None

    phone = str(phone).strip()
    digits = ''.join(c for c in phone if c.isdigit())
    if phone.startswith('00'):
        digits = digits[2:]

    # Bare 10 digit numbers are North American
    if not phone.startswith(('+', '00')) and len(digits) == 10:
        digits = '1' + digits

    if len(digits) < 8 or len(digits) > 15:
        return None

    return '+' + digits


def normalize_email(email: str) -> str:
    if not email:
        return None
    return str(email).strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email) and len(email) <= 255 and bool(EMAIL_REGEX.match(email))


def mask_identifier(identifier: str) -> str:
    """Mask an email or phone number for log output."""
    if not identifier:
        return ''
    if '@' in identifier:
        name, _, domain = identifier.partition('@')
        return f"{name[:2]}***@{domain}"
    return f"{identifier[:3]}***{identifier[-2:]}"


def check_rate_limit(identifier: str) -> tuple:
    """Register a code request against the identifier's counter.

    Returns:
        Tuple of (is_allowed, error_message, retry_after_seconds)
    """
    config = current_app.config
    return OtpRateLimit.hit(
        identifier,
        max_requests=config['OTP_MAX_REQUESTS_PER_WINDOW'],
        window_minutes=config['OTP_RATE_LIMIT_WINDOW_MINUTES'],
        block_minutes=config['OTP_BLOCK_MINUTES'],
        cooldown_seconds=config['OTP_COOLDOWN_SECONDS'],
    )


def send_otp(identifier: str, purpose: str, channel: str, site_key: str = None) -> dict:
    """Issue a code for an already-normalized identifier and queue its delivery.

    Args:
        identifier: normalized email or E.164 phone number
        purpose: PURPOSE_LOGIN or PURPOSE_PASSWORD_RESET
        channel: CHANNEL_SMS or CHANNEL_EMAIL
        site_key: tenant whose templates/sender should be used

    Returns:
        dict with 'success' and either 'message' or 'error' + 'retry_after'.
        The session is committed when the request was counted.
    """
    # Imported here: the notifications service imports this module's helpers
    from identity_api.services.notifications import queue_notification

    is_allowed, error_msg, retry_after = check_rate_limit(identifier)
    if not is_allowed:
        db.session.commit()
        logger.info(f"OTP request rate limited for {mask_identifier(identifier)}")
        return {'success': False, 'error': error_msg, 'retry_after': retry_after}

    otp = OtpRequest.issue(identifier, purpose, current_app.config['OTP_EXPIRY_MINUTES'])

    queue_notification(
        TASK_CODES[(purpose, channel)],
        to=identifier,
        data={
            'code': otp.code,
            'expiry_minutes': current_app.config['OTP_EXPIRY_MINUTES'],
            'site_key': site_key,
        },
        site_key=site_key,
        priority=1,
    )
    db.session.commit()

    logger.info(f"OTP issued for {mask_identifier(identifier)} purpose={purpose} channel={channel}")
    return {'success': True, 'message': 'Verification code sent'}


def verify_otp(identifier: str, code: str, purpose: str, consume: bool = True) -> dict:
    """Check a code against the latest active request for the identifier.

    Every wrong guess counts; once OTP_MAX_VERIFY_ATTEMPTS is reached the
    request is burnt and a new code must be requested.

    Args:
        consume: mark the code used on success. Pass False to check a code
            that will be presented again in a later step.

    Returns:
        dict with 'success' and 'error' on failure. The session is committed.
    """
    if not code or not str(code).strip().isdigit():
        return {'success': False, 'error': 'Invalid verification code'}

    otp = OtpRequest.latest_active(identifier, purpose)
    if otp is None:
        return {'success': False, 'error': 'Verification code expired or not found. Request a new one.'}

    max_attempts = current_app.config['OTP_MAX_VERIFY_ATTEMPTS']

    if not otp.matches(str(code).strip()):
        otp.attempt_count += 1
        if otp.attempt_count >= max_attempts:
            otp.is_used = True
            db.session.commit()
            logger.info(f"OTP burnt after {otp.attempt_count} attempts for {mask_identifier(identifier)}")
            return {'success': False, 'error': 'Too many incorrect attempts. Request a new code.'}
        db.session.commit()
        return {'success': False, 'error': 'Invalid verification code'}

    if consume:
        otp.is_used = True
        db.session.commit()

    return {'success': True}


def cleanup_expired() -> int:
    """Delete expired and used codes. Returns the number of rows removed."""
    deleted = OtpRequest.cleanup_expired()
    logger.info(f"Removed {deleted} expired OTP requests")
    return deleted
