"""One-time passcode rows and the per-identifier request counter."""

import hmac
import secrets
from datetime import datetime, timedelta
from identity_api import db

PURPOSE_LOGIN = 'login'
PURPOSE_PASSWORD_RESET = 'password_reset'
OTP_PURPOSES = (PURPOSE_LOGIN, PURPOSE_PASSWORD_RESET)


def generate_otp_code(length=6):
    """Generate a numeric OTP code."""
    return ''.join(str(secrets.randbelow(10)) for _ in range(length))


class OtpRequest(db.Model):
    """A code sent to an email address or phone number."""

    __tablename__ = 'otp_requests'
    __table_args__ = (
        db.Index('ix_otp_requests_identifier_purpose', 'identifier', 'purpose'),
    )

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(255), nullable=False)  # email or E.164 phone
    code = db.Column(db.String(6), nullable=False)
    purpose = db.Column(db.String(20), default=PURPOSE_LOGIN, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    is_used = db.Column(db.Boolean, default=False, nullable=False)
    attempt_count = db.Column(db.Integer, default=0, nullable=False)

    @classmethod
    def issue(cls, identifier, purpose, expires_in_minutes):
        """
        Create a new code for an identifier.
        Invalidates any unused codes for the same identifier and purpose.
        """
        cls.query.filter_by(identifier=identifier, purpose=purpose, is_used=False).update({'is_used': True})

        otp = cls(
            identifier=identifier,
            purpose=purpose,
            code=generate_otp_code(),
            expires_at=datetime.utcnow() + timedelta(minutes=expires_in_minutes)
        )
        db.session.add(otp)
        db.session.flush()
        return otp

    @classmethod
    def latest_active(cls, identifier, purpose):
        return cls.query.filter(
            cls.identifier == identifier,
            cls.purpose == purpose,
            cls.is_used == False,  # noqa: E712
            cls.expires_at > datetime.utcnow()
        ).order_by(cls.created_at.desc(), cls.id.desc()).first()

    def matches(self, code):
        return hmac.compare_digest(self.code, str(code))

    @property
    def is_expired(self):
        return self.expires_at <= datetime.utcnow()

    @classmethod
    def cleanup_expired(cls):
        """
        Remove expired and used codes.
        Returns the number of deleted rows.
        """
        deleted = cls.query.filter(
            (cls.expires_at < datetime.utcnow()) | (cls.is_used == True)  # noqa: E712
        ).delete(synchronize_session=False)
        db.session.commit()
        return deleted

    def __repr__(self):
        return f'<OtpRequest {self.id} purpose={self.purpose} expires_at={self.expires_at}>'


class OtpRateLimit(db.Model):
    """Counts code requests per identifier inside a rolling window."""

    __tablename__ = 'otp_rate_limits'

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(255), unique=True, nullable=False, index=True)
    request_count = db.Column(db.Integer, default=0, nullable=False)
    window_start = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    blocked_until = db.Column(db.DateTime, nullable=True)
    last_request_at = db.Column(db.DateTime, nullable=True)

    @classmethod
    def hit(cls, identifier, max_requests, window_minutes, block_minutes, cooldown_seconds):
        """
        Register a code request for an identifier.

        Returns:
            Tuple of (is_allowed, error_message, retry_after_seconds).
            The counter is only incremented when the request is allowed.
        """
        now = datetime.utcnow()
        limit = cls.query.filter_by(identifier=identifier).first()

        if limit is None:
            limit = cls(identifier=identifier, request_count=0, window_start=now)
            db.session.add(limit)

        if limit.blocked_until and limit.blocked_until > now:
            retry_after = int((limit.blocked_until - now).total_seconds()) + 1
            return False, 'Too many verification requests. Please try again later.', retry_after

        if limit.blocked_until or now - limit.window_start > timedelta(minutes=window_minutes):
            limit.request_count = 0
            limit.window_start = now
            limit.blocked_until = None

        if limit.last_request_at and (now - limit.last_request_at).total_seconds() < cooldown_seconds:
            retry_after = int(cooldown_seconds - (now - limit.last_request_at).total_seconds()) + 1
            return False, f'Please wait {retry_after} seconds before requesting another code', retry_after

        if limit.request_count >= max_requests:
            limit.blocked_until = now + timedelta(minutes=block_minutes)
            db.session.flush()
            return False, 'Too many verification requests. Please try again later.', block_minutes * 60

        limit.request_count += 1
        limit.last_request_at = now
        db.session.flush()
        return True, None, 0

    def __repr__(self):
        return f'<OtpRateLimit {self.identifier} count={self.request_count}>'
