"""JWT issuance and validation for the shared identity token."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from flask import current_app

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'


@dataclass
class TokenClaims:
    """The parts of a validated token the API cares about."""
    user_id: int
    email: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[str] = None
    sites: List[str] = field(default_factory=list)
    jti: Optional[str] = None

    @property
    def is_admin(self):
        return self.role == 'SU'


def generate_token(user, include_sites=True) -> str:
    """
    Sign a token for a user.

    Args:
        user: User model instance (must have an id)
        include_sites: add the user's active site keys as the `sites` claim

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user.id),
        'jti': str(uuid.uuid4()),
        'iss': current_app.config['JWT_ISSUER'],
        'aud': current_app.config['JWT_AUDIENCE'],
        'iat': now,
        'exp': now + timedelta(minutes=current_app.config['JWT_EXPIRATION_MINUTES']),
    }

    if user.email:
        payload['email'] = user.email
    if user.phone_number:
        payload['phone_number'] = user.phone_number
    if user.system_role:
        payload['role'] = user.system_role

    if include_sites:
        sites = user.active_site_keys()
        if sites:
            payload['sites'] = sites

    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=ALGORITHM)


def validate_token(token) -> Optional[TokenClaims]:
    """
    Verify a token's signature, issuer, audience and expiry.

    Returns:
        TokenClaims, or None when the token is missing, malformed, expired
        or signed by someone else.
    """
    if not token:
        return None

    try:
        payload = jwt.decode(
            token,
            current_app.config['JWT_SECRET_KEY'],
            algorithms=[ALGORITHM],
            audience=current_app.config['JWT_AUDIENCE'],
            issuer=current_app.config['JWT_ISSUER'],
            leeway=0,
            options={'require': ['exp', 'sub', 'iss', 'aud']},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired token")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected invalid token: {e}")
        return None

    try:
        user_id = int(payload['sub'])
    except (TypeError, ValueError):
        return None

    sites = payload.get('sites') or []
    if isinstance(sites, str):
        sites = [sites]

    return TokenClaims(
        user_id=user_id,
        email=payload.get('email'),
        phone_number=payload.get('phone_number'),
        role=payload.get('role'),
        sites=list(sites),
        jti=payload.get('jti'),
    )
