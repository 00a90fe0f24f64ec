"""Auth routes package.

This package organizes authentication-related routes into logical submodules:
- core: Registration, login, current user, token validation, site join
- otp: Phone OTP login (send, verify)
- password: Password reset flow (send, verify, complete, quick register)
"""

from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

# Import all route modules (registers routes on auth_bp)
from identity_api.routes.auth import core  # noqa: E402,F401
from identity_api.routes.auth import otp  # noqa: E402,F401
from identity_api.routes.auth import password  # noqa: E402,F401
