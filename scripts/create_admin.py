#!/usr/bin/env python3
"""Create a super user, or promote an existing account.

Usage:
    python scripts/create_admin.py <email> <password>
"""

import sys
import os

# Add parent directory to path to import identity_api
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from identity_api import create_app, db  # noqa: E402
from identity_api.models import User  # noqa: E402
from identity_api.models.user import ADMIN_ROLE  # noqa: E402
from identity_api.routes.auth.core import validate_password  # noqa: E402
from identity_api.services.otp_service import normalize_email, is_valid_email  # noqa: E402


def create_admin(email: str, password: str) -> bool:
    email = normalize_email(email)
    if not is_valid_email(email):
        print(f"Invalid email address: {email}")
        return False

    error = validate_password(password)
    if error:
        print(error)
        return False

    app = create_app()
    with app.app_context():
        try:
            user = User.query.filter_by(email=email).first()
            if user:
                print(f"Promoting existing user {user.id} ({email})")
            else:
                user = User(email=email, is_email_verified=True)
                db.session.add(user)
                print(f"Creating user {email}")

            user.set_password(password)
            user.system_role = ADMIN_ROLE
            user.is_active = True
            db.session.commit()

            print(f"\nAdmin ready: {email} (ID: {user.id})")
            return True
        except Exception as e:
            db.session.rollback()
            print(f"Error creating admin: {e}")
            return False


if __name__ == '__main__':
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    sys.exit(0 if create_admin(sys.argv[1], sys.argv[2]) else 1)
