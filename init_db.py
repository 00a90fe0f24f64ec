#!/usr/bin/env python
"""Database initialization script for the identity API.

Creates all tables from the SQLAlchemy models. Use `flask db upgrade` for
databases managed by migrations; this is for quick local setups.

Usage:
    python init_db.py
"""

import os
import sys
from identity_api import create_app, db

TABLES_INFO = [
    ("users", "User accounts and authentication"),
    ("sites", "Sites sharing the identity service"),
    ("user_sites", "Site membership per user"),
    ("otp_requests", "One-time password codes"),
    ("otp_rate_limits", "OTP send throttling"),
    ("assets", "Uploaded files"),
    ("settings", "Logo, terms and privacy content"),
    ("countries", "Geo reference: countries"),
    ("province_states", "Geo reference: provinces and states"),
    ("cities", "Geo reference: cities"),
    ("addresses", "Geocoded street addresses"),
    ("api_clients", "Partner API keys"),
    ("mail_profiles", "SMTP sender profiles"),
    ("notification_templates", "Email/SMS templates"),
    ("notification_tasks", "Named notifications"),
    ("notification_outbox", "Queued notifications"),
    ("notification_history", "Delivery log"),
    ("subscriptions", "Site subscriptions"),
    ("payments", "Payments"),
]


def init_database():
    """Initialize the database by creating all tables."""
    config_name = os.getenv('FLASK_ENV', 'development')
    app = create_app(config_name)

    print(f"\n{'='*60}")
    print(f"Database Initialization for {config_name.upper()} Environment")
    print(f"{'='*60}\n")

    with app.app_context():
        try:
            print("Creating database tables...")
            print(f"Database URI: {app.config['SQLALCHEMY_DATABASE_URI']}\n")

            db.create_all()

            print("Created tables:")
            for table_name, description in TABLES_INFO:
                print(f"  - {table_name:<25} {description}")

            print(f"\n{'='*60}")
            print("Database initialization complete!")
            print(f"{'='*60}\n")
            print("Next steps:")
            print("  1. Create an admin: python scripts/create_admin.py admin@example.com <password>")
            print("  2. Seed geo data:   python scripts/seed_geo.py")
            print("  3. Start the server: python wsgi.py\n")
            return True

        except Exception as e:
            print(f"Error creating database: {type(e).__name__}: {e}\n")
            return False


if __name__ == '__main__':
    success = init_database()
    sys.exit(0 if success else 1)
