"""Wipe and rebuild the local identity database.

Drops every model table (and the alembic_version marker), recreates the
schema from the models and stamps the migration head so `flask db upgrade`
stays a no-op afterwards. Refuses to touch a production config.

Usage:
    python reset_db.py            # asks for confirmation
    python reset_db.py --yes      # no prompt, for scripted dev setups
"""

import os
import sys

from flask_migrate import stamp
from sqlalchemy import text

from identity_api import create_app, db

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'migrations')


def reset_database(config_name):
    app = create_app(config_name)

    with app.app_context():
        print(f"Database URI: {app.config['SQLALCHEMY_DATABASE_URI']}")

        print("Dropping model tables...")
        db.drop_all()
        db.session.execute(text('DROP TABLE IF EXISTS alembic_version'))
        db.session.commit()

        print("Creating tables from models...")
        db.create_all()

        print("Stamping migration head...")
        stamp(directory=MIGRATIONS_DIR)

    print(f"Reset done. {len(db.metadata.sorted_tables)} tables recreated.")


if __name__ == '__main__':
    config_name = os.getenv('FLASK_ENV', 'development')
    if config_name == 'production':
        print("Refusing to reset a production database.")
        sys.exit(1)

    if '--yes' not in sys.argv[1:]:
        print(f"This deletes ALL data in the {config_name} database.")
        if input("Type 'yes' to continue: ").strip().lower() != 'yes':
            print("Aborted.")
            sys.exit(0)

    reset_database(config_name)
