"""Flask CLI commands (run with `flask --app wsgi <group> <command>`)."""

import click
from flask.cli import AppGroup

notifications_cli = AppGroup('notifications', help='Notification outbox commands.')
otp_cli = AppGroup('otp', help='One-time password maintenance.')


@notifications_cli.command('dispatch')
@click.option('--limit', default=50, show_default=True, help='Maximum rows to send.')
def dispatch_notifications(limit):
    """Send due notification outbox rows."""
    from identity_api.services.notifications import dispatch_pending

    result = dispatch_pending(limit=limit)
    click.echo(f"Sent: {result['sent']}  Retrying: {result['retrying']}  Failed: {result['failed']}")


@otp_cli.command('cleanup')
def cleanup_otps():
    """Delete expired and used OTP codes."""
    from identity_api.services.otp_service import cleanup_expired

    deleted = cleanup_expired()
    click.echo(f"Deleted {deleted} OTP rows")


def register_commands(app):
    app.cli.add_command(notifications_cli)
    app.cli.add_command(otp_cli)
