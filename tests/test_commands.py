"""
Tests for the Flask CLI commands.
"""

from datetime import datetime, timedelta

from identity_api import db
from identity_api.models import NotificationOutbox, OtpRequest
from identity_api.models.notification import OutboxStatus
from identity_api.services.notifications import queue_notification


class TestNotificationCommands:

    def test_dispatch(self, app, db_session):
        queue_notification('OTP_EMAIL', to='a@example.com', data={'code': '1', 'expiry_minutes': 10})
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['notifications', 'dispatch', '--limit', '10'])

        assert result.exit_code == 0
        assert 'Sent: 1' in result.output
        assert NotificationOutbox.query.one().status == OutboxStatus.SENT

    def test_dispatch_nothing_due(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['notifications', 'dispatch'])

        assert result.exit_code == 0
        assert 'Sent: 0' in result.output


class TestOtpCommands:

    def test_cleanup(self, app, db_session):
        db.session.add_all([
            OtpRequest(identifier='+15551234567', code='111111',
                       expires_at=datetime.utcnow() - timedelta(minutes=1)),
            OtpRequest(identifier='+15551234567', code='222222', is_used=True,
                       expires_at=datetime.utcnow() + timedelta(minutes=5)),
            OtpRequest(identifier='+15551234567', code='333333',
                       expires_at=datetime.utcnow() + timedelta(minutes=5)),
        ])
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['otp', 'cleanup'])

        assert result.exit_code == 0
        assert 'Deleted 2 OTP rows' in result.output
        assert [otp.code for otp in OtpRequest.query.all()] == ['333333']
