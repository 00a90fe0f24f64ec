"""
Tests for the password reset and quick registration flow.
"""

from faker import Faker

from identity_api import db
from identity_api.models import User
from identity_api.models.notification import NotificationOutbox
from identity_api.models.otp import OtpRequest, OtpRateLimit, PURPOSE_PASSWORD_RESET

fake = Faker()


def _reset_code(identifier):
    return OtpRequest.latest_active(identifier, PURPOSE_PASSWORD_RESET).code


class TestPasswordResetSend:

    def test_send_to_existing_email(self, client, test_user):
        response = client.post('/auth/password-reset/send', json={'email': test_user['email']})

        assert response.status_code == 200
        assert response.json['success'] is True
        outbox = NotificationOutbox.query.one()
        assert outbox.task_code == 'PASSWORD_RESET_EMAIL'
        assert outbox.subject == 'Reset your password'

    def test_send_to_unknown_email_looks_the_same(self, client, test_user):
        known = client.post('/auth/password-reset/send', json={'email': test_user['email']})
        unknown = client.post('/auth/password-reset/send', json={'email': fake.email()})

        assert unknown.status_code == 200
        assert unknown.json == known.json

    def test_send_to_phone_uses_sms(self, client, db_session):
        response = client.post('/auth/password-reset/send', json={'phoneNumber': '5559876543'})

        assert response.status_code == 200
        assert NotificationOutbox.query.one().task_code == 'PASSWORD_RESET_SMS'

    def test_send_requires_identifier(self, client, db_session):
        response = client.post('/auth/password-reset/send', json={})
        assert response.status_code == 400

    def test_send_invalid_email(self, client, db_session):
        response = client.post('/auth/password-reset/send', json={'email': 'bad'})
        assert response.status_code == 400

    def test_send_again_within_cooldown(self, client, test_user):
        client.post('/auth/password-reset/send', json={'email': test_user['email']})
        response = client.post('/auth/password-reset/send', json={'email': test_user['email']})

        assert response.status_code == 429
        assert response.json['success'] is False
        assert int(response.headers['Retry-After']) > 0
        assert NotificationOutbox.query.count() == 1

    def test_send_blocked_after_window_limit(self, app, client, test_user):
        cooldown = app.config['OTP_COOLDOWN_SECONDS']
        app.config['OTP_COOLDOWN_SECONDS'] = 0
        try:
            for _ in range(app.config['OTP_MAX_REQUESTS_PER_WINDOW']):
                ok = client.post('/auth/password-reset/send', json={'email': test_user['email']})
                assert ok.status_code == 200

            response = client.post('/auth/password-reset/send', json={'email': test_user['email']})
        finally:
            app.config['OTP_COOLDOWN_SECONDS'] = cooldown

        assert response.status_code == 429
        assert int(response.headers['Retry-After']) == app.config['OTP_BLOCK_MINUTES'] * 60
        limit = OtpRateLimit.query.filter_by(identifier=test_user['email']).one()
        assert limit.blocked_until is not None


class TestPasswordResetVerify:

    def test_verify_reports_account_exists(self, client, test_user):
        client.post('/auth/password-reset/send', json={'email': test_user['email']})
        code = _reset_code(test_user['email'])

        response = client.post('/auth/password-reset/verify', json={'email': test_user['email'], 'code': code})

        assert response.status_code == 200
        assert response.json['accountExists'] is True
        # Verify does not use up the code
        assert _reset_code(test_user['email']) == code

    def test_verify_unknown_account(self, client, db_session):
        email = fake.email().lower()
        client.post('/auth/password-reset/send', json={'email': email})

        response = client.post('/auth/password-reset/verify', json={'email': email, 'code': _reset_code(email)})

        assert response.status_code == 200
        assert response.json['accountExists'] is False

    def test_verify_wrong_code(self, client, test_user):
        client.post('/auth/password-reset/send', json={'email': test_user['email']})
        code = _reset_code(test_user['email'])
        wrong = '000000' if code != '000000' else '111111'

        response = client.post('/auth/password-reset/verify', json={'email': test_user['email'], 'code': wrong})
        assert response.status_code == 400


class TestPasswordResetComplete:

    def test_complete_sets_new_password(self, client, test_user):
        client.post('/auth/password-reset/send', json={'email': test_user['email']})
        code = _reset_code(test_user['email'])

        response = client.post('/auth/password-reset/complete', json={
            'email': test_user['email'],
            'code': code,
            'newPassword': 'brandnewpassword',
        })

        assert response.status_code == 200
        login = client.post('/auth/login', json={'email': test_user['email'], 'password': 'brandnewpassword'})
        assert login.status_code == 200
        assert db.session.get(User, test_user['id']).is_email_verified is True

        # The code is single use
        again = client.post('/auth/password-reset/complete', json={
            'email': test_user['email'],
            'code': code,
            'newPassword': 'anotherpassword',
        })
        assert again.status_code == 400

    def test_complete_unknown_account(self, client, db_session):
        email = fake.email().lower()
        client.post('/auth/password-reset/send', json={'email': email})

        response = client.post('/auth/password-reset/complete', json={
            'email': email,
            'code': _reset_code(email),
            'newPassword': 'brandnewpassword',
        })
        assert response.status_code == 404

    def test_complete_short_password(self, client, test_user):
        client.post('/auth/password-reset/send', json={'email': test_user['email']})

        response = client.post('/auth/password-reset/complete', json={
            'email': test_user['email'],
            'code': _reset_code(test_user['email']),
            'newPassword': '123',
        })
        assert response.status_code == 400


class TestQuickRegister:

    def test_register_with_reset_code(self, client, db_session):
        phone = '+15557654321'
        client.post('/auth/password-reset/send', json={'phoneNumber': phone})

        response = client.post('/auth/password-reset/register', json={
            'phoneNumber': phone,
            'code': _reset_code(phone),
            'password': 'quickpassword',
        })

        assert response.status_code == 201
        assert response.json['token']
        assert response.json['user']['phoneNumber'] == phone
        assert response.json['user']['isPhoneVerified'] is True

        login = client.post('/auth/login', json={'phoneNumber': phone, 'password': 'quickpassword'})
        assert login.status_code == 200

    def test_register_existing_account(self, client, test_user):
        client.post('/auth/password-reset/send', json={'email': test_user['email']})

        response = client.post('/auth/password-reset/register', json={
            'email': test_user['email'],
            'code': _reset_code(test_user['email']),
            'password': 'quickpassword',
        })
        assert response.status_code == 409

    def test_register_bad_code(self, client, db_session):
        email = fake.email().lower()
        client.post('/auth/password-reset/send', json={'email': email})
        code = _reset_code(email)
        wrong = '000000' if code != '000000' else '111111'

        response = client.post('/auth/password-reset/register', json={
            'email': email,
            'code': wrong,
            'password': 'quickpassword',
        })
        assert response.status_code == 400
        assert User.query.filter_by(email=email).count() == 0
