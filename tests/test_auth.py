"""
Tests for authentication endpoints.
"""

import pytest
from faker import Faker

from identity_api import db, limiter
from identity_api.models import User, UserSite

fake = Faker()


class TestRegistration:
    """Tests for POST /auth/register"""

    def test_register_success(self, client, db_session):
        email = fake.email()
        response = client.post('/auth/register', json={'email': email, 'password': 'securepassword123'})

        assert response.status_code == 201
        assert response.json['success'] is True
        assert response.json['token']
        assert response.json['user']['email'] == email.lower()
        assert 'passwordHash' not in response.json['user']

    def test_register_normalizes_email(self, client, db_session):
        response = client.post('/auth/register', json={'email': '  Mixed.Case@Example.COM ', 'password': 'securepassword123'})

        assert response.status_code == 201
        assert response.json['user']['email'] == 'mixed.case@example.com'

    def test_register_missing_fields(self, client, db_session):
        response = client.post('/auth/register', json={'email': fake.email()})
        assert response.status_code == 400

    def test_register_invalid_email(self, client, db_session):
        response = client.post('/auth/register', json={'email': 'not-an-email', 'password': 'securepassword123'})
        assert response.status_code == 400

    def test_register_duplicate_email(self, client, db_session, test_user):
        response = client.post('/auth/register', json={
            'email': test_user['email'].upper(),
            'password': 'securepassword123',
        })
        assert response.status_code == 409

    def test_register_short_password(self, client, db_session):
        response = client.post('/auth/register', json={'email': fake.email(), 'password': '123'})
        assert response.status_code == 400
        assert 'at least 6' in response.json['message']

    def test_register_long_password(self, client, db_session):
        response = client.post('/auth/register', json={'email': fake.email(), 'password': 'x' * 129})
        assert response.status_code == 400

    def test_register_with_site_joins_site(self, client, db_session, test_site):
        response = client.post('/auth/register', json={
            'email': fake.email(),
            'password': 'securepassword123',
            'siteKey': test_site,
        })

        assert response.status_code == 201
        user_id = response.json['user']['id']
        assert UserSite.query.filter_by(user_id=user_id, site_key=test_site).count() == 1

        validated = client.post('/auth/validate', json={'token': response.json['token']})
        assert validated.json['sites'] == [test_site]

    def test_register_with_unknown_site(self, client, db_session):
        response = client.post('/auth/register', json={
            'email': fake.email(),
            'password': 'securepassword123',
            'siteKey': 'no-such-site',
        })
        assert response.status_code == 400


class TestLogin:
    """Tests for POST /auth/login"""

    def test_login_with_email(self, client, test_user):
        response = client.post('/auth/login', json={
            'email': test_user['email'],
            'password': test_user['password'],
        })

        assert response.status_code == 200
        assert response.json['token']
        assert response.json['user']['id'] == test_user['id']
        assert response.json['user']['lastLoginAt'] is not None

    def test_login_with_phone(self, client, make_user):
        user = make_user(email=None, phone_number='+15551234567')

        response = client.post('/auth/login', json={
            'phoneNumber': '(555) 123-4567',
            'password': user['password'],
        })

        assert response.status_code == 200
        assert response.json['user']['phoneNumber'] == '+15551234567'

    def test_login_wrong_password(self, client, test_user):
        response = client.post('/auth/login', json={
            'email': test_user['email'],
            'password': 'wrongpassword',
        })
        assert response.status_code == 401
        assert response.json['message'] == 'Invalid credentials'

    def test_login_unknown_user_same_message(self, client, db_session):
        response = client.post('/auth/login', json={
            'email': fake.email(),
            'password': 'whatever123',
        })
        assert response.status_code == 401
        assert response.json['message'] == 'Invalid credentials'

    def test_login_missing_identifier(self, client, db_session):
        response = client.post('/auth/login', json={'password': 'whatever123'})
        assert response.status_code == 400

    def test_login_non_string_password(self, client, test_user):
        response = client.post('/auth/login', json={
            'email': test_user['email'],
            'password': 12345678,
        })
        assert response.status_code == 400
        assert response.json['message'] == 'Password must be a string'

    def test_register_non_string_password(self, client, db_session):
        response = client.post('/auth/register', json={'email': fake.email(), 'password': 12345678})
        assert response.status_code == 400

    def test_login_disabled_account(self, client, test_user):
        user = db.session.get(User, test_user['id'])
        user.is_active = False
        db.session.commit()

        response = client.post('/auth/login', json={
            'email': test_user['email'],
            'password': test_user['password'],
        })
        assert response.status_code == 403


class TestMe:
    """Tests for GET /auth/me"""

    def test_me(self, client, auth_headers, test_user):
        response = client.get('/auth/me', headers=auth_headers)

        assert response.status_code == 200
        assert response.json['id'] == test_user['id']
        assert response.json['sites'] == []

    def test_me_without_token(self, client, db_session):
        response = client.get('/auth/me')
        assert response.status_code == 401

    def test_me_with_garbage_token(self, client, db_session):
        response = client.get('/auth/me', headers={'Authorization': 'Bearer not.a.token'})
        assert response.status_code == 401

    def test_me_accepts_raw_token_header(self, client, auth_headers):
        raw = auth_headers['Authorization'].split(' ', 1)[1]
        response = client.get('/auth/me', headers={'Authorization': raw})
        assert response.status_code == 200


class TestValidate:
    """Tests for POST /auth/validate"""

    def test_validate_good_token(self, client, auth_headers, test_user):
        token = auth_headers['Authorization'].split(' ', 1)[1]
        response = client.post('/auth/validate', json={'token': token})

        assert response.status_code == 200
        assert response.json['valid'] is True
        assert response.json['userId'] == test_user['id']
        assert response.json['email'] == test_user['email']
        assert response.json['sites'] == []

    def test_validate_bad_token(self, client, db_session):
        response = client.post('/auth/validate', json={'token': 'garbage'})

        assert response.status_code == 200
        assert response.json['valid'] is False

    def test_validate_missing_token(self, client, db_session):
        response = client.post('/auth/validate', json={})
        assert response.status_code == 200
        assert response.json['valid'] is False


class TestJoinSite:
    """Tests for POST /auth/sites/<key>/join"""

    def test_join_site(self, client, auth_headers, test_user, test_site):
        response = client.post(f'/auth/sites/{test_site}/join', headers=auth_headers)

        assert response.status_code == 200
        validated = client.post('/auth/validate', json={'token': response.json['token']})
        assert validated.json['sites'] == [test_site]

        me = client.get('/auth/me', headers=auth_headers)
        assert [s['siteKey'] for s in me.json['sites']] == [test_site]

    def test_join_site_twice_keeps_one_membership(self, client, auth_headers, test_user, test_site):
        client.post(f'/auth/sites/{test_site}/join', headers=auth_headers)
        client.post(f'/auth/sites/{test_site}/join', headers=auth_headers)

        assert UserSite.query.filter_by(user_id=test_user['id']).count() == 1

    def test_join_unknown_site(self, client, auth_headers):
        response = client.post('/auth/sites/nope/join', headers=auth_headers)
        assert response.status_code == 404

    def test_join_inactive_site(self, client, auth_headers, make_site):
        key = make_site('closed', is_active=False)

        response = client.post(f'/auth/sites/{key}/join', headers=auth_headers)
        assert response.status_code == 404


@pytest.fixture
def rate_limits_on():
    limiter.enabled = True
    limiter.reset()
    yield
    limiter.reset()
    limiter.enabled = False


class TestRequestLimits:
    """Flask-Limiter limits on the token-based auth endpoints"""

    def test_join_is_rate_limited(self, client, auth_headers, rate_limits_on):
        statuses = [client.post('/auth/sites/nope/join', headers=auth_headers).status_code for _ in range(11)]

        assert statuses[:10] == [404] * 10
        assert statuses[10] == 429

    def test_me_is_rate_limited(self, client, auth_headers, rate_limits_on):
        statuses = [client.get('/auth/me', headers=auth_headers).status_code for _ in range(61)]

        assert set(statuses[:60]) == {200}
        assert statuses[60] == 429
        assert 'message' in client.get('/auth/me', headers=auth_headers).json
