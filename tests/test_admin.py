"""
Tests for the admin console endpoints.
"""

from datetime import datetime, timedelta

import pytest
from faker import Faker

from identity_api import db
from identity_api.models import (
    User, Site, UserSite, Subscription, Payment, Asset, ApiClient,
    MailProfile, NotificationTemplate, NotificationTask, NotificationOutbox
)
from identity_api.models.notification import OutboxStatus
from identity_api.services.notifications import queue_notification

fake = Faker()


class TestAdminAccess:

    @pytest.mark.parametrize('path', [
        '/admin/stats', '/admin/sites', '/admin/users', '/admin/payments',
        '/admin/api-clients', '/admin/notifications/outbox',
    ])
    def test_regular_user_forbidden(self, client, auth_headers, path):
        response = client.get(path, headers=auth_headers)
        assert response.status_code == 403
        assert response.json['message'] == 'Admin access required'

    def test_anonymous_unauthorized(self, client, db_session):
        assert client.get('/admin/stats').status_code == 401

    def test_deactivated_admin_forbidden(self, client, admin_user, admin_headers):
        db.session.get(User, admin_user['id']).is_active = False
        db.session.commit()

        assert client.get('/admin/stats', headers=admin_headers).status_code == 403


class TestDashboard:

    def test_stats(self, client, admin_headers, test_user, test_site, make_site):
        make_site('closed', is_active=False)
        old_user = User(email=fake.unique.email(), created_at=datetime.utcnow() - timedelta(days=60))
        db.session.add(old_user)
        db.session.flush()
        db.session.add_all([
            Subscription(user_id=test_user['id'], site_key=test_site, status='active'),
            Subscription(user_id=old_user.id, site_key=test_site, status='canceled'),
            Payment(user_id=test_user['id'], amount_cents=1500, status='succeeded'),
            Payment(user_id=test_user['id'], amount_cents=900, status='failed'),
            Payment(user_id=old_user.id, amount_cents=5000, status='succeeded',
                    created_at=datetime.utcnow() - timedelta(days=60)),
        ])
        db.session.commit()

        response = client.get('/admin/stats', headers=admin_headers)

        assert response.status_code == 200
        stats = response.json
        assert stats['totalUsers'] == 3
        assert stats['newUsersToday'] == 2
        assert stats['activeSubscriptions'] == 1
        assert stats['revenueThisMonthCents'] == 1500
        assert stats['totalSites'] == 2
        assert stats['activeSites'] == 1


class TestAdminSites:

    def test_create_site(self, client, admin_headers):
        response = client.post('/admin/sites', headers=admin_headers, json={
            'key': 'Tennis-Club',
            'name': 'Tennis Club',
            'requiresSubscription': True,
            'monthlyPriceCents': 999,
            'displayOrder': 2,
        })

        assert response.status_code == 201
        assert response.json['key'] == 'tennis-club'
        assert response.json['requiresSubscription'] is True
        assert response.json['monthlyPriceCents'] == 999

    def test_create_duplicate(self, client, admin_headers, test_site):
        response = client.post('/admin/sites', headers=admin_headers, json={'key': test_site, 'name': 'Again'})
        assert response.status_code == 409

    @pytest.mark.parametrize('body', [
        {'key': 'x', 'name': 'Too short'},
        {'key': 'has space', 'name': 'Bad'},
        {'key': '-leading', 'name': 'Bad'},
        {'key': 'ok-key'},
        {'key': 'ok-key', 'name': 'Ok', 'monthlyPriceCents': '9.99'},
        {'key': 'ok-key', 'name': 'Ok', 'isActive': 'yes'},
        {'key': 'ok-key', 'name': 'Ok', 'displayOrder': True},
        {'key': 'ok-key', 'name': 'Ok', 'yearlyPriceCents': -1},
        {'key': 'ok-key', 'name': 42},
        {'key': 'ok-key', 'name': ['Ok']},
        {'key': 123, 'name': 'Ok'},
        {'key': 'ok-key', 'name': 'N' * 101},
        {'key': 'ok-key', 'name': 'Ok', 'url': 'https://example.com/' + 'a' * 500},
    ])
    def test_create_validation(self, client, admin_headers, body):
        response = client.post('/admin/sites', headers=admin_headers, json=body)
        assert response.status_code == 400

    def test_list_ordered(self, client, admin_headers, make_site):
        make_site('bravo', name='Bravo', display_order=1)
        make_site('alpha', name='Alpha', display_order=1)
        make_site('zulu', name='Zulu', display_order=0)

        response = client.get('/admin/sites', headers=admin_headers)
        assert [s['key'] for s in response.json] == ['zulu', 'alpha', 'bravo']

    def test_update_site(self, client, admin_headers, test_site):
        response = client.put(f'/admin/sites/{test_site}', headers=admin_headers,
                              json={'name': 'Pickleball League', 'isActive': False})

        assert response.status_code == 200
        assert response.json['name'] == 'Pickleball League'
        assert response.json['isActive'] is False
        assert response.json['updatedAt'] is not None

    def test_update_rejects_blank_name(self, client, admin_headers, test_site):
        response = client.put(f'/admin/sites/{test_site}', headers=admin_headers, json={'name': '  '})

        assert response.status_code == 400
        assert db.session.get(Site, test_site).name != '  '

    def test_update_checks_column_lengths(self, client, admin_headers, test_site):
        too_long = client.put(f'/admin/sites/{test_site}', headers=admin_headers, json={'name': 'N' * 101})
        assert too_long.status_code == 400
        assert too_long.json['message'] == 'name must be at most 100 characters'

        response = client.put(f'/admin/sites/{test_site}', headers=admin_headers,
                              json={'name': 'N' * 100, 'description': 'D' * 500})
        assert response.status_code == 200
        assert len(response.json['name']) == 100

    def test_update_missing(self, client, admin_headers):
        assert client.put('/admin/sites/nope', headers=admin_headers, json={}).status_code == 404

    def test_logo_upload_replace_delete(self, client, admin_headers, test_site, png_upload):
        first = client.post(f'/admin/sites/{test_site}/logo', headers=admin_headers,
                            data=png_upload('one.png'), content_type='multipart/form-data')
        assert first.status_code == 200
        first_url = first.json['logoUrl']
        assert first_url.startswith('/asset/')

        second = client.post(f'/admin/sites/{test_site}/logo', headers=admin_headers,
                             data=png_upload('two.png'), content_type='multipart/form-data')
        assert second.status_code == 200
        assert second.json['logoUrl'] != first_url
        assert client.get(first_url).status_code == 404
        assert client.get(second.json['logoUrl']).status_code == 200
        assert Asset.query.filter_by(site_key=test_site).count() == 1

        removed = client.delete(f'/admin/sites/{test_site}/logo', headers=admin_headers)
        assert removed.status_code == 200
        assert removed.json['logoUrl'] is None
        assert Asset.query.filter_by(site_key=test_site).count() == 0

    def test_delete_logo_when_none(self, client, admin_headers, test_site):
        response = client.delete(f'/admin/sites/{test_site}/logo', headers=admin_headers)
        assert response.status_code == 404

    def test_logo_for_missing_site(self, client, admin_headers, png_upload):
        response = client.post('/admin/sites/nope/logo', headers=admin_headers,
                               data=png_upload(), content_type='multipart/form-data')
        assert response.status_code == 404


class TestAdminUsers:

    def test_list_and_search(self, client, admin_headers, make_user):
        make_user(email='findme@example.com')
        make_user(email=None, phone_number='+15559990000')

        everyone = client.get('/admin/users', headers=admin_headers)
        assert everyone.json['totalCount'] == 3

        by_email = client.get('/admin/users?search=FINDME', headers=admin_headers)
        assert [u['email'] for u in by_email.json['users']] == ['findme@example.com']

        by_phone = client.get('/admin/users?search=999', headers=admin_headers)
        assert [u['phoneNumber'] for u in by_phone.json['users']] == ['+15559990000']

    def test_paging(self, client, admin_headers, make_user):
        for _ in range(4):
            make_user()

        response = client.get('/admin/users?page=2&pageSize=2', headers=admin_headers)

        assert response.json['totalCount'] == 5
        assert response.json['page'] == 2
        assert response.json['pageSize'] == 2
        assert response.json['totalPages'] == 3
        assert len(response.json['users']) == 2

    def test_page_size_clamped(self, client, admin_headers):
        response = client.get('/admin/users?pageSize=1000&page=0', headers=admin_headers)
        assert response.json['pageSize'] == 100
        assert response.json['page'] == 1

    def test_user_detail(self, client, admin_headers, test_user, test_site):
        db.session.add_all([
            UserSite(user_id=test_user['id'], site_key=test_site),
            Subscription(user_id=test_user['id'], site_key=test_site, plan_name='Monthly'),
            Payment(user_id=test_user['id'], amount_cents=1000),
        ])
        db.session.commit()

        response = client.get(f"/admin/users/{test_user['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json['email'] == test_user['email']
        assert [s['siteKey'] for s in response.json['sites']] == [test_site]
        assert response.json['subscriptions'][0]['planName'] == 'Monthly'
        assert response.json['recentPayments'][0]['amountCents'] == 1000

    def test_user_detail_missing(self, client, admin_headers):
        assert client.get('/admin/users/9999', headers=admin_headers).status_code == 404

    def test_update_user(self, client, admin_headers, test_user):
        response = client.put(f"/admin/users/{test_user['id']}", headers=admin_headers, json={
            'phoneNumber': '(555) 222-3333',
            'isEmailVerified': True,
            'systemRole': 'SU',
        })

        assert response.status_code == 200
        assert response.json['phoneNumber'] == '+15552223333'
        assert response.json['isEmailVerified'] is True
        assert response.json['systemRole'] == 'SU'

    def test_update_duplicate_email(self, client, admin_headers, test_user, second_user):
        response = client.put(f"/admin/users/{test_user['id']}", headers=admin_headers,
                              json={'email': second_user['email']})
        assert response.status_code == 409

    def test_update_cannot_remove_both_identifiers(self, client, admin_headers, test_user):
        response = client.put(f"/admin/users/{test_user['id']}", headers=admin_headers,
                              json={'email': None, 'phoneNumber': None})

        assert response.status_code == 400
        assert db.session.get(User, test_user['id']).email == test_user['email']

    @pytest.mark.parametrize('body', [
        {'email': 'not-an-email'},
        {'phoneNumber': '12'},
        {'systemRole': 'ROOT'},
        {'isActive': 'false'},
    ])
    def test_update_validation(self, client, admin_headers, test_user, body):
        response = client.put(f"/admin/users/{test_user['id']}", headers=admin_headers, json=body)
        assert response.status_code == 400

    def test_admin_cannot_demote_or_disable_self(self, client, admin_headers, admin_user):
        url = f"/admin/users/{admin_user['id']}"

        assert client.put(url, headers=admin_headers, json={'systemRole': None}).status_code == 400
        assert client.put(url, headers=admin_headers, json={'isActive': False}).status_code == 400
        assert db.session.get(User, admin_user['id']).is_admin

    def test_deactivated_user_cannot_log_in(self, client, admin_headers, test_user):
        client.put(f"/admin/users/{test_user['id']}", headers=admin_headers, json={'isActive': False})

        response = client.post('/auth/login', json={'email': test_user['email'], 'password': test_user['password']})
        assert response.status_code == 403


class TestAdminPayments:

    @pytest.fixture
    def payments(self, test_user, second_user):
        db.session.add_all([
            Payment(user_id=test_user['id'], site_key='pickleball', amount_cents=1000,
                    status='succeeded', created_at=datetime(2026, 3, 1, 9, 0)),
            Payment(user_id=test_user['id'], site_key='tennis', amount_cents=2000,
                    status='succeeded', created_at=datetime(2026, 3, 15, 23, 30)),
            Payment(user_id=second_user['id'], site_key='pickleball', amount_cents=500,
                    status='refunded', created_at=datetime(2026, 4, 2, 12, 0)),
        ])
        db.session.commit()

    def test_list_all(self, client, admin_headers, payments, test_user):
        response = client.get('/admin/payments', headers=admin_headers)

        assert response.status_code == 200
        assert response.json['totalCount'] == 3
        assert response.json['totalAmountCents'] == 3500
        assert response.json['payments'][0]['amountCents'] == 500
        assert response.json['payments'][-1]['userEmail'] == test_user['email']

    def test_filters(self, client, admin_headers, payments, test_user):
        by_user = client.get(f"/admin/payments?userId={test_user['id']}", headers=admin_headers)
        assert by_user.json['totalAmountCents'] == 3000

        by_site = client.get('/admin/payments?siteKey=pickleball&status=succeeded', headers=admin_headers)
        assert by_site.json['totalCount'] == 1

    def test_to_date_includes_whole_day(self, client, admin_headers, payments):
        response = client.get('/admin/payments?fromDate=2026-03-15&toDate=2026-03-15', headers=admin_headers)

        assert response.json['totalCount'] == 1
        assert response.json['totalAmountCents'] == 2000

    def test_bad_date(self, client, admin_headers, payments):
        response = client.get('/admin/payments?fromDate=yesterday', headers=admin_headers)
        assert response.status_code == 400


class TestAdminApiClients:

    def test_create_and_use(self, client, admin_headers, geo_data):
        response = client.post('/admin/api-clients', headers=admin_headers, json={
            'appCode': 'pickleball-web',
            'scopes': ['geo:read'],
            'description': 'Pickleball front-end',
        })

        assert response.status_code == 201
        key = response.json['fullKey']
        assert key.startswith('fti_')
        assert response.json['maskedKey'] == f'{key[:8]}****{key[-4:]}'
        assert client.get('/geo/countries', headers={'X-API-Key': key}).status_code == 200

        listing = client.get('/admin/api-clients', headers=admin_headers)
        assert 'fullKey' not in listing.json[0]
        assert ApiClient.query.one().key_hash != key

    def test_duplicate_app_code(self, client, admin_headers, make_api_client):
        make_api_client(app_code='taken')

        response = client.post('/admin/api-clients', headers=admin_headers,
                               json={'appCode': 'taken', 'scopes': ['geo:read']})
        assert response.status_code == 409

    @pytest.mark.parametrize('body', [
        {'appCode': 'x', 'scopes': ['geo:read']},
        {'appCode': 'has space', 'scopes': ['geo:read']},
        {'appCode': 'ok-app', 'scopes': []},
        {'appCode': 'ok-app', 'scopes': 'geo:read'},
        {'appCode': 'ok-app', 'scopes': ['geo:admin']},
        {'appCode': 12345, 'scopes': ['geo:read']},
    ])
    def test_create_validation(self, client, admin_headers, body):
        response = client.post('/admin/api-clients', headers=admin_headers, json=body)
        assert response.status_code == 400

    def test_revoke(self, client, admin_headers, api_client, api_key_headers, geo_data):
        response = client.delete(f"/admin/api-clients/{api_client['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert client.get('/geo/countries', headers=api_key_headers).status_code == 401

    def test_revoke_missing(self, client, admin_headers):
        assert client.delete('/admin/api-clients/9999', headers=admin_headers).status_code == 404


class TestAdminNotifications:

    def test_profile_crud(self, client, admin_headers):
        created = client.post('/admin/notifications/profiles', headers=admin_headers, json={
            'name': 'Default',
            'smtpHost': 'smtp.example.com',
            'smtpPort': 465,
            'securityMode': 'SslOnConnect',
            'authSecretRef': 'DEFAULT_SMTP_PASSWORD',
        })
        assert created.status_code == 201

        updated = client.put(f"/admin/notifications/profiles/{created.json['id']}", headers=admin_headers,
                             json={'fromName': 'Funtime Team', 'isActive': False})
        assert updated.status_code == 200
        assert updated.json['fromName'] == 'Funtime Team'
        assert updated.json['isActive'] is False

        listing = client.get('/admin/notifications/profiles', headers=admin_headers)
        assert [p['name'] for p in listing.json] == ['Default']

    @pytest.mark.parametrize('body', [
        {'smtpHost': 'smtp.example.com'},
        {'name': 'x', 'securityMode': 'Whatever'},
        {'name': 'x', 'smtpPort': '587'},
    ])
    def test_profile_validation(self, client, admin_headers, body):
        response = client.post('/admin/notifications/profiles', headers=admin_headers, json=body)
        assert response.status_code == 400
        assert MailProfile.query.count() == 0

    def test_template_crud(self, client, admin_headers):
        created = client.post('/admin/notifications/templates', headers=admin_headers, json={
            'code': 'WELCOME',
            'subject': 'Welcome {{ name }}',
            'body': 'Hello {{ name }}',
        })
        assert created.status_code == 201
        assert created.json['language'] == 'en'
        assert created.json['type'] == 'Email'

        duplicate = client.post('/admin/notifications/templates', headers=admin_headers,
                                json={'code': 'WELCOME', 'body': 'Again'})
        assert duplicate.status_code == 400

        spanish = client.post('/admin/notifications/templates', headers=admin_headers,
                              json={'code': 'WELCOME', 'language': 'es', 'body': 'Hola'})
        assert spanish.status_code == 201

        updated = client.put(f"/admin/notifications/templates/{created.json['id']}", headers=admin_headers,
                             json={'body': 'Hi {{ name }}'})
        assert updated.status_code == 200
        assert updated.json['body'] == 'Hi {{ name }}'

        listing = client.get('/admin/notifications/templates?code=WELCOME', headers=admin_headers)
        assert [t['language'] for t in listing.json] == ['en', 'es']

    def test_template_type_validation(self, client, admin_headers):
        response = client.post('/admin/notifications/templates', headers=admin_headers,
                               json={'code': 'X', 'body': 'y', 'type': 'Fax'})
        assert response.status_code == 400

    def test_task_crud(self, client, admin_headers):
        template = NotificationTemplate(code='WELCOME', body='Hello')
        db.session.add(template)
        db.session.commit()

        created = client.post('/admin/notifications/tasks', headers=admin_headers, json={
            'code': 'WELCOME',
            'templateId': template.id,
            'mailTo': 'ops@example.com',
        })
        assert created.status_code == 201
        assert created.json['status'] == 'Active'
        assert created.json['taskType'] == 'Email'

        duplicate = client.post('/admin/notifications/tasks', headers=admin_headers, json={'code': 'WELCOME'})
        assert duplicate.status_code == 400

        updated = client.put(f"/admin/notifications/tasks/{created.json['id']}", headers=admin_headers,
                             json={'status': 'Inactive'})
        assert updated.status_code == 200
        assert NotificationTask.query.one().status == 'Inactive'

    @pytest.mark.parametrize('body', [
        {'code': 'X', 'taskType': 'Pigeon'},
        {'code': 'X', 'status': 'Paused'},
        {'code': 'X', 'templateId': 9999},
        {'code': 'X', 'mailProfileId': 9999},
        {'taskType': 'Email'},
    ])
    def test_task_validation(self, client, admin_headers, body):
        response = client.post('/admin/notifications/tasks', headers=admin_headers, json=body)
        assert response.status_code == 400

    def test_outbox_listing_and_dispatch(self, client, admin_headers):
        queue_notification('OTP_EMAIL', to='a@example.com', data={'code': '1'})
        queue_notification('OTP_SMS', to='+15551234567', data={'code': '2'})
        db.session.commit()

        pending = client.get('/admin/notifications/outbox?status=Pending', headers=admin_headers)
        assert pending.json['totalCount'] == 2

        dispatched = client.post('/admin/notifications/dispatch', headers=admin_headers)
        assert dispatched.status_code == 200
        assert dispatched.json == {'sent': 2, 'retrying': 0, 'failed': 0}

        sent = client.get('/admin/notifications/outbox?status=Sent', headers=admin_headers)
        assert sent.json['totalCount'] == 2
        assert NotificationOutbox.query.filter_by(status=OutboxStatus.PENDING).count() == 0

    def test_outbox_unknown_status(self, client, admin_headers):
        response = client.get('/admin/notifications/outbox?status=Lost', headers=admin_headers)
        assert response.status_code == 400
