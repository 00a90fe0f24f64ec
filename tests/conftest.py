"""
Pytest configuration and fixtures for testing the identity API.
"""

import io
import os
import sys
import pytest
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from identity_api import create_app, db  # noqa: E402
from identity_api.models import User, Site, ApiClient, Country, ProvinceState, City  # noqa: E402
from identity_api.models.api_client import ALL_SCOPES  # noqa: E402
from identity_api.models.user import ADMIN_ROLE  # noqa: E402
from identity_api.services import geocoding  # noqa: E402
from identity_api.services.redis_client import reset_local_presence  # noqa: E402

fake = Faker()

# Smallest valid PNG: signature + IHDR for a 1x1 image
PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01'
    b'\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f'
    b'\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82'
)
PDF_BYTES = b'%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n'


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create a fresh database session for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        geocoding.clear_cache()
        reset_local_presence()
        app.extensions.pop('geocoder', None)
        yield db.session
        db.session.rollback()


def _create_user(password='testpassword123', **overrides):
    """Helper to create a user with sensible defaults."""
    data = {
        'email': fake.unique.email(),
    }
    data.update(overrides)
    user = User(**data)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return {
        'id': user.id,
        'email': user.email,
        'phone_number': user.phone_number,
        'password': password,
    }


def _create_site(key=None, **overrides):
    data = {
        'key': key or fake.unique.slug()[:40],
        'name': fake.company(),
        'is_active': True,
    }
    data.update(overrides)
    site = Site(**data)
    db.session.add(site)
    db.session.commit()
    return site.key


def _get_token(client, email, password):
    """Login and return JWT token."""
    resp = client.post('/auth/login', json={
        'email': email,
        'password': password,
    })
    data = resp.get_json()
    if not data or not data.get('token'):
        raise RuntimeError(f"Login failed: status={resp.status_code}, body={data}")
    return data['token']


@pytest.fixture
def test_user(app, db_session):
    """Create a test user."""
    return _create_user()


@pytest.fixture
def second_user(app, db_session):
    """Create a second test user for interaction tests."""
    return _create_user(password='testpassword456')


@pytest.fixture
def admin_user(app, db_session):
    return _create_user(password='adminpassword123', system_role=ADMIN_ROLE)


@pytest.fixture
def auth_headers(client, test_user):
    """Get authentication headers for test user."""
    token = _get_token(client, test_user['email'], test_user['password'])
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def second_auth_headers(client, second_user):
    token = _get_token(client, second_user['email'], second_user['password'])
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client, admin_user):
    token = _get_token(client, admin_user['email'], admin_user['password'])
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def test_site(app, db_session):
    """Create an active site; returns its key."""
    return _create_site('pickleball')


def _create_api_client(scopes=ALL_SCOPES, app_code=None):
    client, raw_key = ApiClient.create(app_code or fake.unique.slug()[:40], list(scopes))
    db.session.commit()
    return {'id': client.id, 'app_code': client.app_code, 'key': raw_key}


@pytest.fixture
def api_client(app, db_session):
    """Partner API key with every scope."""
    return _create_api_client()


@pytest.fixture
def api_key_headers(api_client):
    return {'X-API-Key': api_client['key']}


@pytest.fixture
def geo_data(app, db_session):
    """One country, two provinces and a few cities."""
    us = Country(name='United States', code2='US', code3='USA', numeric_code='840',
                 phone_code='+1', sort_order=1)
    ca = Country(name='Canada', code2='CA', code3='CAN', numeric_code='124',
                 phone_code='+1', sort_order=2)
    hidden = Country(name='Atlantis', code2='AT', code3='ATL', is_active=False, sort_order=3)
    db.session.add_all([us, ca, hidden])
    db.session.flush()

    wa = ProvinceState(country_id=us.id, name='Washington', code='WA', type='State', sort_order=2)
    or_ = ProvinceState(country_id=us.id, name='Oregon', code='OR', type='State', sort_order=1)
    bc = ProvinceState(country_id=ca.id, name='British Columbia', code='BC', type='Province')
    db.session.add_all([wa, or_, bc])
    db.session.flush()

    seattle = City(province_state_id=wa.id, name='Seattle', latitude=47.606209, longitude=-122.332069)
    spokane = City(province_state_id=wa.id, name='Spokane', latitude=47.658779, longitude=-117.426048)
    tacoma = City(province_state_id=wa.id, name='Tacoma')
    portland = City(province_state_id=or_.id, name='Portland', latitude=45.515232, longitude=-122.678384)
    vancouver = City(province_state_id=bc.id, name='Vancouver', latitude=49.282729, longitude=-123.120738)
    old = City(province_state_id=wa.id, name='Seabeck Old', is_active=False)
    db.session.add_all([seattle, spokane, tacoma, portland, vancouver, old])
    db.session.commit()

    return {
        'us': us.id, 'ca': ca.id, 'hidden_country': hidden.id,
        'wa': wa.id, 'or': or_.id, 'bc': bc.id,
        'seattle': seattle.id, 'spokane': spokane.id, 'tacoma': tacoma.id,
        'portland': portland.id, 'vancouver': vancouver.id, 'inactive_city': old.id,
    }


@pytest.fixture
def make_user(app, db_session):
    """Factory for extra users: make_user(phone_number=..., email=None)."""
    return _create_user


@pytest.fixture
def make_site(app, db_session):
    return _create_site


@pytest.fixture
def make_api_client(app, db_session):
    return _create_api_client


@pytest.fixture
def png_upload():
    """Multipart form data with a small PNG; call again for a fresh stream."""
    def build(filename='logo.png', content_type='image/png', data=PNG_BYTES):
        return {'file': (io.BytesIO(data), filename, content_type)}
    return build


@pytest.fixture
def pdf_upload():
    def build(filename='terms.pdf'):
        return {'file': (io.BytesIO(PDF_BYTES), filename, 'application/pdf')}
    return build
