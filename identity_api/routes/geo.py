"""Geographic lookup routes: countries, provinces/states, cities, addresses.

Lookups are plain SQL through SQLAlchemy text(); new rows go through the
ORM. Every route accepts a partner API key (geo:read / geo:write) or a
user token.
"""

from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import text

from identity_api import db
from identity_api.models import City, Address
from identity_api.models.api_client import SCOPE_GEO_READ, SCOPE_GEO_WRITE
from identity_api.services.geocoding import GeocodingRequest, get_geocoder
from identity_api.utils import api_key_or_jwt

geo_bp = Blueprint('geo', __name__)

SEARCH_DEFAULT_LIMIT = 20
SEARCH_MAX_LIMIT = 100

COUNTRY_SQL = """
    SELECT id, name, code2, code3, numeric_code, phone_code, sort_order
    FROM countries
    WHERE is_active = :active
"""

PROVINCE_SQL = """
    SELECT id, country_id, name, code, type, sort_order
    FROM province_states
    WHERE is_active = :active
"""

CITY_SQL = """
    SELECT id, province_state_id, name, latitude, longitude
    FROM cities
    WHERE is_active = :active
"""

CITY_DETAIL_SQL = """
    SELECT c.id, c.name, c.latitude, c.longitude,
           p.id AS province_state_id, p.name AS province_state_name, p.code AS province_state_code,
           co.id AS country_id, co.name AS country_name, co.code2 AS country_code
    FROM cities c
    JOIN province_states p ON c.province_state_id = p.id
    JOIN countries co ON p.country_id = co.id
    WHERE c.is_active = :active
"""


def _coord(value):
    return float(value) if value is not None else None


def _country_dict(row):
    return {
        'id': row['id'],
        'name': row['name'],
        'code2': row['code2'],
        'code3': row['code3'],
        'numericCode': row['numeric_code'],
        'phoneCode': row['phone_code'],
        'sortOrder': row['sort_order'],
    }


def _province_dict(row):
    data = {
        'id': row['id'],
        'countryId': row['country_id'],
        'name': row['name'],
        'code': row['code'],
        'type': row['type'],
        'sortOrder': row['sort_order'],
    }
    if 'country_name' in row:
        data['countryName'] = row['country_name']
        data['countryCode'] = row['country_code']
    return data


def _city_dict(row):
    return {
        'id': row['id'],
        'provinceStateId': row['province_state_id'],
        'name': row['name'],
        'latitude': _coord(row['latitude']),
        'longitude': _coord(row['longitude']),
    }


def _city_detail_dict(row):
    data = _city_dict(row)
    data.update({
        'provinceStateName': row['province_state_name'],
        'provinceStateCode': row['province_state_code'],
        'countryId': row['country_id'],
        'countryName': row['country_name'],
        'countryCode': row['country_code'],
    })
    return data


def _text(data, key):
    """Stripped string field; non-strings count as missing."""
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ''


def _fetch_all(sql, **params):
    return db.session.execute(text(sql), {'active': True, **params}).mappings().all()


def _fetch_one(sql, **params):
    return db.session.execute(text(sql), {'active': True, **params}).mappings().first()


def _parse_coordinates(data):
    """
    Read latitude/longitude from a request body.

    Returns:
        Tuple of (latitude, longitude, error_message); both None when absent
    """
    lat, lng = data.get('latitude'), data.get('longitude')
    if lat is None and lng is None:
        return None, None, None
    if lat is None or lng is None:
        return None, None, 'Both latitude and longitude are required'
    try:
        lat, lng = Decimal(str(lat)), Decimal(str(lng))
    except (InvalidOperation, ValueError):
        return None, None, 'Latitude and longitude must be numbers'
    if not Decimal(-90) <= lat <= Decimal(90):
        return None, None, 'Latitude must be between -90 and 90'
    if not Decimal(-180) <= lng <= Decimal(180):
        return None, None, 'Longitude must be between -180 and 180'
    return lat.quantize(Decimal('0.000001')), lng.quantize(Decimal('0.000001')), None


# ---------------------------------------------------------------------------
# Countries / provinces
# ---------------------------------------------------------------------------

@geo_bp.route('/countries', methods=['GET'])
@api_key_or_jwt(SCOPE_GEO_READ)
def get_countries():
    rows = _fetch_all(COUNTRY_SQL + " ORDER BY sort_order, name")
    return jsonify([_country_dict(r) for r in rows]), 200


@geo_bp.route('/countries/<int:country_id>', methods=['GET'])
@api_key_or_jwt(SCOPE_GEO_READ)
def get_country(country_id):
    row = _fetch_one(COUNTRY_SQL + " AND id = :id", id=country_id)
    if row is None:
        return jsonify({'message': 'Country not found'}), 404
    return jsonify(_country_dict(row)), 200


@geo_bp.route('/countries/<int:country_id>/provinces', methods=['GET'])
@api_key_or_jwt(SCOPE_GEO_READ)
def get_provinces(country_id):
    rows = _fetch_all(PROVINCE_SQL + " AND country_id = :country_id ORDER BY sort_order, name",
                      country_id=country_id)
    return jsonify([_province_dict(r) for r in rows]), 200


@geo_bp.route('/provinces/<int:province_id>', methods=['GET'])
@api_key_or_jwt(SCOPE_GEO_READ)
def get_province(province_id):
    row = _fetch_one(
        """
        SELECT p.id, p.country_id, p.name, p.code, p.type, p.sort_order,
               c.name AS country_name, c.code2 AS country_code
        FROM province_states p
        JOIN countries c ON p.country_id = c.id
        WHERE p.id = :id AND p.is_active = :active
        """,
        id=province_id,
    )
    if row is None:
        return jsonify({'message': 'Province/state not found'}), 404
    return jsonify(_province_dict(row)), 200


# ---------------------------------------------------------------------------
# Cities
# ---------------------------------------------------------------------------

@geo_bp.route('/provinces/<int:province_id>/cities', methods=['GET'])
@api_key_or_jwt(SCOPE_GEO_READ)
def get_cities(province_id):
    rows = _fetch_all(CITY_SQL + " AND province_state_id = :province_id ORDER BY name",
                      province_id=province_id)
    return jsonify([_city_dict(r) for r in rows]), 200


@geo_bp.route('/cities/search', methods=['GET'])
@api_key_or_jwt(SCOPE_GEO_READ)
def search_cities():
    """Prefix search on city names.

    Query params:
    - query: at least 2 characters
    - countryId, provinceId: optional filters
    - limit: default 20, at most 100
    """
    query = (request.args.get('query') or '').strip()
    if len(query) < 2:
        return jsonify({'message': 'Search query must be at least 2 characters'}), 400

    country_id = request.args.get('countryId', type=int)
    province_id = request.args.get('provinceId', type=int)
    limit = request.args.get('limit', SEARCH_DEFAULT_LIMIT, type=int)
    limit = max(1, min(limit, SEARCH_MAX_LIMIT))

    # Escape LIKE wildcards typed by the user
    pattern = query.lower().replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_') + '%'

    sql = CITY_DETAIL_SQL + " AND LOWER(c.name) LIKE :pattern ESCAPE '\\'"
    params = {'pattern': pattern, 'limit': limit}
    if country_id is not None:
        sql += " AND co.id = :country_id"
        params['country_id'] = country_id
    if province_id is not None:
        sql += " AND p.id = :province_id"
        params['province_id'] = province_id
    sql += " ORDER BY c.name LIMIT :limit"

    rows = _fetch_all(sql, **params)
    return jsonify([_city_detail_dict(r) for r in rows]), 200


@geo_bp.route('/cities/<int:city_id>', methods=['GET'])
@api_key_or_jwt(SCOPE_GEO_READ)
def get_city(city_id):
    row = _fetch_one(CITY_DETAIL_SQL + " AND c.id = :id", id=city_id)
    if row is None:
        return jsonify({'message': 'City not found'}), 404
    return jsonify(_city_detail_dict(row)), 200


@geo_bp.route('/cities', methods=['POST'])
@api_key_or_jwt(SCOPE_GEO_WRITE)
def create_city():
    try:
        data = request.get_json(silent=True) or {}
        name = _text(data, 'name')
        province_id = data.get('provinceStateId')

        if not name:
            return jsonify({'message': 'City name is required'}), 400
        if len(name) > 200:
            return jsonify({'message': 'City name must be less than 200 characters'}), 400
        if not isinstance(province_id, int):
            return jsonify({'message': 'provinceStateId is required'}), 400

        latitude, longitude, error = _parse_coordinates(data)
        if error:
            return jsonify({'message': error}), 400

        province = _fetch_one(PROVINCE_SQL + " AND id = :id", id=province_id)
        if province is None:
            return jsonify({'message': 'Province/state not found'}), 400

        existing = _fetch_one(
            "SELECT id FROM cities WHERE province_state_id = :province_id AND name = :name AND is_active = :active",
            province_id=province_id, name=name,
        )
        if existing is not None:
            return jsonify({'message': 'City already exists', 'cityId': existing['id']}), 409

        city = City(
            province_state_id=province_id,
            name=name,
            latitude=latitude,
            longitude=longitude,
            created_by_user_id=g.current_user_id,
        )
        db.session.add(city)
        db.session.commit()

        current_app.logger.info(f"City {city.id} '{name}' created by user {g.current_user_id}")
        return jsonify({
            'id': city.id,
            'provinceStateId': city.province_state_id,
            'name': city.name,
            'latitude': _coord(city.latitude),
            'longitude': _coord(city.longitude),
        }), 201
    except Exception:
        db.session.rollback()
        raise


@geo_bp.route('/cities/<int:city_id>/gps', methods=['PUT'])
@api_key_or_jwt(SCOPE_GEO_WRITE)
def update_city_gps(city_id):
    try:
        data = request.get_json(silent=True) or {}
        latitude, longitude, error = _parse_coordinates(data)
        if error:
            return jsonify({'message': error}), 400

        result = db.session.execute(
            text("UPDATE cities SET latitude = :lat, longitude = :lng WHERE id = :id AND is_active = :active"),
            {
                'lat': float(latitude) if latitude is not None else None,
                'lng': float(longitude) if longitude is not None else None,
                'id': city_id,
                'active': True,
            },
        )
        if result.rowcount == 0:
            db.session.rollback()
            return jsonify({'message': 'City not found'}), 404
        db.session.commit()

        row = _fetch_one(CITY_SQL + " AND id = :id", id=city_id)
        current_app.logger.info(f"City {city_id} GPS updated to ({latitude}, {longitude})")
        return jsonify(_city_dict(row)), 200
    except Exception:
        db.session.rollback()
        raise


# ---------------------------------------------------------------------------
# Addresses / geocoding
# ---------------------------------------------------------------------------

def _geocoding_request_for_city(city_row, line1='', line2=None, postal_code=None):
    return GeocodingRequest(
        line1=line1,
        line2=line2,
        city=city_row['name'],
        state_province=city_row['province_state_name'],
        postal_code=postal_code,
        country=city_row['country_name'],
        country_code=city_row['country_code'],
    )


@geo_bp.route('/addresses', methods=['POST'])
@api_key_or_jwt(SCOPE_GEO_WRITE)
def create_address():
    """Create an address.

    Coordinates come from the request (treated as verified, e.g. a map pin),
    else from the geocoder, else the city centre.
    """
    try:
        data = request.get_json(silent=True) or {}
        city_id = data.get('cityId')
        line1 = _text(data, 'line1')
        line2 = _text(data, 'line2') or None
        postal_code = _text(data, 'postalCode') or None

        if not isinstance(city_id, int):
            return jsonify({'message': 'cityId is required'}), 400
        if not line1:
            return jsonify({'message': 'line1 is required'}), 400
        if len(line1) > 200 or (line2 and len(line2) > 200):
            return jsonify({'message': 'Address lines must be less than 200 characters'}), 400

        latitude, longitude, error = _parse_coordinates(data)
        if error:
            return jsonify({'message': error}), 400

        city = _fetch_one(CITY_DETAIL_SQL + " AND c.id = :id", id=city_id)
        if city is None:
            return jsonify({'message': 'City not found'}), 400

        source = None
        is_verified = False
        if latitude is not None:
            source, is_verified = 'request', True
        else:
            result = get_geocoder().geocode(_geocoding_request_for_city(city, line1, line2, postal_code))
            if result.success:
                latitude, longitude, source = result.latitude, result.longitude, 'geocoder'
            elif city['latitude'] is not None and city['longitude'] is not None:
                latitude, longitude, source = Decimal(str(city['latitude'])), Decimal(str(city['longitude'])), 'city'

        address = Address(
            city_id=city_id,
            line1=line1,
            line2=line2,
            postal_code=postal_code,
            latitude=latitude,
            longitude=longitude,
            is_verified=is_verified,
            created_by_user_id=g.current_user_id,
        )
        db.session.add(address)
        db.session.commit()

        data = address.to_dict()
        data['coordinateSource'] = source
        return jsonify(data), 201
    except Exception:
        db.session.rollback()
        raise


@geo_bp.route('/addresses/<int:address_id>', methods=['GET'])
@api_key_or_jwt(SCOPE_GEO_READ)
def get_address(address_id):
    row = _fetch_one(
        """
        SELECT a.id, a.city_id, a.line1, a.line2, a.postal_code, a.latitude, a.longitude,
               a.is_verified, c.name AS city_name, p.name AS province_state_name,
               co.name AS country_name, co.code2 AS country_code
        FROM addresses a
        JOIN cities c ON a.city_id = c.id
        JOIN province_states p ON c.province_state_id = p.id
        JOIN countries co ON p.country_id = co.id
        WHERE a.id = :id AND c.is_active = :active
        """,
        id=address_id,
    )
    if row is None:
        return jsonify({'message': 'Address not found'}), 404

    return jsonify({
        'id': row['id'],
        'cityId': row['city_id'],
        'line1': row['line1'],
        'line2': row['line2'],
        'postalCode': row['postal_code'],
        'latitude': _coord(row['latitude']),
        'longitude': _coord(row['longitude']),
        'isVerified': bool(row['is_verified']),
        'cityName': row['city_name'],
        'provinceStateName': row['province_state_name'],
        'countryName': row['country_name'],
        'countryCode': row['country_code'],
    }), 200


@geo_bp.route('/geocode', methods=['POST'])
@api_key_or_jwt(SCOPE_GEO_READ)
def geocode():
    """Run the configured geocoder on a free-form address."""
    data = request.get_json(silent=True) or {}
    geocoding_request = GeocodingRequest(
        line1=data.get('line1') or '',
        line2=data.get('line2'),
        city=data.get('city') or '',
        state_province=data.get('stateProvince'),
        postal_code=data.get('postalCode'),
        country=data.get('country') or '',
        country_code=data.get('countryCode') or '',
    )
    if not geocoding_request.to_address_string():
        return jsonify({'message': 'An address is required'}), 400

    result = get_geocoder().geocode(geocoding_request)
    return jsonify(result.to_dict()), 200
