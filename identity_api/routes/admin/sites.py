"""Admin site management."""

import re
from datetime import datetime

from flask import request, jsonify, current_app

from identity_api import db
from identity_api.models import Asset, Site
from identity_api.routes.admin import admin_bp
from identity_api.services.storage import StorageError
from identity_api.utils import admin_required
from identity_api.utils.uploads import (
    IMAGE_TYPES, LOGO_MAX_SIZE, SITE_LOGO_CATEGORY, get_file_from_request, save_asset, delete_asset,
    asset_id_from_url,
)

SITE_KEY_REGEX = re.compile(r'^[a-z0-9][a-z0-9-]{1,49}$')

# camelCase body field -> (column, type)
SITE_FIELDS = {
    'name': ('name', str),
    'description': ('description', str),
    'url': ('url', str),
    'isActive': ('is_active', bool),
    'requiresSubscription': ('requires_subscription', bool),
    'monthlyPriceCents': ('monthly_price_cents', int),
    'yearlyPriceCents': ('yearly_price_cents', int),
    'displayOrder': ('display_order', int),
}


def _max_length(column):
    return getattr(Site.__table__.columns[column].type, 'length', None)


def _apply_site_fields(site, data):
    """Copy allowed fields onto the site. Returns error message or None."""
    for field, (column, expected) in SITE_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if value is not None and (not isinstance(value, expected) or (expected is int and isinstance(value, bool))):
            return f"{field} must be a {expected.__name__}"
        max_length = _max_length(column) if expected is str else None
        if max_length and value is not None and len(value.strip()) > max_length:
            return f"{field} must be at most {max_length} characters"
        if expected is int and value is not None and value < 0:
            return f"{field} must not be negative"
        if field == 'name' and not (value or '').strip():
            return 'name is required'
        setattr(site, column, value.strip() if isinstance(value, str) else value)
    return None


@admin_bp.route('/sites', methods=['GET'])
@admin_required
def list_sites(current_user_id):
    sites = Site.query.order_by(Site.display_order, Site.name).all()
    return jsonify([s.to_dict() for s in sites]), 200


@admin_bp.route('/sites', methods=['POST'])
@admin_required
def create_site(current_user_id):
    try:
        data = request.get_json(silent=True) or {}
        key = data.get('key')
        key = key.strip().lower() if isinstance(key, str) else ''

        if not SITE_KEY_REGEX.match(key):
            return jsonify({'message': 'key must be 2-50 lowercase letters, digits or dashes'}), 400
        name = data.get('name')
        if not isinstance(name, str) or not name.strip():
            return jsonify({'message': 'name is required'}), 400
        if db.session.get(Site, key):
            return jsonify({'message': 'A site with this key already exists'}), 409

        site = Site(key=key)
        error = _apply_site_fields(site, data)
        if error:
            return jsonify({'message': error}), 400

        db.session.add(site)
        db.session.commit()

        current_app.logger.info(f"Site {key} created by user {current_user_id}")
        return jsonify(site.to_dict()), 201
    except Exception:
        db.session.rollback()
        raise


@admin_bp.route('/sites/<site_key>', methods=['PUT'])
@admin_required
def update_site(current_user_id, site_key):
    try:
        site = db.session.get(Site, site_key)
        if not site:
            return jsonify({'message': 'Site not found'}), 404

        error = _apply_site_fields(site, request.get_json(silent=True) or {})
        if error:
            db.session.rollback()
            return jsonify({'message': error}), 400

        site.updated_at = datetime.utcnow()
        db.session.commit()
        return jsonify(site.to_dict()), 200
    except Exception:
        db.session.rollback()
        raise


def _remove_logo_asset(logo_url):
    asset_id = asset_id_from_url(logo_url)
    if asset_id:
        asset = db.session.get(Asset, asset_id)
        if asset:
            delete_asset(asset)


@admin_bp.route('/sites/<site_key>/logo', methods=['POST'])
@admin_required
def upload_site_logo(current_user_id, site_key):
    site = db.session.get(Site, site_key)
    if not site:
        return jsonify({'message': 'Site not found'}), 404

    file_data, filename, content_type, error = get_file_from_request(IMAGE_TYPES, LOGO_MAX_SIZE)
    if error:
        return error

    try:
        old_logo_url = site.logo_url
        asset = save_asset(
            file_data, filename, content_type,
            category=SITE_LOGO_CATEGORY, site_key=site.key,
            uploaded_by=current_user_id, is_public=True,
        )
        site.logo_url = f'/asset/{asset.id}'
        _remove_logo_asset(old_logo_url)
        site.updated_at = datetime.utcnow()
        db.session.commit()
    except StorageError as e:
        db.session.rollback()
        current_app.logger.error(f"Logo upload for site {site_key} failed: {e}")
        return jsonify({'message': 'Failed to upload logo'}), 500
    except Exception:
        db.session.rollback()
        raise

    return jsonify(site.to_dict()), 200


@admin_bp.route('/sites/<site_key>/logo', methods=['DELETE'])
@admin_required
def delete_site_logo(current_user_id, site_key):
    try:
        site = db.session.get(Site, site_key)
        if not site:
            return jsonify({'message': 'Site not found'}), 404
        if not site.logo_url:
            return jsonify({'message': 'Site has no logo'}), 404

        _remove_logo_asset(site.logo_url)
        site.logo_url = None
        site.updated_at = datetime.utcnow()
        db.session.commit()
        return jsonify(site.to_dict()), 200
    except Exception:
        db.session.rollback()
        raise
