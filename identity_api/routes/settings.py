"""Site-wide settings: main logo and legal pages."""

from flask import Blueprint, request, jsonify, current_app

from identity_api import db
from identity_api.models import Asset, Setting
from identity_api.models.setting import SettingKeys
from identity_api.services.storage import StorageError
from identity_api.utils import admin_required
from identity_api.utils.uploads import (
    IMAGE_TYPES, LOGO_MAX_SIZE, SYSTEM_CATEGORY, get_file_from_request, save_asset, delete_asset
)

settings_bp = Blueprint('settings', __name__)

MAIN_LOGO_CATEGORY = SYSTEM_CATEGORY
MAIN_LOGO_SITE_KEY = 'main-logo'


def _main_logo_query():
    return Asset.query.filter_by(category=MAIN_LOGO_CATEGORY, site_key=MAIN_LOGO_SITE_KEY)


def _logo_response(logo):
    if logo is None:
        return {'hasLogo': False, 'logoUrl': None, 'fileName': None}
    return {'hasLogo': True, 'logoUrl': f'/asset/{logo.id}', 'fileName': logo.file_name}


@settings_bp.route('/logo', methods=['GET'])
def get_main_logo():
    logo = _main_logo_query().order_by(Asset.created_at.desc(), Asset.id.desc()).first()
    return jsonify(_logo_response(logo)), 200


@settings_bp.route('/logo', methods=['POST'])
@admin_required
def upload_main_logo(current_user_id):
    """Replace the main logo (images up to 2MB)."""
    file_data, filename, content_type, error = get_file_from_request(IMAGE_TYPES, LOGO_MAX_SIZE)
    if error:
        return error

    try:
        old_logos = _main_logo_query().all()

        logo = save_asset(
            file_data, filename, content_type,
            category=MAIN_LOGO_CATEGORY, site_key=MAIN_LOGO_SITE_KEY,
            uploaded_by=current_user_id, is_public=True,
        )
        for old_logo in old_logos:
            delete_asset(old_logo)
        db.session.commit()
    except StorageError as e:
        db.session.rollback()
        current_app.logger.error(f"Main logo upload failed: {e}")
        return jsonify({'message': 'Failed to upload logo'}), 500
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"Main logo uploaded: asset {logo.id}")
    return jsonify(_logo_response(logo)), 200


@settings_bp.route('/logo', methods=['DELETE'])
@admin_required
def delete_main_logo(current_user_id):
    try:
        logos = _main_logo_query().all()
        if not logos:
            return jsonify({'message': 'No main logo found'}), 404

        for logo in logos:
            delete_asset(logo)
        db.session.commit()

        current_app.logger.info(f"Main logo deleted by user {current_user_id}")
        return jsonify({'message': 'Main logo deleted successfully'}), 200
    except Exception:
        db.session.rollback()
        raise


def _legal_response(setting):
    return {
        'content': setting.value if setting else '',
        'updatedAt': setting.updated_at.isoformat() if setting and setting.updated_at else None,
    }


def _update_legal(key, current_user_id, label):
    try:
        data = request.get_json(silent=True) or {}
        content = data.get('content')
        if content is not None and not isinstance(content, str):
            return jsonify({'message': 'content must be a string'}), 400

        setting = Setting.upsert(key, content, current_user_id)
        db.session.commit()

        current_app.logger.info(f"{label} updated by user {current_user_id}")
        return jsonify(_legal_response(setting)), 200
    except Exception:
        db.session.rollback()
        raise


@settings_bp.route('/terms-of-service', methods=['GET'])
def get_terms_of_service():
    return jsonify(_legal_response(Setting.get_value(SettingKeys.TERMS_OF_SERVICE))), 200


@settings_bp.route('/terms-of-service', methods=['PUT'])
@admin_required
def update_terms_of_service(current_user_id):
    return _update_legal(SettingKeys.TERMS_OF_SERVICE, current_user_id, 'Terms of Service')


@settings_bp.route('/privacy-policy', methods=['GET'])
def get_privacy_policy():
    return jsonify(_legal_response(Setting.get_value(SettingKeys.PRIVACY_POLICY))), 200


@settings_bp.route('/privacy-policy', methods=['PUT'])
@admin_required
def update_privacy_policy(current_user_id):
    return _update_legal(SettingKeys.PRIVACY_POLICY, current_user_id, 'Privacy Policy')
