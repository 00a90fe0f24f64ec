"""Asset routes: upload a file, stream it back, read its metadata, delete it."""

from flask import Blueprint, request, jsonify, current_app, redirect, send_file

from identity_api import db, limiter
from identity_api.models import Asset, User
from identity_api.models.asset import STORAGE_S3
from identity_api.services.storage import storage_for, StorageError
from identity_api.utils import token_required, token_optional
from identity_api.utils.uploads import (
    ASSET_TYPES, ASSET_MAX_SIZE, RESERVED_CATEGORIES, get_file_from_request, save_asset, delete_asset
)

assets_bp = Blueprint('assets', __name__)


def _flag(value, default=True):
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes')


@assets_bp.route('/upload', methods=['POST'])
@limiter.limit("30 per minute")
@token_required
def upload(current_user_id):
    """Upload a file.

    Query params:
    - category: container/folder name (default: general)
    - isPublic: whether anonymous callers may read it (default: true)
    - siteKey: tenant folder (optional)
    """
    category = (request.args.get('category') or '').strip() or None
    if category and category.lower() in RESERVED_CATEGORIES:
        current_app.logger.warning(f"User {current_user_id} tried to upload into reserved category {category}")
        return jsonify({'message': 'This category is reserved'}), 403

    file_data, filename, content_type, error = get_file_from_request(ASSET_TYPES, ASSET_MAX_SIZE)
    if error:
        return error

    site_key = request.args.get('siteKey') or None
    is_public = _flag(request.args.get('isPublic'))

    try:
        asset = save_asset(
            file_data, filename, content_type,
            category=category, site_key=site_key,
            uploaded_by=current_user_id, is_public=is_public,
        )
        db.session.commit()
    except StorageError as e:
        db.session.rollback()
        current_app.logger.error(f"Asset upload failed: {e}")
        return jsonify({'message': 'Failed to upload asset'}), 500
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"Asset {asset.id} uploaded by user {current_user_id}")
    return jsonify({
        'success': True,
        'assetId': asset.id,
        'fileName': asset.file_name,
        'contentType': asset.content_type,
        'fileSize': asset.file_size,
        'storageType': asset.storage_type,
        'url': f'/asset/{asset.id}',
    }), 200


@assets_bp.route('/<int:asset_id>', methods=['GET'])
@token_optional
def get_asset(current_user_id, asset_id):
    """Serve the file: S3 objects by redirect, local files streamed."""
    asset = db.session.get(Asset, asset_id)
    if not asset:
        return jsonify({'message': 'Asset not found'}), 404

    if not asset.is_public and current_user_id is None:
        return jsonify({'message': 'Authentication required'}), 401

    if asset.storage_type == STORAGE_S3 and asset.storage_url.startswith('https://'):
        return redirect(asset.storage_url, code=302)

    try:
        stream = storage_for(asset.storage_type).open_file(asset.storage_url)
    except StorageError as e:
        current_app.logger.error(f"Could not read asset {asset.id}: {e}")
        stream = None
    if stream is None:
        return jsonify({'message': 'File not found'}), 404

    return send_file(stream, mimetype=asset.content_type, download_name=asset.file_name)


@assets_bp.route('/<int:asset_id>/info', methods=['GET'])
@token_optional
def get_asset_info(current_user_id, asset_id):
    asset = db.session.get(Asset, asset_id)
    if not asset:
        return jsonify({'message': 'Asset not found'}), 404

    if not asset.is_public and current_user_id is None:
        return jsonify({'message': 'Authentication required'}), 401

    return jsonify(asset.to_dict()), 200


@assets_bp.route('/<int:asset_id>', methods=['DELETE'])
@token_required
def remove_asset(current_user_id, asset_id):
    """Delete an asset (owner or admin only)."""
    try:
        asset = db.session.get(Asset, asset_id)
        if not asset:
            return jsonify({'message': 'Asset not found'}), 404

        if asset.uploaded_by != current_user_id:
            user = db.session.get(User, current_user_id)
            if not user or not user.is_admin:
                return jsonify({'message': 'You can only delete your own assets'}), 403

        delete_asset(asset)
        db.session.commit()

        current_app.logger.info(f"Asset {asset_id} deleted by user {current_user_id}")
        return jsonify({'message': 'Asset deleted successfully'}), 200
    except Exception:
        db.session.rollback()
        raise
