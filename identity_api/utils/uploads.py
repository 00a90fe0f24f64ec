"""Upload validation and asset bookkeeping shared by the asset, settings and admin routes."""

import io

from flask import request, jsonify, current_app

from identity_api import db
from identity_api.models import Asset
from identity_api.services.storage import get_storage, storage_for, StorageError

IMAGE_TYPES = {'image/jpeg', 'image/png', 'image/gif', 'image/webp', 'image/svg+xml'}
DOCUMENT_TYPES = {
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
}
ASSET_TYPES = IMAGE_TYPES | DOCUMENT_TYPES

ASSET_MAX_SIZE = 10 * 1024 * 1024  # 10MB
LOGO_MAX_SIZE = 2 * 1024 * 1024  # 2MB

# Written only by the settings and admin logo endpoints
SYSTEM_CATEGORY = 'system'
SITE_LOGO_CATEGORY = 'site-logos'
RESERVED_CATEGORIES = frozenset({SYSTEM_CATEGORY, SITE_LOGO_CATEGORY})

# Magic bytes per content type; types not listed are accepted on the declared type
SIGNATURES = {
    'image/png': [b'\x89PNG\r\n\x1a\n'],
    'image/jpeg': [b'\xff\xd8\xff'],
    'image/gif': [b'GIF87a', b'GIF89a'],
    'image/webp': [b'RIFF'],
    'application/pdf': [b'%PDF'],
    'application/msword': [b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1'],
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': [b'PK\x03\x04'],
}


def content_matches_type(file_data: bytes, content_type: str) -> bool:
    """Check the file's leading bytes against the declared content type."""
    signatures = SIGNATURES.get(content_type)
    if signatures is None:
        if content_type == 'image/svg+xml':
            head = file_data[:1024].lstrip().lower()
            return head.startswith(b'<?xml') or head.startswith(b'<svg') or b'<svg' in head
        return True
    if not any(file_data.startswith(sig) for sig in signatures):
        return False
    # WebP: bytes 8-12 must be 'WEBP'
    if content_type == 'image/webp' and file_data[8:12] != b'WEBP':
        return False
    return True


def get_file_from_request(allowed_types, max_size):
    """Extract and validate the multipart `file` field.

    Returns:
        Tuple of (file_data, filename, content_type, error_response)
        If error: (None, None, None, error_response)
    """
    if 'file' not in request.files:
        return None, None, None, (jsonify({'message': 'No file uploaded'}), 400)

    file = request.files['file']
    if not file.filename:
        return None, None, None, (jsonify({'message': 'No file selected'}), 400)

    file_data = file.read()
    if not file_data:
        return None, None, None, (jsonify({'message': 'No file uploaded'}), 400)

    if len(file_data) > max_size:
        max_mb = max_size // (1024 * 1024)
        return None, None, None, (jsonify({'message': f'File size must be less than {max_mb}MB'}), 400)

    content_type = (file.mimetype or '').lower()
    if content_type not in allowed_types:
        return None, None, None, (jsonify({'message': 'Invalid file type'}), 400)

    # Don't trust the client's content type alone
    if not content_matches_type(file_data, content_type):
        return None, None, None, (jsonify({'message': 'File content does not match its type'}), 400)

    return file_data, file.filename, content_type, None


def save_asset(file_data, filename, content_type, category=None, site_key=None,
               uploaded_by=None, is_public=True):
    """Store the bytes and add an Asset row (flushed, caller commits).

    Raises:
        StorageError when the backend fails
    """
    storage = get_storage()
    url = storage.upload_file(io.BytesIO(file_data), filename, content_type, category or 'general', site_key)

    asset = Asset(
        file_name=filename,
        content_type=content_type,
        file_size=len(file_data),
        storage_url=url,
        storage_type=storage.storage_type,
        category=category,
        site_key=site_key,
        uploaded_by=uploaded_by,
        is_public=is_public,
    )
    db.session.add(asset)
    db.session.flush()
    return asset


def delete_asset(asset):
    """Remove the stored file, then the row (caller commits).

    A file that cannot be removed is logged and the row still goes.
    """
    try:
        storage_for(asset.storage_type).delete_file(asset.storage_url)
    except StorageError as e:
        current_app.logger.warning(f"Could not delete file for asset {asset.id}: {e}")
    db.session.delete(asset)


def asset_id_from_url(url):
    """Asset id from an /asset/<id> URL, or None."""
    if not url or not url.startswith('/asset/'):
        return None
    try:
        return int(url[len('/asset/'):].split('/')[0])
    except ValueError:
        return None
