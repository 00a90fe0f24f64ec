"""Admin management of partner API keys."""

import re

from flask import request, jsonify, current_app

from identity_api import db
from identity_api.models import ApiClient
from identity_api.models.api_client import ALL_SCOPES
from identity_api.routes.admin import admin_bp
from identity_api.utils import admin_required

APP_CODE_REGEX = re.compile(r'^[A-Za-z0-9_.-]{2,50}$')


@admin_bp.route('/api-clients', methods=['GET'])
@admin_required
def list_api_clients(current_user_id):
    clients = ApiClient.query.order_by(ApiClient.created_at.desc()).all()
    return jsonify([c.to_dict() for c in clients]), 200


@admin_bp.route('/api-clients', methods=['POST'])
@admin_required
def create_api_client(current_user_id):
    """Create a client. The full key is only ever returned here."""
    try:
        data = request.get_json(silent=True) or {}
        app_code = data.get('appCode')
        app_code = app_code.strip() if isinstance(app_code, str) else ''
        scopes = data.get('scopes') or []

        if not APP_CODE_REGEX.match(app_code):
            return jsonify({'message': 'appCode must be 2-50 letters, digits, dots, dashes or underscores'}), 400
        if not isinstance(scopes, list) or not scopes:
            return jsonify({'message': 'scopes must be a non-empty list'}), 400
        unknown = [s for s in scopes if s not in ALL_SCOPES]
        if unknown:
            return jsonify({'message': f"Unknown scopes: {', '.join(map(str, unknown))}"}), 400
        if ApiClient.query.filter_by(app_code=app_code).first():
            return jsonify({'message': 'An API client with this appCode already exists'}), 409

        client, raw_key = ApiClient.create(
            app_code,
            scopes,
            description=data.get('description'),
            notes=data.get('notes'),
            created_by=current_user_id,
        )
        db.session.commit()

        current_app.logger.info(f"API client {app_code} created by admin {current_user_id}")
        return jsonify(client.to_dict(full_key=raw_key)), 201
    except Exception:
        db.session.rollback()
        raise


@admin_bp.route('/api-clients/<int:client_id>', methods=['DELETE'])
@admin_required
def revoke_api_client(current_user_id, client_id):
    """Deactivate a client; its key stops working immediately."""
    try:
        client = db.session.get(ApiClient, client_id)
        if not client:
            return jsonify({'message': 'API client not found'}), 404

        client.is_active = False
        db.session.commit()

        current_app.logger.info(f"API client {client.app_code} revoked by admin {current_user_id}")
        return jsonify({'success': True, 'message': 'API client revoked'}), 200
    except Exception:
        db.session.rollback()
        raise
