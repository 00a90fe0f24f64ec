"""Push routes: let partner sites send real-time notifications to connected users."""

from flask import Blueprint, request, jsonify, current_app

from identity_api.models.api_client import SCOPE_PUSH_SEND
from identity_api.services import push
from identity_api.utils import api_key_or_jwt

push_bp = Blueprint('push', __name__)

MAX_BATCH_USERS = 500


def _notification_from(data):
    return data.get('type') or 'notification', data.get('payload')


@push_bp.route('/user/<int:user_id>', methods=['POST'])
@api_key_or_jwt(SCOPE_PUSH_SEND)
def send_to_user(user_id):
    notification_type, payload = _notification_from(request.get_json(silent=True) or {})
    push.send_to_user(user_id, notification_type, payload)
    return jsonify({
        'success': True,
        'message': 'Notification sent',
        'isUserConnected': push.is_user_connected(user_id),
    }), 200


@push_bp.route('/site/<site_key>', methods=['POST'])
@api_key_or_jwt(SCOPE_PUSH_SEND)
def send_to_site(site_key):
    notification_type, payload = _notification_from(request.get_json(silent=True) or {})
    push.send_to_site(site_key, notification_type, payload)
    return jsonify({'success': True, 'message': 'Notification sent to site'}), 200


@push_bp.route('/broadcast', methods=['POST'])
@api_key_or_jwt(SCOPE_PUSH_SEND)
def broadcast():
    notification_type, payload = _notification_from(request.get_json(silent=True) or {})
    push.broadcast(notification_type, payload)
    return jsonify({'success': True, 'message': 'Broadcast sent'}), 200


@push_bp.route('/user/<int:user_id>/status', methods=['GET'])
@api_key_or_jwt(SCOPE_PUSH_SEND)
def user_status(user_id):
    return jsonify({'userId': user_id, 'isConnected': push.is_user_connected(user_id)}), 200


@push_bp.route('/users/batch', methods=['POST'])
@api_key_or_jwt(SCOPE_PUSH_SEND)
def send_to_users():
    data = request.get_json(silent=True) or {}
    user_ids = data.get('userIds')

    if not isinstance(user_ids, list) or not user_ids:
        return jsonify({'message': 'userIds must be a non-empty list'}), 400
    if len(user_ids) > MAX_BATCH_USERS:
        return jsonify({'message': f'At most {MAX_BATCH_USERS} users per batch'}), 400
    if not all(isinstance(uid, int) for uid in user_ids):
        return jsonify({'message': 'userIds must contain integers'}), 400

    notification_type, payload = _notification_from(data)
    results = []
    for user_id in user_ids:
        push.send_to_user(user_id, notification_type, payload)
        results.append({'userId': user_id, 'isConnected': push.is_user_connected(user_id)})

    current_app.logger.info(f"Batch push '{notification_type}' sent to {len(user_ids)} users")
    return jsonify({
        'success': True,
        'message': f'Notification sent to {len(user_ids)} users',
        'results': results,
    }), 200
