"""Queue an email/SMS notification for a recipient."""

from flask import Blueprint, request, jsonify, current_app, g

from identity_api import db, limiter
from identity_api.models.api_client import SCOPE_NOTIFY_SEND
from identity_api.services.notifications import queue_notification, NotificationError
from identity_api.utils import api_key_or_jwt

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('/send', methods=['POST'])
@limiter.limit("60 per minute")
@api_key_or_jwt(SCOPE_NOTIFY_SEND)
def send_notification():
    """Queue a notification task.

    Body: {taskCode, to, data?, siteKey?, userId?, priority?, language?}
    """
    try:
        body = request.get_json(silent=True) or {}
        task_code = body.get('taskCode')
        data = body.get('data') or {}

        if not task_code:
            return jsonify({'message': 'taskCode is required'}), 400
        if not isinstance(data, dict):
            return jsonify({'message': 'data must be an object'}), 400

        priority = body.get('priority', 5)
        if not isinstance(priority, int) or not 1 <= priority <= 10:
            return jsonify({'message': 'priority must be between 1 and 10'}), 400

        try:
            outbox = queue_notification(
                task_code,
                to=body.get('to'),
                data=data,
                site_key=body.get('siteKey'),
                user_id=body.get('userId'),
                priority=priority,
                language=body.get('language'),
            )
        except NotificationError as e:
            db.session.rollback()
            return jsonify({'message': str(e)}), 400

        db.session.commit()

        caller = g.api_client.app_code if g.api_client else f"user {g.current_user_id}"
        current_app.logger.info(f"Notification {outbox.id} ({task_code}) queued by {caller}")
        return jsonify({'success': True, 'outboxId': outbox.id, 'status': outbox.status}), 202
    except Exception:
        db.session.rollback()
        raise
