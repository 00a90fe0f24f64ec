"""Real-time notifications over Socket.IO.

Every connected client sits in room user:<id> and in site:<key> for each
site in its token, so partner sites can target one user, one site or
everyone.
"""

import logging
from datetime import datetime

from identity_api import socketio
from identity_api.services.redis_client import is_user_online

logger = logging.getLogger(__name__)

EVENT_NAME = 'notification'


def user_room(user_id):
    return f"user:{user_id}"


def site_room(site_key):
    return f"site:{site_key}"


def _message(notification_type, payload):
    return {
        'type': notification_type or 'notification',
        'payload': payload,
        'timestamp': datetime.utcnow().isoformat(),
    }


def send_to_user(user_id, notification_type, payload=None):
    socketio.emit(EVENT_NAME, _message(notification_type, payload), to=user_room(user_id))
    logger.info(f"Push '{notification_type}' sent to user {user_id}")


def send_to_site(site_key, notification_type, payload=None):
    socketio.emit(EVENT_NAME, _message(notification_type, payload), to=site_room(site_key))
    logger.info(f"Push '{notification_type}' sent to site {site_key}")


def broadcast(notification_type, payload=None):
    socketio.emit(EVENT_NAME, _message(notification_type, payload))
    logger.info(f"Push '{notification_type}' broadcast")


def is_user_connected(user_id):
    return is_user_online(user_id)
