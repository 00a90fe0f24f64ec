"""WebSocket events for real-time push notifications."""

import logging
from datetime import datetime

from flask import request
from flask_socketio import emit, join_room

from identity_api.services.jwt_service import validate_token
from identity_api.services.push import user_room, site_room
from identity_api.services.redis_client import set_user_online, set_user_offline, is_user_online

logger = logging.getLogger(__name__)


def _token_from(auth):
    """Token from the Socket.IO auth payload or the ?token= query arg."""
    token = None
    if auth and isinstance(auth, dict):
        token = auth.get('token')
    if not token:
        token = request.args.get('token')
    if token and token.startswith('Bearer '):
        token = token.split(' ', 1)[1]
    return token


def register_socket_events(socketio):
    """Register all Socket.IO event handlers."""

    @socketio.on('connect')
    def handle_connect(auth=None):
        """Authenticate the socket and join the user's rooms."""
        token = _token_from(auth)
        if not token:
            logger.warning('Socket connection without token')
            return False

        claims = validate_token(token)
        if claims is None:
            logger.warning('Socket connection with invalid token')
            return False

        join_room(user_room(claims.user_id))
        for site_key in claims.sites:
            join_room(site_room(site_key))

        set_user_online(claims.user_id, request.sid)
        logger.info(f'User {claims.user_id} connected: {request.sid}')

        emit('connected', {
            'userId': claims.user_id,
            'sites': claims.sites,
            'timestamp': datetime.utcnow().isoformat(),
        })
        return True

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        user_id = set_user_offline(request.sid)
        if user_id:
            logger.info(f'User {user_id} disconnected: {request.sid}')

    @socketio.on('get_user_status')
    def handle_get_user_status(data):
        """Online status for a specific user."""
        target_user_id = (data or {}).get('userId')
        if not isinstance(target_user_id, int):
            return
        emit('user_status', {
            'userId': target_user_id,
            'isConnected': is_user_online(target_user_id),
        })
