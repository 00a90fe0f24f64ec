"""Shared authentication utilities.

JWT decorators pass the caller's user id as the first argument, the same
way in every route file. api_key_or_jwt() also accepts partner API keys
and exposes the caller on flask.g instead.
"""

from functools import wraps

from flask import request, jsonify, g

from identity_api import db
from identity_api.services.jwt_service import validate_token

API_KEY_HEADER = 'X-API-Key'


def get_bearer_token():
    """Token from the Authorization header, accepting both "Bearer <token>" and a raw token."""
    auth_header = request.headers.get('Authorization', '').strip()
    if not auth_header:
        return None
    if ' ' in auth_header:
        scheme, _, token = auth_header.partition(' ')
        if scheme.lower() != 'bearer':
            return None
        return token.strip() or None
    return auth_header


def token_required(f):
    """
    Decorator to require a valid JWT.

    Usage:
        @bp.route('/protected')
        @token_required
        def protected_route(current_user_id):
            return jsonify({'userId': current_user_id})
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        token = get_bearer_token()
        if not token:
            return jsonify({'message': 'Token is missing'}), 401

        claims = validate_token(token)
        if claims is None:
            return jsonify({'message': 'Token is invalid or expired'}), 401

        g.token_claims = claims
        return f(claims.user_id, *args, **kwargs)
    return decorated


def token_optional(f):
    """
    Decorator that validates a JWT when one is sent.

    Passes the user id, or None for anonymous callers and invalid tokens.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        claims = validate_token(get_bearer_token())
        g.token_claims = claims
        return f(claims.user_id if claims else None, *args, **kwargs)
    return decorated


def admin_required(f):
    """Decorator that combines token_required + an active SU account check."""
    @wraps(f)
    @token_required
    def decorated(current_user_id, *args, **kwargs):
        from identity_api.models import User

        user = db.session.get(User, current_user_id)
        if not user or not user.is_active or not user.is_admin:
            return jsonify({'message': 'Admin access required'}), 403
        return f(current_user_id, *args, **kwargs)
    return decorated


def api_key_or_jwt(scope):
    """
    Decorator accepting either an API key with the given scope or a user JWT.

    Sets g.api_client (ApiClient or None) and g.current_user_id (int or None).
    An API key that is sent but wrong is rejected even if a JWT is present.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            from identity_api.models import ApiClient

            g.api_client = None
            g.current_user_id = None

            raw_key = request.headers.get(API_KEY_HEADER)
            if raw_key:
                client = ApiClient.authenticate(raw_key.strip())
                if client is None:
                    return jsonify({'message': 'Invalid API key'}), 401
                if not client.has_scope(scope):
                    return jsonify({'message': f"API key lacks the '{scope}' scope"}), 403
                client.record_use()
                db.session.commit()
                g.api_client = client
                return f(*args, **kwargs)

            token = get_bearer_token()
            if not token:
                return jsonify({'message': 'API key or token is required'}), 401

            claims = validate_token(token)
            if claims is None:
                return jsonify({'message': 'Token is invalid or expired'}), 401

            g.token_claims = claims
            g.current_user_id = claims.user_id
            return f(*args, **kwargs)
        return decorated
    return decorator
