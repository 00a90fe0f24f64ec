"""Core authentication routes: registration, login, token checks, site membership."""

from flask import request, jsonify, current_app
from identity_api import db, limiter
from identity_api.models import User, Site, UserSite
from identity_api.routes.auth import auth_bp
from identity_api.services.jwt_service import generate_token, validate_token
from identity_api.services.otp_service import normalize_email, normalize_phone_number, is_valid_email
from identity_api.utils import token_required

# ---------------------------------------------------------------------------
# Shared helpers (used by sibling modules via import)
# ---------------------------------------------------------------------------

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128


def validate_password(password):
    """Returns an error message or None."""
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        return f'Password must be at least {PASSWORD_MIN_LENGTH} characters'
    if len(password) > PASSWORD_MAX_LENGTH:
        return f'Password must be less than {PASSWORD_MAX_LENGTH} characters'
    return None


def auth_response(user, status=200, message=None):
    """Token + user body returned by every sign-in style endpoint."""
    body = {
        'success': True,
        'token': generate_token(user),
        'user': user.to_dict(),
    }
    if message:
        body['message'] = message
    return jsonify(body), status


def join_site(user, site_key):
    """Add a membership (or reactivate it). Caller commits."""
    membership = UserSite.query.filter_by(user_id=user.id, site_key=site_key).first()
    if membership is None:
        membership = UserSite(user_id=user.id, site_key=site_key)
        db.session.add(membership)
    membership.is_active = True
    return membership


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
def register():
    """Register a new account with email and password."""
    try:
        data = request.get_json(silent=True) or {}

        if not data.get('email') or not data.get('password'):
            return jsonify({'message': 'Email and password are required'}), 400

        email = normalize_email(data['email'])
        password = data['password']
        site_key = data.get('siteKey')

        if not is_valid_email(email):
            return jsonify({'message': 'Invalid email format'}), 400

        error = validate_password(password)
        if error:
            return jsonify({'message': error}), 400

        if User.query.filter_by(email=email).first():
            return jsonify({'message': 'An account with this email already exists'}), 409

        site = None
        if site_key:
            site = Site.query.filter_by(key=site_key, is_active=True).first()
            if not site:
                return jsonify({'message': 'Unknown site'}), 400

        user = User(email=email)
        user.set_password(password)
        user.record_login()
        db.session.add(user)
        db.session.flush()

        if site:
            join_site(user, site.key)

        db.session.commit()
        current_app.logger.info(f"User registered: {user.id}")

        return auth_response(user, 201, 'Registration successful')
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """Sign in with email or phone number and password."""
    try:
        data = request.get_json(silent=True) or {}
        password = data.get('password')

        if data.get('email'):
            user = User.query.filter_by(email=normalize_email(data['email'])).first()
        elif data.get('phoneNumber'):
            phone = normalize_phone_number(data['phoneNumber'])
            user = User.query.filter_by(phone_number=phone).first() if phone else None
        else:
            return jsonify({'message': 'Email or phone number is required'}), 400

        if not password:
            return jsonify({'message': 'Password is required'}), 400
        if not isinstance(password, str):
            return jsonify({'message': 'Password must be a string'}), 400

        if not user or not user.check_password(password):
            return jsonify({'message': 'Invalid credentials'}), 401

        if not user.is_active:
            return jsonify({'message': 'Account is disabled'}), 403

        user.record_login()
        db.session.commit()

        return auth_response(user)
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/me', methods=['GET'])
@limiter.limit("60 per minute")
@token_required
def me(current_user_id):
    """Current user with site memberships."""
    user = db.session.get(User, current_user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404

    data = user.to_dict()
    data['sites'] = [m.to_dict() for m in user.sites.filter_by(is_active=True).all()]
    return jsonify(data), 200


@auth_bp.route('/validate', methods=['POST'])
@limiter.limit("120 per minute")
def validate():
    """Let partner sites check a token issued by this service."""
    data = request.get_json(silent=True) or {}
    claims = validate_token(data.get('token'))

    if claims is None:
        return jsonify({'valid': False, 'message': 'Invalid or expired token'}), 200

    return jsonify({
        'valid': True,
        'userId': claims.user_id,
        'email': claims.email,
        'phoneNumber': claims.phone_number,
        'systemRole': claims.role,
        'sites': claims.sites,
    }), 200


@auth_bp.route('/sites/<site_key>/join', methods=['POST'])
@limiter.limit("10 per minute")
@token_required
def join(current_user_id, site_key):
    """Join an active site and get a token that includes it."""
    try:
        user = db.session.get(User, current_user_id)
        if not user:
            return jsonify({'message': 'User not found'}), 404
        if not user.is_active:
            return jsonify({'message': 'Account is disabled'}), 403

        site = Site.query.filter_by(key=site_key, is_active=True).first()
        if not site:
            return jsonify({'message': 'Site not found'}), 404

        join_site(user, site.key)
        db.session.commit()

        current_app.logger.info(f"User {user.id} joined site {site.key}")
        return auth_response(user, message=f'Joined {site.name}')
    except Exception:
        db.session.rollback()
        raise
