"""Password reset flow: send a code, verify it, set a new password or register."""

from flask import request, jsonify, current_app
from identity_api import db, limiter
from identity_api.models import User
from identity_api.models.otp import PURPOSE_PASSWORD_RESET
from identity_api.routes.auth import auth_bp
from identity_api.routes.auth.core import auth_response, validate_password
from identity_api.routes.auth.otp import rate_limited_response
from identity_api.services.otp_service import (
    send_otp, verify_otp, normalize_email, normalize_phone_number, is_valid_email,
    mask_identifier, CHANNEL_EMAIL, CHANNEL_SMS
)

RESET_SENT_MESSAGE = 'If the details are valid, a verification code has been sent.'


def _identifier_from(data):
    """
    Read the email or phone number from a request body.

    Returns:
        Tuple of (identifier, channel, error_message)
    """
    if data.get('email'):
        email = normalize_email(data['email'])
        if not is_valid_email(email):
            return None, None, 'Invalid email format'
        return email, CHANNEL_EMAIL, None

    if data.get('phoneNumber'):
        phone = normalize_phone_number(data['phoneNumber'])
        if not phone:
            return None, None, 'Invalid phone number format'
        return phone, CHANNEL_SMS, None

    return None, None, 'Email or phone number is required'


def _find_user(identifier, channel):
    if channel == CHANNEL_EMAIL:
        return User.query.filter_by(email=identifier).first()
    return User.query.filter_by(phone_number=identifier).first()


def _mark_verified(user, channel):
    if channel == CHANNEL_EMAIL:
        user.is_email_verified = True
    else:
        user.is_phone_verified = True


@auth_bp.route('/password-reset/send', methods=['POST'])
@limiter.limit("5 per minute")
def password_reset_send():
    """
    Send a reset code to an email or phone number.

    The code goes out whether or not an account exists so the response
    never reveals registered identifiers; the same code lets a new visitor
    quick-register.
    """
    try:
        data = request.get_json(silent=True) or {}
        identifier, channel, error = _identifier_from(data)
        if error:
            return jsonify({'message': error}), 400

        result = send_otp(identifier, PURPOSE_PASSWORD_RESET, channel, site_key=data.get('siteKey'))
        if not result['success']:
            return rate_limited_response(result)

        return jsonify({'success': True, 'message': RESET_SENT_MESSAGE}), 200
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/password-reset/verify', methods=['POST'])
@limiter.limit("10 per minute")
def password_reset_verify():
    """Check a reset code without using it up."""
    try:
        data = request.get_json(silent=True) or {}
        identifier, channel, error = _identifier_from(data)
        if error:
            return jsonify({'message': error}), 400
        if not data.get('code'):
            return jsonify({'message': 'Verification code is required'}), 400

        result = verify_otp(identifier, data['code'], PURPOSE_PASSWORD_RESET, consume=False)
        if not result['success']:
            return jsonify({'success': False, 'message': result['error'], 'accountExists': False}), 400

        return jsonify({
            'success': True,
            'message': 'Code verified',
            'accountExists': _find_user(identifier, channel) is not None,
        }), 200
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/password-reset/complete', methods=['POST'])
@limiter.limit("5 per minute")
def password_reset_complete():
    """Set a new password with a verified code."""
    try:
        data = request.get_json(silent=True) or {}
        identifier, channel, error = _identifier_from(data)
        if error:
            return jsonify({'message': error}), 400
        if not data.get('code'):
            return jsonify({'message': 'Verification code is required'}), 400

        error = validate_password(data.get('newPassword'))
        if error:
            return jsonify({'message': error}), 400

        user = _find_user(identifier, channel)
        if not user:
            return jsonify({'message': 'No account found for these details'}), 404
        if not user.is_active:
            return jsonify({'message': 'Account is disabled'}), 403

        result = verify_otp(identifier, data['code'], PURPOSE_PASSWORD_RESET)
        if not result['success']:
            return jsonify({'success': False, 'message': result['error']}), 400

        user.set_password(data['newPassword'])
        _mark_verified(user, channel)
        db.session.commit()

        current_app.logger.info(f"Password reset completed for {mask_identifier(identifier)}")
        return jsonify({'success': True, 'message': 'Password has been reset'}), 200
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/password-reset/register', methods=['POST'])
@limiter.limit("5 per minute")
def password_reset_register():
    """Create an account for an identifier proven with a reset code."""
    try:
        data = request.get_json(silent=True) or {}
        identifier, channel, error = _identifier_from(data)
        if error:
            return jsonify({'message': error}), 400
        if not data.get('code'):
            return jsonify({'message': 'Verification code is required'}), 400

        error = validate_password(data.get('password'))
        if error:
            return jsonify({'message': error}), 400

        if _find_user(identifier, channel):
            return jsonify({'message': 'An account with these details already exists'}), 409

        result = verify_otp(identifier, data['code'], PURPOSE_PASSWORD_RESET)
        if not result['success']:
            return jsonify({'success': False, 'message': result['error']}), 400

        if channel == CHANNEL_EMAIL:
            user = User(email=identifier)
        else:
            user = User(phone_number=identifier)
        _mark_verified(user, channel)
        user.set_password(data['password'])
        user.record_login()
        db.session.add(user)
        db.session.commit()

        current_app.logger.info(f"Quick registration: user {user.id}")
        return auth_response(user, 201, 'Account created')
    except Exception:
        db.session.rollback()
        raise
