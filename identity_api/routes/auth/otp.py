"""Phone OTP login: send a code, verify it and sign in (or sign up)."""

from flask import request, jsonify, current_app
from identity_api import db, limiter
from identity_api.models import User
from identity_api.models.otp import PURPOSE_LOGIN
from identity_api.routes.auth import auth_bp
from identity_api.routes.auth.core import auth_response
from identity_api.services.otp_service import (
    send_otp, verify_otp, normalize_phone_number, mask_identifier, CHANNEL_SMS
)


def rate_limited_response(result):
    response = jsonify({'success': False, 'message': result['error']})
    response.status_code = 429
    if result.get('retry_after'):
        response.headers['Retry-After'] = str(result['retry_after'])
    return response


@auth_bp.route('/otp/send', methods=['POST'])
@limiter.limit("5 per minute")
def otp_send():
    """Send a login code to a phone number."""
    try:
        data = request.get_json(silent=True) or {}

        if not data.get('phoneNumber'):
            return jsonify({'message': 'Phone number is required'}), 400

        phone = normalize_phone_number(data['phoneNumber'])
        if not phone:
            return jsonify({'message': 'Invalid phone number format'}), 400

        result = send_otp(phone, PURPOSE_LOGIN, CHANNEL_SMS, site_key=data.get('siteKey'))
        if not result['success']:
            return rate_limited_response(result)

        return jsonify({'success': True, 'message': result['message']}), 200
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/otp/verify', methods=['POST'])
@limiter.limit("10 per minute")
def otp_verify():
    """Verify a login code; creates the phone account on first sign-in."""
    try:
        data = request.get_json(silent=True) or {}

        if not data.get('phoneNumber') or not data.get('code'):
            return jsonify({'message': 'Phone number and verification code are required'}), 400

        phone = normalize_phone_number(data['phoneNumber'])
        if not phone:
            return jsonify({'message': 'Invalid phone number format'}), 400

        result = verify_otp(phone, data['code'], PURPOSE_LOGIN)
        if not result['success']:
            return jsonify({'success': False, 'message': result['error']}), 400

        user = User.query.filter_by(phone_number=phone).first()
        is_new_user = user is None

        if user:
            if not user.is_active:
                return jsonify({'message': 'Account is disabled'}), 403
        else:
            user = User(phone_number=phone)
            db.session.add(user)

        user.is_phone_verified = True
        user.record_login()
        db.session.commit()

        current_app.logger.info(
            f"Phone login for {mask_identifier(phone)}: user {user.id} (new={is_new_user})"
        )
        return auth_response(user, 201 if is_new_user else 200)
    except Exception:
        db.session.rollback()
        raise
