"""Admin user management."""

from datetime import datetime

from flask import request, jsonify, current_app
from sqlalchemy import or_

from identity_api import db
from identity_api.models import User, UserSite, Subscription, Payment
from identity_api.models.user import ADMIN_ROLE
from identity_api.routes.admin import admin_bp, get_paging, total_pages
from identity_api.services.otp_service import normalize_email, is_valid_email, normalize_phone_number
from identity_api.utils import admin_required

RECENT_PAYMENTS_LIMIT = 10


# ============================================================================
# LIST / DETAIL
# ============================================================================

@admin_bp.route('/users', methods=['GET'])
@admin_required
def list_users(current_user_id):
    """Search users by email or phone, newest first."""
    page, page_size = get_paging()
    search = (request.args.get('search') or '').strip()

    query = User.query
    if search:
        search_term = f'%{search}%'
        query = query.filter(or_(
            User.email.ilike(search_term),
            User.phone_number.ilike(search_term),
        ))

    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()) \
        .offset((page - 1) * page_size).limit(page_size).all()

    return jsonify({
        'users': [u.to_admin_dict() for u in users],
        'totalCount': total,
        'page': page,
        'pageSize': page_size,
        'totalPages': total_pages(total, page_size),
    }), 200


@admin_bp.route('/users/<int:user_id>', methods=['GET'])
@admin_required
def get_user(current_user_id, user_id):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404

    data = user.to_admin_dict()
    data['sites'] = [m.to_dict() for m in UserSite.query.filter_by(user_id=user.id).all()]
    data['subscriptions'] = [
        s.to_dict() for s in Subscription.query.filter_by(user_id=user.id)
        .order_by(Subscription.created_at.desc()).all()
    ]
    data['recentPayments'] = [
        p.to_dict() for p in Payment.query.filter_by(user_id=user.id)
        .order_by(Payment.created_at.desc()).limit(RECENT_PAYMENTS_LIMIT).all()
    ]
    return jsonify(data), 200


# ============================================================================
# UPDATE
# ============================================================================

def _apply_user_update(user, data, current_user_id):
    """Apply admin edits. Returns (error_message, status) or None."""
    if 'email' in data:
        email = normalize_email(data['email']) if data['email'] else None
        if email and not is_valid_email(email):
            return 'Invalid email address', 400
        if email and User.query.filter(User.email == email, User.id != user.id).first():
            return 'Email is already in use', 409
        user.email = email

    if 'phoneNumber' in data:
        phone = None
        if data['phoneNumber']:
            phone = normalize_phone_number(data['phoneNumber'])
            if not phone:
                return 'Invalid phone number', 400
            if User.query.filter(User.phone_number == phone, User.id != user.id).first():
                return 'Phone number is already in use', 409
        user.phone_number = phone

    if not user.email and not user.phone_number:
        return 'A user needs an email or a phone number', 400

    if 'systemRole' in data:
        role = data['systemRole'] or None
        if role not in (None, ADMIN_ROLE):
            return f"systemRole must be '{ADMIN_ROLE}' or null", 400
        if user.id == current_user_id and role != ADMIN_ROLE:
            return 'You cannot remove your own admin role', 400
        user.system_role = role

    for field, column in (('isEmailVerified', 'is_email_verified'),
                          ('isPhoneVerified', 'is_phone_verified'),
                          ('isActive', 'is_active')):
        if field in data:
            if not isinstance(data[field], bool):
                return f'{field} must be a boolean', 400
            setattr(user, column, data[field])

    if user.id == current_user_id and not user.is_active:
        return 'You cannot deactivate your own account', 400
    return None


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(current_user_id, user_id):
    try:
        user = db.session.get(User, user_id)
        if not user:
            return jsonify({'message': 'User not found'}), 404

        error = _apply_user_update(user, request.get_json(silent=True) or {}, current_user_id)
        if error:
            db.session.rollback()
            message, status = error
            return jsonify({'message': message}), status

        user.updated_at = datetime.utcnow()
        db.session.commit()

        current_app.logger.info(f"User {user_id} updated by admin {current_user_id}")
        return jsonify(user.to_admin_dict()), 200
    except Exception:
        db.session.rollback()
        raise
