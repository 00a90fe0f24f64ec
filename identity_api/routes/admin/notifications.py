"""Admin configuration of the notification system and its outbox."""

from datetime import datetime

from flask import request, jsonify, current_app
from sqlalchemy import true

from identity_api import db
from identity_api.models import (
    MailProfile, NotificationTemplate, NotificationTask, NotificationOutbox
)
from identity_api.models.notification import NotificationChannel, OutboxStatus
from identity_api.routes.admin import admin_bp, get_paging, total_pages
from identity_api.services.email import SECURITY_MODES
from identity_api.services.notifications import dispatch_pending
from identity_api.utils import admin_required

CHANNELS = (NotificationChannel.EMAIL, NotificationChannel.SMS)
TASK_STATUSES = ('Active', 'Inactive')

# camelCase body field -> (column, type, required on create)
PROFILE_FIELDS = {
    'name': ('name', str, True),
    'siteKey': ('site_key', str, False),
    'fromName': ('from_name', str, False),
    'fromEmail': ('from_email', str, False),
    'smtpHost': ('smtp_host', str, False),
    'smtpPort': ('smtp_port', int, False),
    'authUser': ('auth_user', str, False),
    'authSecretRef': ('auth_secret_ref', str, False),
    'securityMode': ('security_mode', str, False),
    'isActive': ('is_active', bool, False),
}

TEMPLATE_FIELDS = {
    'code': ('code', str, True),
    'siteKey': ('site_key', str, False),
    'language': ('language', str, False),
    'type': ('type', str, False),
    'subject': ('subject', str, False),
    'body': ('body', str, True),
    'isHtml': ('is_html', bool, False),
}

TASK_FIELDS = {
    'code': ('code', str, True),
    'taskType': ('task_type', str, False),
    'status': ('status', str, False),
    'siteKey': ('site_key', str, False),
    'mailProfileId': ('mail_profile_id', int, False),
    'templateId': ('template_id', int, False),
    'language': ('language', str, False),
    'mailFromName': ('mail_from_name', str, False),
    'mailFrom': ('mail_from', str, False),
    'mailTo': ('mail_to', str, False),
    'mailCc': ('mail_cc', str, False),
    'mailBcc': ('mail_bcc', str, False),
    'testMailTo': ('test_mail_to', str, False),
}


def _apply_fields(obj, data, fields, creating):
    """Copy typed fields from a request body. Returns error message or None."""
    for field, (column, expected, required) in fields.items():
        if field not in data:
            if creating and required:
                return f'{field} is required'
            continue
        value = data[field]
        if value is None or value == '':
            if required:
                return f'{field} is required'
            if expected is bool:
                return f'{field} must be a boolean'
            value = None
        elif not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            return f'{field} must be a {expected.__name__}'
        setattr(obj, column, value)
    return None


def _validate_choice(value, choices, field):
    if value is not None and value not in choices:
        return f"{field} must be one of: {', '.join(choices)}"
    return None


def _save(obj, data, fields, creating, checks):
    """Apply, validate and commit. Returns a Flask response tuple."""
    error = _apply_fields(obj, data, fields, creating)
    if not error:
        for check in checks:
            error = check(obj)
            if error:
                break
    if error:
        db.session.rollback()
        return jsonify({'message': error}), 400

    if creating:
        db.session.add(obj)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return jsonify(obj.to_dict()), 201 if creating else 200


# ============================================================================
# MAIL PROFILES
# ============================================================================

def _check_profile(profile):
    return _validate_choice(profile.security_mode, SECURITY_MODES, 'securityMode')


@admin_bp.route('/notifications/profiles', methods=['GET'])
@admin_required
def list_mail_profiles(current_user_id):
    profiles = MailProfile.query.order_by(MailProfile.name).all()
    return jsonify([p.to_dict() for p in profiles]), 200


@admin_bp.route('/notifications/profiles', methods=['POST'])
@admin_required
def create_mail_profile(current_user_id):
    return _save(MailProfile(), request.get_json(silent=True) or {}, PROFILE_FIELDS, True, [_check_profile])


@admin_bp.route('/notifications/profiles/<int:profile_id>', methods=['PUT'])
@admin_required
def update_mail_profile(current_user_id, profile_id):
    profile = db.session.get(MailProfile, profile_id)
    if not profile:
        return jsonify({'message': 'Mail profile not found'}), 404
    return _save(profile, request.get_json(silent=True) or {}, PROFILE_FIELDS, False, [_check_profile])


# ============================================================================
# TEMPLATES
# ============================================================================

def _check_template(template):
    template.language = template.language or 'en'
    template.type = template.type or NotificationChannel.EMAIL
    error = _validate_choice(template.type, CHANNELS, 'type')
    if error:
        return error
    with db.session.no_autoflush:
        duplicate = NotificationTemplate.query.filter(
            NotificationTemplate.code == template.code,
            NotificationTemplate.site_key == template.site_key if template.site_key
            else NotificationTemplate.site_key.is_(None),
            NotificationTemplate.language == template.language,
            NotificationTemplate.id != template.id if template.id else true(),
        ).first()
    if duplicate:
        return 'A template with this code, site and language already exists'
    template.updated_at = datetime.utcnow()
    return None


@admin_bp.route('/notifications/templates', methods=['GET'])
@admin_required
def list_templates(current_user_id):
    query = NotificationTemplate.query
    if request.args.get('code'):
        query = query.filter_by(code=request.args['code'])
    templates = query.order_by(NotificationTemplate.code, NotificationTemplate.language).all()
    return jsonify([t.to_dict() for t in templates]), 200


@admin_bp.route('/notifications/templates', methods=['POST'])
@admin_required
def create_template(current_user_id):
    return _save(NotificationTemplate(), request.get_json(silent=True) or {}, TEMPLATE_FIELDS, True,
                 [_check_template])


@admin_bp.route('/notifications/templates/<int:template_id>', methods=['PUT'])
@admin_required
def update_template(current_user_id, template_id):
    template = db.session.get(NotificationTemplate, template_id)
    if not template:
        return jsonify({'message': 'Template not found'}), 404
    return _save(template, request.get_json(silent=True) or {}, TEMPLATE_FIELDS, False, [_check_template])


# ============================================================================
# TASKS
# ============================================================================

def _check_task(task):
    task.language = task.language or 'en'
    task.task_type = task.task_type or NotificationChannel.EMAIL
    task.status = task.status or 'Active'
    error = (_validate_choice(task.task_type, CHANNELS, 'taskType')
             or _validate_choice(task.status, TASK_STATUSES, 'status'))
    if error:
        return error
    with db.session.no_autoflush:
        if task.mail_profile_id and not db.session.get(MailProfile, task.mail_profile_id):
            return 'Mail profile not found'
        if task.template_id and not db.session.get(NotificationTemplate, task.template_id):
            return 'Template not found'
        duplicate = NotificationTask.query.filter(
            NotificationTask.code == task.code,
            NotificationTask.site_key == task.site_key if task.site_key
            else NotificationTask.site_key.is_(None),
            NotificationTask.id != task.id if task.id else true(),
        ).first()
    if duplicate:
        return 'A task with this code already exists for the site'
    return None


@admin_bp.route('/notifications/tasks', methods=['GET'])
@admin_required
def list_tasks(current_user_id):
    tasks = NotificationTask.query.order_by(NotificationTask.code).all()
    return jsonify([t.to_dict() for t in tasks]), 200


@admin_bp.route('/notifications/tasks', methods=['POST'])
@admin_required
def create_task(current_user_id):
    return _save(NotificationTask(), request.get_json(silent=True) or {}, TASK_FIELDS, True, [_check_task])


@admin_bp.route('/notifications/tasks/<int:task_id>', methods=['PUT'])
@admin_required
def update_task(current_user_id, task_id):
    task = db.session.get(NotificationTask, task_id)
    if not task:
        return jsonify({'message': 'Task not found'}), 404
    return _save(task, request.get_json(silent=True) or {}, TASK_FIELDS, False, [_check_task])


# ============================================================================
# OUTBOX
# ============================================================================

@admin_bp.route('/notifications/outbox', methods=['GET'])
@admin_required
def list_outbox(current_user_id):
    page, page_size = get_paging()
    query = NotificationOutbox.query

    status = request.args.get('status')
    if status:
        if status not in (OutboxStatus.PENDING, OutboxStatus.SENT, OutboxStatus.FAILED):
            return jsonify({'message': 'Unknown status'}), 400
        query = query.filter_by(status=status)

    total = query.count()
    rows = query.order_by(NotificationOutbox.created_at.desc(), NotificationOutbox.id.desc()) \
        .offset((page - 1) * page_size).limit(page_size).all()

    return jsonify({
        'items': [row.to_dict() for row in rows],
        'totalCount': total,
        'page': page,
        'pageSize': page_size,
        'totalPages': total_pages(total, page_size),
    }), 200


@admin_bp.route('/notifications/dispatch', methods=['POST'])
@admin_required
def dispatch_outbox(current_user_id):
    """Send due outbox rows now."""
    limit = request.args.get('limit', 50, type=int)
    limit = max(1, min(limit, 500))
    result = dispatch_pending(limit=limit)
    current_app.logger.info(f"Outbox dispatch by admin {current_user_id}: {result}")
    return jsonify(result), 200
