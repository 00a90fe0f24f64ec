"""Notification outbox: queue rendered messages, deliver them later.

queue_notification() resolves a task and template, renders it and inserts
a NotificationOutbox row. dispatch_pending() (CLI / admin endpoint) sends
due rows by email or SMS, retrying with exponential backoff.
"""

import logging
from datetime import datetime, timedelta

from flask import current_app
from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment

from identity_api import db
from identity_api.models.notification import (
    MailProfile, NotificationTemplate, NotificationTask, NotificationOutbox,
    NotificationHistory, NotificationChannel, OutboxStatus
)
from identity_api.services.email import EmailService, EmailSendError
from identity_api.services.otp_service import mask_identifier
from identity_api.services.sms import SmsService, SmsSendError

logger = logging.getLogger(__name__)

RETRY_BASE_MINUTES = 1

# Used when no task/template row exists for these codes
DEFAULT_TEMPLATES = {
    'OTP_SMS': {
        'channel': NotificationChannel.SMS,
        'subject': None,
        'body': 'Your verification code is {{ code }}. It expires in {{ expiry_minutes }} minutes.',
    },
    'OTP_EMAIL': {
        'channel': NotificationChannel.EMAIL,
        'subject': 'Your verification code',
        'body': (
            'Your verification code is {{ code }}.\n\n'
            'It expires in {{ expiry_minutes }} minutes. '
            'If you did not request this code you can ignore this email.'
        ),
    },
    'PASSWORD_RESET_SMS': {
        'channel': NotificationChannel.SMS,
        'subject': None,
        'body': 'Your password reset code is {{ code }}. It expires in {{ expiry_minutes }} minutes.',
    },
    'PASSWORD_RESET_EMAIL': {
        'channel': NotificationChannel.EMAIL,
        'subject': 'Reset your password',
        'body': (
            'Use this code to reset your password: {{ code }}\n\n'
            'It expires in {{ expiry_minutes }} minutes. '
            'If you did not ask for a password reset you can ignore this email.'
        ),
    },
}

_text_env = SandboxedEnvironment(autoescape=False)
_html_env = SandboxedEnvironment(autoescape=True)


class NotificationError(Exception):
    """Raised when a notification cannot be queued."""


def render(source, data, is_html=False):
    """Render a template string with the sandboxed Jinja2 environment."""
    if not source:
        return ''
    env = _html_env if is_html else _text_env
    try:
        return env.from_string(source).render(**(data or {}))
    except TemplateError as e:
        raise NotificationError(f"Template error: {e}") from e


def _resolve_task(task_code, site_key):
    """Active task for the site, else the global one."""
    if site_key:
        task = NotificationTask.query.filter_by(code=task_code, site_key=site_key, status='Active').first()
        if task:
            return task
    return NotificationTask.query.filter_by(code=task_code, site_key=None, status='Active').first()


def _resolve_template(task_code, site_key, language):
    """Most specific template: site+language, site+en, global+language, global+en."""
    candidates = []
    if site_key:
        candidates += [(site_key, language), (site_key, 'en')]
    candidates += [(None, language), (None, 'en')]

    for candidate_site, candidate_lang in candidates:
        template = NotificationTemplate.query.filter_by(
            code=task_code, site_key=candidate_site, language=candidate_lang
        ).first()
        if template:
            return template
    return None


def queue_notification(task_code, to=None, data=None, site_key=None, user_id=None,
                       priority=5, language=None, scheduled_at=None):
    """
    Render a notification and add it to the outbox.

    Args:
        task_code: NotificationTask code, e.g. 'OTP_SMS'
        to: recipient email/phone; the task's mail_to is used when omitted
        data: values available to the template
        site_key: tenant, selects site-specific tasks, templates and senders

    Returns:
        The new NotificationOutbox row (flushed, not committed)

    Raises:
        NotificationError when the task is unknown or has no recipient
    """
    task = _resolve_task(task_code, site_key)
    default = DEFAULT_TEMPLATES.get(task_code)

    if task is None and default is None:
        raise NotificationError(f"Unknown notification task '{task_code}'")

    language = language or (task.language if task else 'en')
    template = None
    if task is not None:
        template = task.template or _resolve_template(task_code, site_key, language)
    else:
        template = _resolve_template(task_code, site_key, language)

    if template is not None:
        subject_source, body_source, is_html = template.subject, template.body, template.is_html
    elif default is not None:
        subject_source, body_source, is_html = default['subject'], default['body'], False
    else:
        raise NotificationError(f"No template for notification task '{task_code}'")

    if task is not None:
        channel = task.task_type
    elif template is not None:
        channel = template.type
    else:
        channel = default['channel']

    recipient = to or (task.mail_to if task else None)
    if task is not None and task.test_mail_to:
        recipient = task.test_mail_to
    if not recipient:
        raise NotificationError(f"No recipient for notification task '{task_code}'")

    context = dict(data or {})
    context.setdefault('site_key', site_key)

    outbox = NotificationOutbox(
        task_id=task.id if task else None,
        task_code=task_code,
        channel=channel,
        site_key=site_key,
        user_id=user_id,
        to_address=recipient,
        cc=task.mail_cc if task else None,
        bcc=task.mail_bcc if task else None,
        from_name=task.mail_from_name if task else None,
        from_address=task.mail_from if task else None,
        mail_profile_id=task.mail_profile_id if task else None,
        subject=render(subject_source, context),
        body=render(body_source, context, is_html=is_html),
        is_html=is_html,
        priority=priority,
        status=OutboxStatus.PENDING,
        attempts=0,
        max_attempts=current_app.config['NOTIFICATION_MAX_ATTEMPTS'],
        scheduled_at=scheduled_at or datetime.utcnow(),
    )
    db.session.add(outbox)
    db.session.flush()

    logger.info(f"Queued {task_code} ({channel}) for {mask_identifier(recipient)}")

    if current_app.config.get('NOTIFICATION_SEND_IMMEDIATELY'):
        deliver(outbox)

    return outbox


def _mail_profile_for(outbox):
    if outbox.mail_profile_id:
        profile = db.session.get(MailProfile, outbox.mail_profile_id)
        if profile and profile.is_active:
            return profile
    if outbox.site_key:
        profile = MailProfile.query.filter_by(site_key=outbox.site_key, is_active=True).first()
        if profile:
            return profile
    return MailProfile.query.filter_by(site_key=None, is_active=True).first()


def _send(outbox):
    config = current_app.config
    if outbox.channel == NotificationChannel.SMS:
        SmsService(config).send_sms(outbox.to_address, outbox.body)
    else:
        EmailService(config, _mail_profile_for(outbox)).send_email(
            outbox.to_address,
            outbox.subject,
            outbox.body,
            is_html=outbox.is_html,
            cc=outbox.cc,
            bcc=outbox.bcc,
            from_email=outbox.from_address,
            from_name=outbox.from_name,
        )


def _record_history(outbox, status, error=None):
    history = NotificationHistory(
        outbox_id=outbox.id,
        task_code=outbox.task_code,
        channel=outbox.channel,
        site_key=outbox.site_key,
        user_id=outbox.user_id,
        to_address=outbox.to_address,
        subject=outbox.subject,
        status=status,
        attempts=outbox.attempts,
        error=error,
        sent_at=outbox.sent_at,
    )
    history.set_details({'priority': outbox.priority, 'isHtml': outbox.is_html})
    db.session.add(history)
    return history


def deliver(outbox):
    """
    Attempt one delivery of an outbox row. Caller commits.

    Returns:
        The row's new status: Sent, Pending (retry scheduled) or Failed
    """
    outbox.attempts += 1
    now = datetime.utcnow()

    try:
        _send(outbox)
    except (EmailSendError, SmsSendError) as e:
        outbox.last_error = str(e)
        if outbox.attempts >= outbox.max_attempts:
            outbox.status = OutboxStatus.FAILED
            outbox.next_retry_at = None
            _record_history(outbox, OutboxStatus.FAILED, error=str(e))
            logger.error(f"Notification {outbox.id} failed after {outbox.attempts} attempts: {e}")
        else:
            delay = RETRY_BASE_MINUTES * (2 ** outbox.attempts)
            outbox.next_retry_at = now + timedelta(minutes=delay)
            logger.warning(f"Notification {outbox.id} attempt {outbox.attempts} failed, retry in {delay} min: {e}")
        return outbox.status

    outbox.status = OutboxStatus.SENT
    outbox.sent_at = now
    outbox.next_retry_at = None
    outbox.last_error = None
    _record_history(outbox, OutboxStatus.SENT)
    return outbox.status


def dispatch_pending(limit=50):
    """
    Deliver due outbox rows, highest priority (lowest number) and oldest first.

    Returns:
        dict with counts of sent, retrying and failed rows
    """
    now = datetime.utcnow()
    due = NotificationOutbox.query.filter(
        NotificationOutbox.status == OutboxStatus.PENDING,
        NotificationOutbox.scheduled_at <= now,
        db.or_(NotificationOutbox.next_retry_at.is_(None), NotificationOutbox.next_retry_at <= now),
    ).order_by(
        NotificationOutbox.priority.asc(),
        NotificationOutbox.created_at.asc(),
        NotificationOutbox.id.asc(),
    ).limit(limit).all()

    counts = {'sent': 0, 'retrying': 0, 'failed': 0}
    for outbox in due:
        status = deliver(outbox)
        db.session.commit()
        if status == OutboxStatus.SENT:
            counts['sent'] += 1
        elif status == OutboxStatus.FAILED:
            counts['failed'] += 1
        else:
            counts['retrying'] += 1

    if due:
        logger.info(f"Dispatched {len(due)} notifications: {counts}")
    return counts
