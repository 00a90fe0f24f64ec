"""Notification outbox tables.

Messages are never sent from inside a request. Callers queue a row in
notification_outbox; the dispatcher (services/notifications.py) delivers
it and writes notification_history.
"""

import json
from datetime import datetime
from identity_api import db


class NotificationChannel:
    EMAIL = 'Email'
    SMS = 'SMS'


class OutboxStatus:
    PENDING = 'Pending'
    SENT = 'Sent'
    FAILED = 'Failed'


class MailProfile(db.Model):
    """SMTP sender settings, optionally scoped to a site."""

    __tablename__ = 'mail_profiles'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    site_key = db.Column(db.String(50), nullable=True, index=True)
    from_name = db.Column(db.String(100), nullable=True)
    from_email = db.Column(db.String(255), nullable=True)
    smtp_host = db.Column(db.String(255), nullable=True)
    smtp_port = db.Column(db.Integer, default=587, nullable=False)
    auth_user = db.Column(db.String(255), nullable=True)
    # Name of the environment variable holding the SMTP password
    auth_secret_ref = db.Column(db.String(100), nullable=True)
    security_mode = db.Column(db.String(30), default='StartTlsWhenAvailable', nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'siteKey': self.site_key,
            'fromName': self.from_name,
            'fromEmail': self.from_email,
            'smtpHost': self.smtp_host,
            'smtpPort': self.smtp_port,
            'authUser': self.auth_user,
            'authSecretRef': self.auth_secret_ref,
            'securityMode': self.security_mode,
            'isActive': self.is_active,
        }

    def __repr__(self):
        return f'<MailProfile {self.name}>'


class NotificationTemplate(db.Model):
    """Subject/body template, rendered with Jinja2 placeholders like {{ code }}."""

    __tablename__ = 'notification_templates'
    __table_args__ = (
        db.UniqueConstraint('code', 'site_key', 'language', name='uq_notification_templates_code_site_lang'),
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, index=True)
    site_key = db.Column(db.String(50), nullable=True, index=True)
    language = db.Column(db.String(10), default='en', nullable=False)
    type = db.Column(db.String(20), default=NotificationChannel.EMAIL, nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=True)
    body = db.Column(db.Text, nullable=False)
    is_html = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'siteKey': self.site_key,
            'language': self.language,
            'type': self.type,
            'subject': self.subject,
            'body': self.body,
            'isHtml': self.is_html,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<NotificationTemplate {self.code} {self.site_key} {self.language}>'


class NotificationTask(db.Model):
    """A named notification (e.g. OTP_SMS) wiring a template to a sender."""

    __tablename__ = 'notification_tasks'
    __table_args__ = (
        db.UniqueConstraint('code', 'site_key', name='uq_notification_tasks_code_site'),
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, index=True)
    task_type = db.Column(db.String(20), default=NotificationChannel.EMAIL, nullable=False)
    status = db.Column(db.String(20), default='Active', nullable=False, index=True)
    site_key = db.Column(db.String(50), nullable=True, index=True)
    mail_profile_id = db.Column(db.Integer, db.ForeignKey('mail_profiles.id', ondelete='SET NULL'), nullable=True)
    template_id = db.Column(db.Integer, db.ForeignKey('notification_templates.id', ondelete='SET NULL'), nullable=True)
    language = db.Column(db.String(10), default='en', nullable=False)
    mail_from_name = db.Column(db.String(100), nullable=True)
    mail_from = db.Column(db.String(255), nullable=True)
    mail_to = db.Column(db.String(500), nullable=True)
    mail_cc = db.Column(db.String(500), nullable=True)
    mail_bcc = db.Column(db.String(500), nullable=True)
    # When set, every message of this task goes here instead of the real recipient
    test_mail_to = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    mail_profile = db.relationship('MailProfile')
    template = db.relationship('NotificationTemplate')

    @property
    def is_active(self):
        return self.status == 'Active'

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'taskType': self.task_type,
            'status': self.status,
            'siteKey': self.site_key,
            'mailProfileId': self.mail_profile_id,
            'templateId': self.template_id,
            'language': self.language,
            'mailFromName': self.mail_from_name,
            'mailFrom': self.mail_from,
            'mailTo': self.mail_to,
            'mailCc': self.mail_cc,
            'mailBcc': self.mail_bcc,
            'testMailTo': self.test_mail_to,
        }

    def __repr__(self):
        return f'<NotificationTask {self.code}>'


class NotificationOutbox(db.Model):
    """A rendered message waiting for delivery."""

    __tablename__ = 'notification_outbox'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('notification_tasks.id', ondelete='SET NULL'), nullable=True)
    task_code = db.Column(db.String(50), nullable=False)
    channel = db.Column(db.String(20), nullable=False)
    site_key = db.Column(db.String(50), nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True)
    to_address = db.Column(db.String(500), nullable=False)
    cc = db.Column(db.String(500), nullable=True)
    bcc = db.Column(db.String(500), nullable=True)
    from_name = db.Column(db.String(100), nullable=True)
    from_address = db.Column(db.String(255), nullable=True)
    mail_profile_id = db.Column(db.Integer, nullable=True)
    subject = db.Column(db.String(255), nullable=True)
    body = db.Column(db.Text, nullable=False)
    is_html = db.Column(db.Boolean, default=False, nullable=False)
    priority = db.Column(db.Integer, default=5, nullable=False, index=True)  # lower is sent first
    status = db.Column(db.String(20), default=OutboxStatus.PENDING, nullable=False, index=True)
    attempts = db.Column(db.Integer, default=0, nullable=False)
    max_attempts = db.Column(db.Integer, default=3, nullable=False)
    scheduled_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    next_retry_at = db.Column(db.DateTime, nullable=True, index=True)
    last_error = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    sent_at = db.Column(db.DateTime, nullable=True)

    task = db.relationship('NotificationTask')

    def to_dict(self):
        return {
            'id': self.id,
            'taskCode': self.task_code,
            'channel': self.channel,
            'siteKey': self.site_key,
            'userId': self.user_id,
            'toAddress': self.to_address,
            'subject': self.subject,
            'priority': self.priority,
            'status': self.status,
            'attempts': self.attempts,
            'maxAttempts': self.max_attempts,
            'scheduledAt': self.scheduled_at.isoformat() if self.scheduled_at else None,
            'nextRetryAt': self.next_retry_at.isoformat() if self.next_retry_at else None,
            'lastError': self.last_error,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'sentAt': self.sent_at.isoformat() if self.sent_at else None,
        }

    def __repr__(self):
        return f'<NotificationOutbox {self.id} {self.task_code} {self.status}>'


class NotificationHistory(db.Model):
    """Delivery log, one row per final outcome."""

    __tablename__ = 'notification_history'

    id = db.Column(db.Integer, primary_key=True)
    outbox_id = db.Column(db.Integer, nullable=True)
    task_code = db.Column(db.String(50), nullable=False)
    channel = db.Column(db.String(20), nullable=False)
    site_key = db.Column(db.String(50), nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    to_address = db.Column(db.String(500), nullable=False)
    subject = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), nullable=False, index=True)
    attempts = db.Column(db.Integer, default=0, nullable=False)
    error = db.Column(db.Text, nullable=True)
    details = db.Column(db.Text, nullable=True)  # JSON string
    sent_at = db.Column(db.DateTime, nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def set_details(self, details: dict):
        self.details = json.dumps(details) if details else None

    def get_details(self) -> dict:
        if self.details:
            try:
                return json.loads(self.details)
            except (json.JSONDecodeError, TypeError):
                return {}
        return {}

    def to_dict(self):
        return {
            'id': self.id,
            'outboxId': self.outbox_id,
            'taskCode': self.task_code,
            'channel': self.channel,
            'siteKey': self.site_key,
            'userId': self.user_id,
            'toAddress': self.to_address,
            'subject': self.subject,
            'status': self.status,
            'attempts': self.attempts,
            'error': self.error,
            'details': self.get_details(),
            'sentAt': self.sent_at.isoformat() if self.sent_at else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<NotificationHistory {self.id} {self.task_code} {self.status}>'
