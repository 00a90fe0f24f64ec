"""SMTP email sender used by the notification dispatcher."""

import logging
import os
import smtplib
import socket
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from identity_api.services.otp_service import mask_identifier

logger = logging.getLogger(__name__)

SECURITY_MODES = ('SslOnConnect', 'StartTls', 'StartTlsWhenAvailable', 'None')


class EmailSendError(Exception):
    """Raised when an email could not be handed to the SMTP server."""


class EmailService:
    """
    Sends one message over SMTP.

    Settings come from a MailProfile row when one is given, otherwise from
    the app's SMTP_* config. With no credentials at all the service runs in
    dev mode: the message is logged and reported as sent.
    """

    def __init__(self, config, profile=None):
        self.smtp_host = config.get('SMTP_HOST', 'smtp.gmail.com')
        self.smtp_port = int(config.get('SMTP_PORT', 587))
        self.smtp_user = config.get('SMTP_USER', '')
        self.smtp_password = config.get('SMTP_PASSWORD', '')
        self.from_email = config.get('FROM_EMAIL') or self.smtp_user
        self.from_name = config.get('FROM_NAME', 'Funtime')
        self.smtp_timeout = int(config.get('SMTP_TIMEOUT', 10))
        self.security_mode = 'StartTlsWhenAvailable'

        if profile is not None:
            self.smtp_host = profile.smtp_host or self.smtp_host
            self.smtp_port = profile.smtp_port or self.smtp_port
            self.smtp_user = profile.auth_user or self.smtp_user
            if profile.auth_secret_ref:
                self.smtp_password = os.getenv(profile.auth_secret_ref, '')
            self.from_email = profile.from_email or self.from_email
            self.from_name = profile.from_name or self.from_name
            self.security_mode = profile.security_mode or self.security_mode

    @property
    def is_configured(self):
        return bool(self.smtp_user and self.smtp_password)

    def _create_connection(self):
        """Create SMTP connection with timeout."""
        if self.security_mode == 'SslOnConnect':
            server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.smtp_timeout)
        else:
            server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.smtp_timeout)
            if self.security_mode != 'None':
                server.ehlo()
                if server.has_extn('starttls'):
                    server.starttls()
                    server.ehlo()
                elif self.security_mode == 'StartTls':
                    server.quit()
                    raise EmailSendError('SMTP server does not support STARTTLS')
        if self.smtp_user and self.smtp_password:
            server.login(self.smtp_user, self.smtp_password)
        return server

    def send_email(self, to, subject, body, is_html=False, cc=None, bcc=None,
                   from_email=None, from_name=None):
        """
        Send an email.

        Args:
            to: comma separated recipient addresses
            cc, bcc: comma separated addresses (optional)
            from_email, from_name: override the sender for this message

        Raises:
            EmailSendError when SMTP rejects the message or the connection fails
        """
        recipients = _split(to) + _split(cc) + _split(bcc)
        if not recipients:
            raise EmailSendError('No recipients')

        sender = from_email or self.from_email

        if not self.is_configured:
            masked = ', '.join(mask_identifier(address) for address in _split(to))
            logger.info(f"[DEV MODE] SMTP not configured, email to {masked} not sent")
            return

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject or ''
        msg['From'] = formataddr((from_name or self.from_name, sender))
        msg['To'] = ', '.join(_split(to))
        if cc:
            msg['Cc'] = ', '.join(_split(cc))
        msg.attach(MIMEText(body, 'html' if is_html else 'plain', 'utf-8'))

        try:
            server = self._create_connection()
            try:
                server.sendmail(sender, recipients, msg.as_string())
            finally:
                server.quit()
        except socket.timeout as e:
            raise EmailSendError(f"SMTP connection timed out after {self.smtp_timeout}s") from e
        except smtplib.SMTPAuthenticationError as e:
            raise EmailSendError(f"SMTP authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise EmailSendError(f"SMTP error: {e}") from e

        logger.info(f"Email sent to {len(recipients)} recipient(s) via {self.smtp_host}")


def _split(addresses):
    if not addresses:
        return []
    return [a.strip() for a in addresses.replace(';', ',').split(',') if a.strip()]
