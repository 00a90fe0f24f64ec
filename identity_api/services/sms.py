"""Twilio SMS sender used by the notification dispatcher."""

import logging

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from identity_api.services.otp_service import mask_identifier

logger = logging.getLogger(__name__)


class SmsSendError(Exception):
    """Raised when Twilio refuses or fails to accept a message."""


class SmsService:
    def __init__(self, config):
        self.account_sid = config.get('TWILIO_ACCOUNT_SID')
        self.auth_token = config.get('TWILIO_AUTH_TOKEN')
        self.from_number = config.get('TWILIO_FROM_NUMBER')
        self._client = None

    @property
    def is_configured(self):
        return bool(self.account_sid and self.auth_token and self.from_number)

    def get_client(self):
        """Get Twilio client instance."""
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def send_sms(self, to, body):
        """
        Send a text message.

        Returns:
            Twilio message SID, or None in dev mode (credentials not set)

        Raises:
            SmsSendError on any Twilio error
        """
        if not self.is_configured:
            logger.info(f"[DEV MODE] Twilio not configured, SMS to {mask_identifier(to)} not sent")
            return None

        try:
            message = self.get_client().messages.create(to=to, from_=self.from_number, body=body)
        except TwilioRestException as e:
            # 21211: invalid 'To' number, 21614: not a mobile number
            if e.code in (21211, 21614):
                raise SmsSendError(f"Invalid phone number ({e.code})") from e
            raise SmsSendError(f"Twilio error {e.code}: {e.msg}") from e

        logger.info(f"SMS queued by Twilio, sid={message.sid} status={message.status}")
        return message.sid
