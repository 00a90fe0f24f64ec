"""Database models for the identity service."""

from .user import User
from .site import Site, UserSite
from .otp import OtpRequest, OtpRateLimit
from .asset import Asset
from .setting import Setting
from .geo import Country, ProvinceState, City, Address
from .notification import (
    MailProfile, NotificationTemplate, NotificationTask, NotificationOutbox, NotificationHistory
)
from .api_client import ApiClient
from .billing import Subscription, Payment

__all__ = [
    'User', 'Site', 'UserSite', 'OtpRequest', 'OtpRateLimit', 'Asset', 'Setting',
    'Country', 'ProvinceState', 'City', 'Address',
    'MailProfile', 'NotificationTemplate', 'NotificationTask', 'NotificationOutbox', 'NotificationHistory',
    'ApiClient', 'Subscription', 'Payment',
]
