"""Sites (tenants) and user membership."""

from datetime import datetime
from identity_api import db


class Site(db.Model):
    """A front-end property that shares the identity service.

    The key is the tenant identifier carried in tokens, notification rows
    and asset paths.
    """

    __tablename__ = 'sites'

    key = db.Column(db.String(50), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    url = db.Column(db.String(500), nullable=True)
    logo_url = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    requires_subscription = db.Column(db.Boolean, default=False, nullable=False)
    monthly_price_cents = db.Column(db.Integer, nullable=True)
    yearly_price_cents = db.Column(db.Integer, nullable=True)
    display_order = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'key': self.key,
            'name': self.name,
            'description': self.description,
            'url': self.url,
            'logoUrl': self.logo_url,
            'isActive': self.is_active,
            'requiresSubscription': self.requires_subscription,
            'monthlyPriceCents': self.monthly_price_cents,
            'yearlyPriceCents': self.yearly_price_cents,
            'displayOrder': self.display_order,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<Site {self.key}>'


class UserSite(db.Model):
    """Membership of a user in a site."""

    __tablename__ = 'user_sites'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'site_key', name='uq_user_sites_user_site'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    site_key = db.Column(db.String(50), db.ForeignKey('sites.key'), nullable=False, index=True)
    role = db.Column(db.String(20), default='member', nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'siteKey': self.site_key,
            'role': self.role,
            'isActive': self.is_active,
            'joinedAt': self.joined_at.isoformat() if self.joined_at else None,
        }

    def __repr__(self):
        return f'<UserSite user={self.user_id} site={self.site_key}>'
