"""Subscription and payment records.

Rows are written by the payment provider integration; this service only
reads them for the admin console.
"""

from datetime import datetime
from identity_api import db


class Subscription(db.Model):
    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    site_key = db.Column(db.String(50), nullable=True, index=True)
    plan_name = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(30), default='active', nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=True)
    interval = db.Column(db.String(20), nullable=True)  # month, year
    current_period_end = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'siteKey': self.site_key,
            'planName': self.plan_name,
            'status': self.status,
            'amountCents': self.amount_cents,
            'interval': self.interval,
            'currentPeriodEnd': self.current_period_end.isoformat() if self.current_period_end else None,
        }

    def __repr__(self):
        return f'<Subscription {self.id} {self.status}>'


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    site_key = db.Column(db.String(50), nullable=True, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), default='usd', nullable=False)
    status = db.Column(db.String(30), default='succeeded', nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = db.relationship('User')

    def to_dict(self, include_user=False):
        data = {
            'id': self.id,
            'amountCents': self.amount_cents,
            'currency': self.currency,
            'status': self.status,
            'description': self.description,
            'siteKey': self.site_key,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
        if include_user:
            data['userId'] = self.user_id
            data['userEmail'] = self.user.email if self.user else None
        return data

    def __repr__(self):
        return f'<Payment {self.id} {self.amount_cents} {self.status}>'
