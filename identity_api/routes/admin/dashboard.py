"""Admin dashboard stats."""

from datetime import datetime, timedelta

from flask import jsonify
from sqlalchemy import func

from identity_api import db
from identity_api.models import User, Site, Subscription, Payment
from identity_api.routes.admin import admin_bp
from identity_api.utils import admin_required


@admin_bp.route('/stats', methods=['GET'])
@admin_required
def get_stats(current_user_id):
    """Get overview stats for admin dashboard."""
    now = datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = today - timedelta(days=7)
    month_start = today.replace(day=1)

    revenue = db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0)).filter(
        Payment.status == 'succeeded',
        Payment.created_at >= month_start,
    ).scalar()

    return jsonify({
        'totalUsers': User.query.count(),
        'newUsersToday': User.query.filter(User.created_at >= today).count(),
        'newUsersThisWeek': User.query.filter(User.created_at >= week_ago).count(),
        'newUsersThisMonth': User.query.filter(User.created_at >= month_start).count(),
        'activeSubscriptions': Subscription.query.filter_by(status='active').count(),
        'revenueThisMonthCents': int(revenue or 0),
        'totalSites': Site.query.count(),
        'activeSites': Site.query.filter_by(is_active=True).count(),
    }), 200
