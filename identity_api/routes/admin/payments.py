"""Admin payment listing."""

from datetime import datetime, timedelta

from flask import request, jsonify
from sqlalchemy import func

from identity_api import db
from identity_api.models import Payment
from identity_api.routes.admin import admin_bp, get_paging, total_pages
from identity_api.utils import admin_required


def _parse_date(value):
    """YYYY-MM-DD or full ISO datetime. Raises ValueError."""
    if len(value) == 10:
        return datetime.strptime(value, '%Y-%m-%d')
    return datetime.fromisoformat(value)


@admin_bp.route('/payments', methods=['GET'])
@admin_required
def list_payments(current_user_id):
    """Payments filtered by userId, siteKey, status, fromDate and toDate (inclusive)."""
    page, page_size = get_paging()

    filters = []
    user_id = request.args.get('userId', type=int)
    if user_id:
        filters.append(Payment.user_id == user_id)
    if request.args.get('siteKey'):
        filters.append(Payment.site_key == request.args['siteKey'])
    if request.args.get('status'):
        filters.append(Payment.status == request.args['status'])

    try:
        if request.args.get('fromDate'):
            filters.append(Payment.created_at >= _parse_date(request.args['fromDate']))
        if request.args.get('toDate'):
            to_date = request.args['toDate']
            end = _parse_date(to_date)
            if len(to_date) == 10:
                # whole day
                end = end + timedelta(days=1)
                filters.append(Payment.created_at < end)
            else:
                filters.append(Payment.created_at <= end)
    except ValueError:
        return jsonify({'message': 'Dates must be ISO formatted (YYYY-MM-DD)'}), 400

    query = Payment.query.filter(*filters)
    total = query.count()
    total_amount = db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0)) \
        .filter(*filters).scalar()

    payments = query.order_by(Payment.created_at.desc(), Payment.id.desc()) \
        .offset((page - 1) * page_size).limit(page_size).all()

    return jsonify({
        'payments': [p.to_dict(include_user=True) for p in payments],
        'totalCount': total,
        'totalAmountCents': int(total_amount or 0),
        'page': page,
        'pageSize': page_size,
        'totalPages': total_pages(total, page_size),
    }), 200
