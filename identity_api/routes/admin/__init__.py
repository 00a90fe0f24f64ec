"""Admin routes package (system role SU only).

- dashboard: headline stats
- sites: site CRUD and logos
- users: user search, detail and update
- payments: payment listing with totals
- api_clients: partner API keys
- notifications: mail profiles, templates, tasks, outbox and dispatch
"""

from flask import Blueprint, request

admin_bp = Blueprint('admin', __name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def get_paging():
    """page/pageSize query params, clamped to sane values."""
    page = max(request.args.get('page', 1, type=int), 1)
    page_size = request.args.get('pageSize', DEFAULT_PAGE_SIZE, type=int)
    page_size = max(1, min(page_size, MAX_PAGE_SIZE))
    return page, page_size


def total_pages(total, page_size):
    return (total + page_size - 1) // page_size


# Import all route modules (registers routes on admin_bp)
from identity_api.routes.admin import dashboard  # noqa: E402,F401
from identity_api.routes.admin import sites  # noqa: E402,F401
from identity_api.routes.admin import users  # noqa: E402,F401
from identity_api.routes.admin import payments  # noqa: E402,F401
from identity_api.routes.admin import api_clients  # noqa: E402,F401
from identity_api.routes.admin import notifications  # noqa: E402,F401
