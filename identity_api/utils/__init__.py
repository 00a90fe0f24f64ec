"""Shared utilities for the identity service.

This package contains helpers that are shared across multiple route
files to reduce code duplication.
"""

from identity_api.utils.auth import (
    token_required,
    token_optional,
    admin_required,
    api_key_or_jwt,
    get_bearer_token,
)

__all__ = [
    'token_required',
    'token_optional',
    'admin_required',
    'api_key_or_jwt',
    'get_bearer_token',
]
