"""Presence tracking for push connections.

Uses Redis when REDIS_URL is set so every worker sees the same state,
otherwise an in-process map (single worker only).
"""

import logging
import threading

import redis
from flask import current_app

logger = logging.getLogger(__name__)

# Redis connection (lazy initialization)
_redis_client = None
_redis_url = None

# Fallback: user_id -> set of socket ids, socket id -> user_id
_local_sockets = {}
_local_owners = {}
_local_lock = threading.Lock()

ONLINE_PREFIX = "push:online:"   # set of socket ids per user
SOCKET_PREFIX = "push:socket:"   # socket id -> user id
ONLINE_TTL = 3600  # refreshed on connect


def get_redis():
    """Get or create Redis connection, or None when Redis is not configured/reachable."""
    global _redis_client, _redis_url

    redis_url = current_app.config.get('REDIS_URL')
    if not redis_url:
        return None

    if _redis_client is not None and _redis_url == redis_url:
        return _redis_client

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
    except redis.RedisError as e:
        logger.error(f"Redis connection failed: {e}")
        return None

    _redis_client, _redis_url = client, redis_url
    logger.info("Redis connected successfully")
    return _redis_client


def set_user_online(user_id: int, socket_id: str) -> None:
    """Record an open connection for a user."""
    r = get_redis()
    if r is not None:
        try:
            pipe = r.pipeline()
            pipe.sadd(f"{ONLINE_PREFIX}{user_id}", socket_id)
            pipe.expire(f"{ONLINE_PREFIX}{user_id}", ONLINE_TTL)
            pipe.setex(f"{SOCKET_PREFIX}{socket_id}", ONLINE_TTL, str(user_id))
            pipe.execute()
            return
        except redis.RedisError as e:
            logger.error(f"Redis set_user_online error: {e}")

    with _local_lock:
        _local_sockets.setdefault(user_id, set()).add(socket_id)
        _local_owners[socket_id] = user_id


def set_user_offline(socket_id: str) -> int:
    """Forget a closed connection. Returns the owning user id, if known."""
    user_id = None

    r = get_redis()
    if r is not None:
        try:
            owner = r.get(f"{SOCKET_PREFIX}{socket_id}")
            if owner:
                user_id = int(owner)
                r.srem(f"{ONLINE_PREFIX}{user_id}", socket_id)
            r.delete(f"{SOCKET_PREFIX}{socket_id}")
        except redis.RedisError as e:
            logger.error(f"Redis set_user_offline error: {e}")

    with _local_lock:
        local_owner = _local_owners.pop(socket_id, None)
        if local_owner is not None:
            sockets = _local_sockets.get(local_owner, set())
            sockets.discard(socket_id)
            if not sockets:
                _local_sockets.pop(local_owner, None)
            user_id = user_id or local_owner

    return user_id


def is_user_online(user_id: int) -> bool:
    """True when the user has at least one open connection."""
    r = get_redis()
    if r is not None:
        try:
            if r.scard(f"{ONLINE_PREFIX}{user_id}") > 0:
                return True
        except redis.RedisError as e:
            logger.error(f"Redis is_user_online error: {e}")

    with _local_lock:
        return bool(_local_sockets.get(user_id))


def reset_local_presence():
    with _local_lock:
        _local_sockets.clear()
        _local_owners.clear()
