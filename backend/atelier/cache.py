from __future__ import annotations

import json
import logging
import os
from typing import Any

import redis
from redis.exceptions import RedisError

# purpose: best-effort board layout cache in redis (fakeredis under TESTING)
# inputs: board ids and serialised layout snapshots
# outputs: cached layout dicts or None; failures logged, never raised
# status: active

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
LAYOUT_TTL_SECONDS = int(os.getenv("LAYOUT_CACHE_TTL", "3600"))
_redis = None


def get_redis():
    global _redis
    if _redis is None:
        if os.getenv("TESTING") == "1":
            import fakeredis

            _redis = fakeredis.FakeRedis()
        else:
            _redis = redis.Redis.from_url(REDIS_URL, socket_timeout=1)
    return _redis


def layout_key(board_id: int) -> str:
    return f"board:{board_id}:layout"


def get_cached_layout(board_id: int) -> dict[str, Any] | None:
    try:
        raw = get_redis().get(layout_key(board_id))
    except RedisError as exc:
        logger.warning("layout cache read failed for board %s: %s", board_id, exc)
        return None
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode()
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def store_layout(board_id: int, layout: dict[str, Any]) -> None:
    try:
        get_redis().set(layout_key(board_id), json.dumps(layout), ex=LAYOUT_TTL_SECONDS)
    except RedisError as exc:
        logger.warning("layout cache write failed for board %s: %s", board_id, exc)


def invalidate_board(board_id: int) -> None:
    """Drop any cached layout for ``board_id``; errors propagate to the hook runner."""

    get_redis().delete(layout_key(board_id))
