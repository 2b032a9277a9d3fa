# leadscout/queueing/redis_conn.py
from functools import lru_cache

from redis import Redis

from leadscout.config import app_config


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    # Envelopes are stored as JSON text; decode replies to str.
    return Redis.from_url(app_config.queue.redis_url, decode_responses=True)
