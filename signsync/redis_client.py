import redis

from signsync.config import settings

redis_client = redis.Redis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=settings.redis_timeout_s,
    socket_connect_timeout=settings.redis_timeout_s,
)

# redis connectivity check
def redis_ping() -> bool:
    try:
        return bool(redis_client.ping())
    except Exception:
        return False
