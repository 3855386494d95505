import redis
from django.conf import settings
from typing import Optional

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Shared client for notification pub/sub and health checks.

    ``REDIS_URL`` already carries the password when one is configured.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore
            settings.REDIS_URL, socket_connect_timeout=2
        )
    return _redis_client
