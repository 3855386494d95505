import json
import logging
import time
from typing import Any, Callable, Iterable, Iterator, Optional

from challenge.utils import get_redis_client
from .models import Notification

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 30


def channel_name(user_id: int) -> str:
    return f"notifications:{user_id}"


def format_event(event: str, data: Optional[dict] = None) -> str:
    if data is None:
        return f"event: {event}\n\n"
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def publish(notifications: Iterable[Notification]) -> int:
    """Push notifications to their owners' channels. Returns how many were sent.

    Delivery is best effort; the rows are already stored and stay readable
    through the list endpoint.
    """
    sent = 0
    try:
        redis_client = get_redis_client()
        for notification in notifications:
            redis_client.publish(
                channel_name(notification.user_id),
                json.dumps(notification.to_payload()),
            )
            sent += 1
    except Exception:
        logger.error(f"Error publishing notifications: sent={sent}", exc_info=True)
    return sent


def iter_events(
    pubsub: Any,
    heartbeat_interval: float = HEARTBEAT_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    should_stop: Callable[[], bool] = lambda: False,
) -> Iterator[str]:
    """Translate pub/sub messages into server-sent events named after their kind."""
    yield format_event("connected", {"type": "connected"})

    last_heartbeat = clock()
    while not should_stop():
        message = pubsub.get_message(timeout=1.0, ignore_subscribe_messages=True)
        if message:
            try:
                payload = json.loads(message["data"])
                kind = payload.get("kind", Notification.ANNOUNCEMENT)
            except (json.JSONDecodeError, KeyError, TypeError, AttributeError):
                logger.error("Error parsing notification message", exc_info=True)
            else:
                yield format_event(kind, payload)

        now = clock()
        if now - last_heartbeat >= heartbeat_interval:
            yield format_event("heartbeat")
            last_heartbeat = now
