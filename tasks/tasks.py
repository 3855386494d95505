import logging
from celery import shared_task
from typing import Optional

from notifications.models import Notification
from notifications.stream import publish
from user_auth.models import User

logger = logging.getLogger(__name__)


@shared_task  # type: ignore
def send_notification(
    message: str,
    kind: str = Notification.ANNOUNCEMENT,
    user_id: Optional[int] = None,
    to_all: bool = False,
    challenge_id: Optional[int] = None,
) -> int:
    """Store a notification per recipient and push it to their stream.

    ``to_all`` targets every user who is not banned; otherwise only ``user_id``.
    """
    if to_all:
        recipients = list(User.objects.filter(banned=False).values_list("id", flat=True))
    elif user_id:
        recipients = [user_id]
    else:
        logger.error(f"Notification without recipients dropped: kind={kind}")
        return 0

    notifications = Notification.objects.bulk_create(
        [
            Notification(
                user_id=recipient,
                kind=kind,
                challenge_id=challenge_id,
                message=message[:255],
            )
            for recipient in recipients
        ]
    )
    sent = publish(notifications)

    logger.info(
        f"Sent notification: kind={kind}, challenge_id={challenge_id}, recipients={len(notifications)}, published={sent}"
    )
    return len(notifications)
