import logging
from functools import partial
from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver
from typing import Any

from challenge.models import Challenge, Solve
from notifications.models import Notification
from tasks.tasks import send_notification

logger = logging.getLogger(__name__)


@receiver(pre_save, sender=Challenge)
def handle_challenge_deactivation(
    sender: Any, instance: Challenge, **kwargs: Any
) -> None:
    if not instance.pk:
        return

    previously_active = (
        Challenge.objects.filter(pk=instance.pk)
        .values_list("active", flat=True)
        .first()
    )
    if previously_active and not instance.active:
        logger.info(f"Challenge {instance.name} is being deactivated")
        transaction.on_commit(
            partial(
                send_notification.delay,
                f"Challenge {instance.name} has been deactivated.",
                kind=Notification.CHALLENGE_DEACTIVATED,
                to_all=True,
                challenge_id=instance.pk,
            )
        )


@receiver(post_save, sender=Solve)
def announce_first_blood(
    sender: Any, instance: Solve, created: bool, **kwargs: Any
) -> None:
    if not created or not instance.is_first_blood:
        return

    message = (
        f"First blood! {instance.user.username} solved {instance.challenge.name}."
    )
    logger.info(
        f"First blood: user_id={instance.user_id}, challenge_id={instance.challenge_id}"
    )
    transaction.on_commit(
        partial(
            send_notification.delay,
            message,
            kind=Notification.FIRST_BLOOD,
            to_all=True,
            challenge_id=instance.challenge_id,
        )
    )
