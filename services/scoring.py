import logging
from datetime import datetime, timedelta
from typing import Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from user_auth.models import User

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def next_streak(
    current_streak: int, last_solve_at: Optional[datetime], now: datetime
) -> int:
    """Streak after a solve at ``now``.

    Whole days elapsed since the previous solve decide the outcome: none means
    the streak starts at 1, exactly one extends it, more than one restarts it
    and zero (same day) leaves it untouched.
    """
    if last_solve_at is None:
        return 1

    days_since_last_solve = (now - last_solve_at) // ONE_DAY
    if days_since_last_solve == 1:
        return current_streak + 1
    if days_since_last_solve > 1:
        return 1
    return current_streak


class ScoringEngine:
    def apply_score(
        self, user_id: int, points_delta: int, now: Optional[datetime] = None
    ) -> User:
        now = now or timezone.now()

        with transaction.atomic():
            user = User.objects.select_for_update().get(id=user_id)
            previous_streak = user.solve_streak
            user.score += points_delta
            user.solve_streak = next_streak(user.solve_streak, user.last_solve_at, now)
            user.last_solve_at = now
            user.save(update_fields=["score", "solve_streak", "last_solve_at"])

        logger.info(
            f"Score applied: user_id={user_id}, points_delta={points_delta}, score={user.score}, streak={previous_streak}->{user.solve_streak}"
        )
        return user

    def deduct_points(self, user_id: int, amount: int) -> None:
        if amount <= 0:
            return
        User.objects.filter(id=user_id).update(score=F("score") - amount)
        logger.info(f"Points deducted: user_id={user_id}, amount={amount}")
