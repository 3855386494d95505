import logging
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from challenge.exceptions import AlreadySolvedError, ChallengeNotFoundError
from challenge.models import Challenge, HintUsage, Solve
from services.achievements import award_achievements
from services.forensics import ForensicsLogger
from services.scoring import ScoringEngine

logger = logging.getLogger(__name__)


class SolveRecorder:
    def __init__(
        self,
        scoring_engine: Optional[ScoringEngine] = None,
        forensics_logger: Optional[ForensicsLogger] = None,
    ) -> None:
        self.scoring_engine = scoring_engine or ScoringEngine()
        self.forensics_logger = forensics_logger or ForensicsLogger()

    def points_for(self, challenge: Challenge, is_first_blood: bool) -> int:
        bonus = settings.FIRST_BLOOD_BONUS_POINTS if is_first_blood else 0
        return challenge.points + bonus

    def record_solve(
        self, user_id: int, challenge_id: int, now: Optional[datetime] = None
    ) -> Solve:
        now = now or timezone.now()

        with transaction.atomic():
            # Row lock on the challenge serializes first blood per challenge.
            try:
                challenge = Challenge.objects.select_for_update().get(id=challenge_id)
            except Challenge.DoesNotExist:
                raise ChallengeNotFoundError()

            if Solve.objects.filter(user_id=user_id, challenge_id=challenge_id).exists():
                raise AlreadySolvedError()

            is_first_blood = not Solve.objects.filter(challenge_id=challenge_id).exists()
            points_awarded = self.points_for(challenge, is_first_blood)

            first_attempt_at = self.forensics_logger.first_attempt_at(
                user_id, challenge_id
            )
            solve_time = (
                max(0, (now - first_attempt_at) // timedelta(seconds=1))
                if first_attempt_at
                else None
            )

            try:
                with transaction.atomic():
                    solve = Solve.objects.create(
                        user_id=user_id,
                        challenge_id=challenge_id,
                        solved_at=now,
                        is_first_blood=is_first_blood,
                        points_awarded=points_awarded,
                        solve_time=solve_time,
                        hints_used=HintUsage.objects.filter(
                            user_id=user_id, challenge_id=challenge_id
                        ).count(),
                    )
            except IntegrityError:
                if Solve.objects.filter(
                    user_id=user_id, challenge_id=challenge_id
                ).exists():
                    raise AlreadySolvedError()
                raise

            Challenge.objects.filter(id=challenge_id).update(
                total_solves=F("total_solves") + 1
            )
            self.scoring_engine.apply_score(user_id, points_awarded, now)

        logger.info(
            f"Solve recorded: user_id={user_id}, challenge_id={challenge_id}, points={points_awarded}, first_blood={is_first_blood}"
        )

        award_achievements(user_id, challenge_id, is_first_blood)
        return solve
