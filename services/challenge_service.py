import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from challenge.exceptions import (
    AlreadySolvedError,
    ChallengeInactiveError,
    ChallengeNotFoundError,
    PersistenceError,
    RateLimitedError,
    SubmissionError,
    SubmissionValidationError,
)
from challenge.models import Challenge, Solve
from services.flag_validator import is_correct
from services.forensics import ForensicsLogger
from services.rate_limiter import RateLimiter, RateLimitStatus, seconds_until
from services.solve_recorder import SolveRecorder
from user_auth.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    correct: bool
    points_awarded: int = 0
    is_first_blood: bool = False
    next_allowed_in_seconds: int = 0
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        if self.correct:
            return {
                "correct": True,
                "message": "Correct! First blood!" if self.is_first_blood else "Correct!",
                "points_awarded": self.points_awarded,
                "is_first_blood": self.is_first_blood,
            }
        return {
            "correct": False,
            "message": "Incorrect flag. Try again.",
            "next_allowed_in_seconds": self.next_allowed_in_seconds,
        }


class ChallengeService:
    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        solve_recorder: Optional[SolveRecorder] = None,
        forensics_logger: Optional[ForensicsLogger] = None,
    ) -> None:
        self.rate_limiter = rate_limiter or RateLimiter()
        self.forensics_logger = forensics_logger or ForensicsLogger()
        self.solve_recorder = solve_recorder or SolveRecorder(
            forensics_logger=self.forensics_logger
        )

    def validate_flag_input(self, flag: Any) -> str:
        if not isinstance(flag, str) or not flag.strip():
            raise SubmissionValidationError("Flag is required.")
        if len(flag) > settings.FLAG_MAX_LENGTH:
            raise SubmissionValidationError("Flag is too long.")
        return flag

    def submit_flag(
        self,
        user_id: int,
        challenge_id: int,
        flag: Any,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SubmissionResult:
        submitted_flag = self.validate_flag_input(flag)
        now = now or timezone.now()

        try:
            with transaction.atomic():
                return self._process_submission(
                    user_id, challenge_id, submitted_flag, ip_address, user_agent, now
                )
        except SubmissionError:
            raise
        except DatabaseError as err:
            logger.error(
                f"Error submitting flag: user_id={user_id}, challenge_id={challenge_id}",
                exc_info=True,
            )
            raise PersistenceError() from err

    def _process_submission(
        self,
        user_id: int,
        challenge_id: int,
        submitted_flag: str,
        ip_address: Optional[str],
        user_agent: Optional[str],
        now: datetime,
    ) -> SubmissionResult:
        # Lock order is user then challenge; the user lock serializes this
        # user's submissions and the challenge lock is taken when solving.
        try:
            User.objects.select_for_update().only("id").get(id=user_id)
        except User.DoesNotExist:
            raise SubmissionValidationError("Unknown user.")

        challenge = Challenge.objects.filter(id=challenge_id).first()
        if challenge is None:
            raise ChallengeNotFoundError()
        if not challenge.active:
            raise ChallengeInactiveError()

        if self.check_user_solved_challenge(user_id, challenge_id):
            raise AlreadySolvedError()

        status = self.rate_limiter.status(user_id, challenge_id, now)
        if not status.allowed:
            logger.info(
                f"Flag submission rate limited: user_id={user_id}, challenge_id={challenge_id}, wait_seconds={status.wait_seconds}"
            )
            raise RateLimitedError(status.wait_seconds)

        correct = is_correct(submitted_flag, challenge)
        self.forensics_logger.log_submission(
            user_id,
            challenge_id,
            submitted_flag,
            correct,
            ip_address,
            user_agent,
            now=now,
        )

        if correct:
            solve = self.solve_recorder.record_solve(user_id, challenge_id, now)
            logger.info(
                f"Flag submitted correctly: user_id={user_id}, challenge_id={challenge_id}"
            )
            return SubmissionResult(
                correct=True,
                points_awarded=solve.points_awarded,
                is_first_blood=solve.is_first_blood,
            )

        record = self.rate_limiter.record_failure(user_id, challenge_id, now)
        logger.info(
            f"Flag submitted incorrectly: user_id={user_id}, challenge_id={challenge_id}, attempts={record.attempts}"
        )
        return SubmissionResult(
            correct=False,
            next_allowed_in_seconds=seconds_until(record.next_allowed_at, now),
            attempts=record.attempts,
        )

    def get_rate_limit_status(
        self, user_id: int, challenge_id: int, now: Optional[datetime] = None
    ) -> RateLimitStatus:
        if not Challenge.objects.filter(id=challenge_id).exists():
            raise ChallengeNotFoundError()
        try:
            return self.rate_limiter.status(user_id, challenge_id, now)
        except DatabaseError as err:
            logger.error(
                f"Error reading rate limit: user_id={user_id}, challenge_id={challenge_id}",
                exc_info=True,
            )
            raise PersistenceError("Error reading rate limit status.") from err

    def check_user_solved_challenge(
        self, user_id: Optional[int], challenge_id: int
    ) -> bool:
        if not user_id:
            logger.error(
                f"User ID is required to check if user has solved challenge: challenge_id={challenge_id}"
            )
            return False
        return Solve.objects.filter(user_id=user_id, challenge_id=challenge_id).exists()

    def list_challenges(self, user_id: Optional[int] = None) -> List[Dict[str, Any]]:
        challenges = Challenge.objects.filter(active=True).order_by(
            "category", "points", "name"
        )
        solved_ids = set()
        if user_id:
            solved_ids = set(
                Solve.objects.filter(user_id=user_id).values_list(
                    "challenge_id", flat=True
                )
            )

        return [
            {
                "id": challenge.id,
                "name": challenge.name,
                "description": challenge.description,
                "category": challenge.category,
                "difficulty": challenge.difficulty,
                "author": challenge.author,
                "points": challenge.points,
                "flag_format": challenge.flag_format,
                "attachment_url": challenge.attachment_url,
                "instance_url": challenge.instance_url,
                "hint_costs": [int(hint.get("cost", 0)) for hint in challenge.hints or []],
                "total_solves": challenge.total_solves,
                "solved": challenge.id in solved_ids,
            }
            for challenge in challenges
        ]
