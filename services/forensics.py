import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db.models import Avg
from django.utils import timezone

from challenge.exceptions import ChallengeNotFoundError
from challenge.models import Challenge, FlagSubmission, Solve

logger = logging.getLogger(__name__)

ONE_SECOND = timedelta(seconds=1)
IP_ADDRESS_MAX_LENGTH = FlagSubmission._meta.get_field("ip_address").max_length


@dataclass
class SubmissionForensics:
    wrong_flags: List[str] = field(default_factory=list)
    time_gaps: List[int] = field(default_factory=list)
    ip_addresses: List[str] = field(default_factory=list)
    user_agents: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChallengeAnalytics:
    total_attempts: int
    unique_solvers: int
    average_solve_time: int
    difficulty_rating: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def difficulty_rating(total_attempts: int, solvers: int) -> int:
    if total_attempts == 0:
        return 5
    return min(10, int((total_attempts / max(1, solvers)) * 2))


def _distinct(values: List[Optional[str]]) -> List[str]:
    return [value for value in dict.fromkeys(values) if value]


class ForensicsLogger:
    """Append-only audit trail of flag submissions and the admin views derived from it."""

    def log_submission(
        self,
        user_id: int,
        challenge_id: int,
        submitted_flag: str,
        is_correct: bool,
        ip_address: Optional[str],
        user_agent: Optional[str],
        now: Optional[datetime] = None,
    ) -> FlagSubmission:
        submission = FlagSubmission.objects.create(
            user_id=user_id,
            challenge_id=challenge_id,
            submitted_flag=submitted_flag,
            is_correct=is_correct,
            ip_address=(ip_address or "")[:IP_ADDRESS_MAX_LENGTH] or None,
            user_agent=user_agent or None,
            submitted_at=now or timezone.now(),
        )
        logger.debug(
            f"Submission logged: submission_id={submission.id}, user_id={user_id}, challenge_id={challenge_id}, correct={is_correct}"
        )
        return submission

    def first_attempt_at(self, user_id: int, challenge_id: int) -> Optional[datetime]:
        return (
            FlagSubmission.objects.filter(user_id=user_id, challenge_id=challenge_id)
            .order_by("submitted_at")
            .values_list("submitted_at", flat=True)
            .first()
        )

    def get_forensics(
        self, challenge_id: Optional[int] = None, limit: Optional[int] = None
    ) -> SubmissionForensics:
        """Report over the most recent wrong submissions, capped at ``limit`` rows."""
        max_rows = settings.FORENSICS_MAX_SUBMISSIONS
        limit = min(limit, max_rows) if limit and limit > 0 else max_rows
        submissions = FlagSubmission.objects.filter(is_correct=False)
        if challenge_id is not None:
            submissions = submissions.filter(challenge_id=challenge_id)

        rows = list(
            submissions.order_by("-submitted_at", "-id").values(
                "submitted_flag", "submitted_at", "ip_address", "user_agent"
            )[:limit]
        )

        time_gaps = [
            (newer["submitted_at"] - older["submitted_at"]) // ONE_SECOND
            for newer, older in zip(rows, rows[1:])
        ]

        return SubmissionForensics(
            wrong_flags=_distinct([row["submitted_flag"] for row in rows]),
            time_gaps=time_gaps,
            ip_addresses=_distinct([row["ip_address"] for row in rows]),
            user_agents=_distinct([row["user_agent"] for row in rows]),
        )

    def get_challenge_analytics(self, challenge_id: int) -> ChallengeAnalytics:
        if not Challenge.objects.filter(id=challenge_id).exists():
            raise ChallengeNotFoundError()

        total_attempts = FlagSubmission.objects.filter(
            challenge_id=challenge_id
        ).count()
        solves = Solve.objects.filter(challenge_id=challenge_id)
        unique_solvers = solves.count()
        average_solve_time = solves.aggregate(avg=Avg("solve_time"))["avg"] or 0

        return ChallengeAnalytics(
            total_attempts=total_attempts,
            unique_solvers=unique_solvers,
            average_solve_time=int(average_solve_time),
            difficulty_rating=difficulty_rating(total_attempts, unique_solvers),
        )
