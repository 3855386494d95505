import logging
from typing import Dict, List, Tuple

from django.db import transaction

from challenge.models import Achievement, Solve

logger = logging.getLogger(__name__)

ACHIEVEMENT_DETAILS: Dict[str, Tuple[str, str, str]] = {
    Achievement.FIRST_BLOOD: ("First Blood!", "First to solve this challenge", "🩸"),
    Achievement.FIRST_SOLVE: ("Getting Started", "Solved your first challenge", "🎯"),
    Achievement.SOLVER: ("Problem Solver", "Solved 10 challenges", "🧩"),
    Achievement.EXPERT: ("Expert Hacker", "Solved 50 challenges", "💎"),
}

SOLVE_COUNT_MILESTONES: Dict[int, str] = {
    1: Achievement.FIRST_SOLVE,
    10: Achievement.SOLVER,
    50: Achievement.EXPERT,
}


def _build(user_id: int, challenge_id: int, achievement_type: str) -> Achievement:
    title, description, icon = ACHIEVEMENT_DETAILS[achievement_type]
    return Achievement(
        user_id=user_id,
        challenge_id=challenge_id,
        type=achievement_type,
        title=title,
        description=description,
        icon=icon,
    )


def award_achievements(
    user_id: int, challenge_id: int, is_first_blood: bool
) -> List[Achievement]:
    """Best effort: failures are logged and never reach the caller."""
    try:
        with transaction.atomic():
            to_award = []
            if is_first_blood:
                to_award.append(_build(user_id, challenge_id, Achievement.FIRST_BLOOD))

            solve_count = Solve.objects.filter(user_id=user_id).count()
            milestone = SOLVE_COUNT_MILESTONES.get(solve_count)
            if milestone:
                to_award.append(_build(user_id, challenge_id, milestone))

            if to_award:
                Achievement.objects.bulk_create(to_award)
                logger.info(
                    f"Achievements awarded: user_id={user_id}, types={[a.type for a in to_award]}"
                )
            return to_award
    except Exception:
        logger.error(
            f"Error awarding achievements: user_id={user_id}, challenge_id={challenge_id}",
            exc_info=True,
        )
        return []
