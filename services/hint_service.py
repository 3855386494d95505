import logging
from dataclasses import dataclass
from typing import List, Optional

from django.db import transaction

from challenge.exceptions import ChallengeNotFoundError, HintNotFoundError
from challenge.models import Challenge, HintUsage
from services.scoring import ScoringEngine
from user_auth.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HintResult:
    index: int
    content: str
    cost: int
    charged: bool


class HintService:
    def __init__(self, scoring_engine: Optional[ScoringEngine] = None) -> None:
        self.scoring_engine = scoring_engine or ScoringEngine()

    def use_hint(self, user_id: int, challenge_id: int, hint_index: int) -> HintResult:
        """Reveal a hint, charging its cost at most once per user, challenge and index."""
        with transaction.atomic():
            User.objects.select_for_update().get(id=user_id)

            try:
                challenge = Challenge.objects.get(id=challenge_id, active=True)
            except Challenge.DoesNotExist:
                raise ChallengeNotFoundError()

            try:
                hint = challenge.get_hint(hint_index)
            except IndexError:
                raise HintNotFoundError()

            cost = max(0, int(hint.get("cost", 0)))
            _, created = HintUsage.objects.get_or_create(
                user_id=user_id,
                challenge_id=challenge_id,
                hint_index=hint_index,
                defaults={"cost": cost},
            )
            if created:
                self.scoring_engine.deduct_points(user_id, cost)
                logger.info(
                    f"Hint used: user_id={user_id}, challenge_id={challenge_id}, hint_index={hint_index}, cost={cost}"
                )

        return HintResult(
            index=hint_index,
            content=str(hint.get("content", "")),
            cost=cost,
            charged=created,
        )

    def used_hint_indexes(self, user_id: int, challenge_id: int) -> List[int]:
        return list(
            HintUsage.objects.filter(user_id=user_id, challenge_id=challenge_id)
            .order_by("hint_index")
            .values_list("hint_index", flat=True)
        )
