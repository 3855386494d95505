import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from challenge.models import RateLimit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRecord:
    attempts: int
    last_attempt: datetime
    next_allowed_at: Optional[datetime]


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    wait_seconds: int
    attempts: int


def compute_delay(attempts: int) -> int:
    """Seconds a user must wait after their ``attempts``-th consecutive wrong flag.

    With the default settings this yields 5, 10, 15, 15, ... seconds.
    """
    if attempts <= 0:
        return 0
    return min(
        settings.FLAG_RATE_LIMIT_DELAY_STEP * attempts,
        settings.FLAG_RATE_LIMIT_MAX_DELAY,
    )


def seconds_until(moment: Optional[datetime], now: datetime) -> int:
    if moment is None:
        return 0
    return max(0, math.ceil((moment - now).total_seconds()))


class RateLimitStore:
    def get(self, user_id: int, challenge_id: int) -> Optional[RateLimitRecord]:
        raise NotImplementedError

    def increment(
        self, user_id: int, challenge_id: int, now: datetime
    ) -> RateLimitRecord:
        raise NotImplementedError


class DatabaseRateLimitStore(RateLimitStore):
    def get(self, user_id: int, challenge_id: int) -> Optional[RateLimitRecord]:
        row = RateLimit.objects.filter(
            user_id=user_id, challenge_id=challenge_id
        ).first()
        if row is None:
            return None
        return RateLimitRecord(
            attempts=row.attempts,
            last_attempt=row.last_attempt,
            next_allowed_at=row.next_allowed_at,
        )

    def increment(
        self, user_id: int, challenge_id: int, now: datetime
    ) -> RateLimitRecord:
        with transaction.atomic():
            row, _ = RateLimit.objects.select_for_update().get_or_create(
                user_id=user_id,
                challenge_id=challenge_id,
                defaults={"attempts": 0, "last_attempt": now},
            )
            row.attempts += 1
            row.last_attempt = now
            row.next_allowed_at = now + timedelta(seconds=compute_delay(row.attempts))
            row.save(update_fields=["attempts", "last_attempt", "next_allowed_at"])

        return RateLimitRecord(
            attempts=row.attempts,
            last_attempt=row.last_attempt,
            next_allowed_at=row.next_allowed_at,
        )


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store. State is lost on restart and not shared between workers."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[int, int], RateLimitRecord] = {}
        self._lock = threading.Lock()

    def get(self, user_id: int, challenge_id: int) -> Optional[RateLimitRecord]:
        with self._lock:
            return self._records.get((user_id, challenge_id))

    def increment(
        self, user_id: int, challenge_id: int, now: datetime
    ) -> RateLimitRecord:
        key = (user_id, challenge_id)
        with self._lock:
            previous = self._records.get(key)
            attempts = (previous.attempts if previous else 0) + 1
            record = RateLimitRecord(
                attempts=attempts,
                last_attempt=now,
                next_allowed_at=now + timedelta(seconds=compute_delay(attempts)),
            )
            self._records[key] = record
            return record

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


_rate_limit_store: Optional[RateLimitStore] = None


def get_rate_limit_store() -> RateLimitStore:
    global _rate_limit_store
    if _rate_limit_store is None:
        store_class = import_string(settings.FLAG_RATE_LIMIT_STORE)
        _rate_limit_store = store_class()
    return _rate_limit_store


class RateLimiter:
    def __init__(self, store: Optional[RateLimitStore] = None) -> None:
        self.store = store or get_rate_limit_store()

    def can_submit(
        self, user_id: int, challenge_id: int, now: Optional[datetime] = None
    ) -> bool:
        return self.status(user_id, challenge_id, now).allowed

    def status(
        self, user_id: int, challenge_id: int, now: Optional[datetime] = None
    ) -> RateLimitStatus:
        now = now or timezone.now()
        record = self.store.get(user_id, challenge_id)
        if record is None or record.next_allowed_at is None:
            return RateLimitStatus(
                allowed=True,
                wait_seconds=0,
                attempts=record.attempts if record else 0,
            )

        allowed = now >= record.next_allowed_at
        return RateLimitStatus(
            allowed=allowed,
            wait_seconds=0 if allowed else seconds_until(record.next_allowed_at, now),
            attempts=record.attempts,
        )

    def record_failure(
        self, user_id: int, challenge_id: int, now: Optional[datetime] = None
    ) -> RateLimitRecord:
        now = now or timezone.now()
        record = self.store.increment(user_id, challenge_id, now)
        logger.info(
            f"Rate limit updated: user_id={user_id}, challenge_id={challenge_id}, attempts={record.attempts}, delay={compute_delay(record.attempts)}"
        )
        return record
