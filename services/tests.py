import pytest
import threading
from datetime import timedelta
from functools import partial
from typing import Any, Callable, List
from unittest.mock import patch
from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, connection, transaction
from django.utils import timezone

from challenge.exceptions import (
    AlreadySolvedError,
    ChallengeInactiveError,
    ChallengeNotFoundError,
    HintNotFoundError,
    PersistenceError,
    RateLimitedError,
    SubmissionValidationError,
)
from challenge.models import (
    Achievement,
    Challenge,
    FlagSubmission,
    HintUsage,
    RateLimit,
    Solve,
)
from services.achievements import award_achievements
from services.challenge_service import ChallengeService, SubmissionResult
from services.flag_validator import is_correct
from services.forensics import ForensicsLogger, difficulty_rating
from services.hint_service import HintService
from services.leaderboard import (
    get_country_leaderboard,
    get_leaderboard,
    get_user_stats,
)
from services.rate_limiter import (
    DatabaseRateLimitStore,
    InMemoryRateLimitStore,
    RateLimiter,
    compute_delay,
    get_rate_limit_store,
)
from services.scoring import ScoringEngine, next_streak
from services.solve_recorder import SolveRecorder

User = get_user_model()


class TestComputeDelay:
    @pytest.mark.parametrize(
        "attempts,expected", [(0, 0), (1, 5), (2, 10), (3, 15), (4, 15), (20, 15)]
    )
    def test_progressive_delay(self, attempts, expected):
        assert compute_delay(attempts) == expected

    def test_delay_follows_settings(self, settings):
        settings.FLAG_RATE_LIMIT_DELAY_STEP = 2
        settings.FLAG_RATE_LIMIT_MAX_DELAY = 5
        assert [compute_delay(n) for n in range(1, 5)] == [2, 4, 5, 5]


@pytest.mark.django_db
class TestRateLimiter:
    @pytest.fixture
    def rate_limiter(self):
        return RateLimiter(store=DatabaseRateLimitStore())

    def test_first_submission_allowed(self, rate_limiter, user, challenge):
        assert rate_limiter.can_submit(user.id, challenge.id) is True
        status = rate_limiter.status(user.id, challenge.id)
        assert status.attempts == 0
        assert status.wait_seconds == 0

    def test_failures_increase_delay(self, rate_limiter, user, challenge):
        now = timezone.now()
        delays = []
        for _ in range(4):
            record = rate_limiter.record_failure(user.id, challenge.id, now)
            delays.append(int((record.next_allowed_at - now).total_seconds()))
            now = record.next_allowed_at

        assert delays == [5, 10, 15, 15]
        assert RateLimit.objects.get(user=user, challenge=challenge).attempts == 4

    def test_blocked_until_next_allowed(self, rate_limiter, user, challenge):
        now = timezone.now()
        rate_limiter.record_failure(user.id, challenge.id, now)

        status = rate_limiter.status(user.id, challenge.id, now + timedelta(seconds=2))
        assert status.allowed is False
        assert status.wait_seconds == 3

        assert rate_limiter.can_submit(
            user.id, challenge.id, now + timedelta(seconds=5)
        )

    def test_limits_are_per_challenge(self, rate_limiter, user, challenges):
        now = timezone.now()
        rate_limiter.record_failure(user.id, challenges[0].id, now)

        assert not rate_limiter.can_submit(user.id, challenges[0].id, now)
        assert rate_limiter.can_submit(user.id, challenges[1].id, now)

    def test_in_memory_store(self):
        rate_limiter = RateLimiter(store=InMemoryRateLimitStore())
        now = timezone.now()

        first = rate_limiter.record_failure(1, 2, now)
        second = rate_limiter.record_failure(1, 2, first.next_allowed_at)

        assert second.attempts == 2
        assert second.next_allowed_at == first.next_allowed_at + timedelta(seconds=10)
        assert rate_limiter.status(3, 2, now).attempts == 0

    def test_store_from_settings(self, settings):
        settings.FLAG_RATE_LIMIT_STORE = "services.rate_limiter.InMemoryRateLimitStore"
        store = get_rate_limit_store()
        assert isinstance(store, InMemoryRateLimitStore)
        assert get_rate_limit_store() is store


class TestFlagValidator:
    @pytest.fixture
    def challenge(self):
        return Challenge(name="Unsaved", category="Web", points=10, flag="CTF{abc}")

    def test_exact_match(self, challenge):
        assert is_correct("CTF{abc}", challenge) is True

    def test_surrounding_whitespace_ignored(self, challenge):
        assert is_correct("  CTF{abc}\n", challenge) is True

    def test_case_sensitive(self, challenge):
        assert is_correct("ctf{abc}", challenge) is False
        assert is_correct("CTF{ABC}", challenge) is False

    def test_partial_match_rejected(self, challenge):
        assert is_correct("CTF{ab", challenge) is False
        assert is_correct("CTF{abc}x", challenge) is False

    def test_non_string_rejected(self, challenge):
        with pytest.raises(TypeError):
            is_correct(None, challenge)


class TestNextStreak:
    def test_first_solve_starts_streak(self):
        assert next_streak(0, None, timezone.now()) == 1

    def test_consecutive_day_extends(self):
        now = timezone.now()
        assert next_streak(3, now - timedelta(days=1, hours=2), now) == 4

    def test_gap_resets(self):
        now = timezone.now()
        assert next_streak(3, now - timedelta(days=2), now) == 1

    def test_same_day_unchanged(self):
        now = timezone.now()
        assert next_streak(3, now - timedelta(hours=5), now) == 3


@pytest.mark.django_db
class TestScoringEngine:
    @pytest.fixture
    def scoring_engine(self):
        return ScoringEngine()

    def test_apply_score(self, scoring_engine, user):
        now = timezone.now()
        scoring_engine.apply_score(user.id, 100, now)

        user.refresh_from_db()
        assert user.score == 100
        assert user.solve_streak == 1
        assert user.last_solve_at == now

    def test_streak_over_days(self, scoring_engine, user):
        now = timezone.now()
        scoring_engine.apply_score(user.id, 10, now)
        scoring_engine.apply_score(user.id, 10, now + timedelta(days=1))
        updated = scoring_engine.apply_score(user.id, 10, now + timedelta(days=4))

        assert updated.score == 30
        assert updated.solve_streak == 1

    def test_negative_delta(self, scoring_engine, user):
        updated = scoring_engine.apply_score(user.id, -15)
        assert updated.score == -15

    def test_deduct_points(self, scoring_engine, user):
        scoring_engine.deduct_points(user.id, 25)
        scoring_engine.deduct_points(user.id, 0)

        user.refresh_from_db()
        assert user.score == -25
        assert user.last_solve_at is None


@pytest.mark.django_db
class TestSolveRecorder:
    @pytest.fixture
    def solve_recorder(self):
        return SolveRecorder()

    def test_first_blood(self, solve_recorder, user, other_user, challenge):
        first = solve_recorder.record_solve(user.id, challenge.id)
        second = solve_recorder.record_solve(other_user.id, challenge.id)

        assert first.is_first_blood is True
        assert second.is_first_blood is False
        assert Solve.objects.filter(challenge=challenge, is_first_blood=True).count() == 1

        challenge.refresh_from_db()
        assert challenge.total_solves == 2

    def test_first_blood_bonus_setting(self, settings, solve_recorder, user, other_user, challenge):
        settings.FIRST_BLOOD_BONUS_POINTS = 50

        first = solve_recorder.record_solve(user.id, challenge.id)
        second = solve_recorder.record_solve(other_user.id, challenge.id)

        assert first.points_awarded == 150
        assert second.points_awarded == 100
        user.refresh_from_db()
        assert user.score == 150

    def test_duplicate_solve(self, solve_recorder, user, challenge):
        solve_recorder.record_solve(user.id, challenge.id)

        with pytest.raises(AlreadySolvedError):
            solve_recorder.record_solve(user.id, challenge.id)

        user.refresh_from_db()
        challenge.refresh_from_db()
        assert user.score == 100
        assert challenge.total_solves == 1

    def test_unknown_challenge(self, solve_recorder, user):
        with pytest.raises(ChallengeNotFoundError):
            solve_recorder.record_solve(user.id, 99999)

    def test_solve_time_from_first_attempt(self, solve_recorder, user, challenge):
        now = timezone.now()
        ForensicsLogger().log_submission(
            user.id, challenge.id, "FLAG{nope}", False, None, None,
            now=now - timedelta(seconds=42),
        )

        solve = solve_recorder.record_solve(user.id, challenge.id, now)
        assert solve.solve_time == 42

    def test_hints_used_counted(self, solve_recorder, user, challenge):
        HintUsage.objects.create(user=user, challenge=challenge, hint_index=0, cost=10)

        solve = solve_recorder.record_solve(user.id, challenge.id)
        assert solve.hints_used == 1

    def test_achievement_failure_keeps_solve(self, solve_recorder, user, challenge):
        with patch.object(
            Achievement.objects, "bulk_create", side_effect=DatabaseError("boom")
        ):
            solve = solve_recorder.record_solve(user.id, challenge.id)

        assert Solve.objects.filter(id=solve.id).exists()
        assert Achievement.objects.count() == 0
        user.refresh_from_db()
        assert user.score == 100

    def test_unexpected_integrity_error_propagates(self, solve_recorder, user, challenge):
        with patch.object(
            Solve.objects, "create", side_effect=IntegrityError("constraint")
        ):
            with pytest.raises(IntegrityError):
                solve_recorder.record_solve(user.id, challenge.id)

        user.refresh_from_db()
        assert user.score == 0


@pytest.mark.django_db
class TestStorageConstraints:
    def test_one_solve_per_user_and_challenge(self, user, challenge):
        Solve.objects.create(
            user=user, challenge=challenge, solved_at=timezone.now(), points_awarded=100
        )
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Solve.objects.create(
                    user=user,
                    challenge=challenge,
                    solved_at=timezone.now(),
                    points_awarded=100,
                )

    def test_one_first_blood_per_challenge(self, user, other_user, challenge):
        Solve.objects.create(
            user=user,
            challenge=challenge,
            solved_at=timezone.now(),
            points_awarded=100,
            is_first_blood=True,
        )
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Solve.objects.create(
                    user=other_user,
                    challenge=challenge,
                    solved_at=timezone.now(),
                    points_awarded=100,
                    is_first_blood=True,
                )

    def test_one_rate_limit_row_per_pair(self, user, challenge):
        RateLimit.objects.create(user=user, challenge=challenge, last_attempt=timezone.now())
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                RateLimit.objects.create(
                    user=user, challenge=challenge, last_attempt=timezone.now()
                )


@pytest.mark.django_db
class TestAchievements:
    def test_first_solve_and_first_blood(self, user, challenge):
        Solve.objects.create(
            user=user,
            challenge=challenge,
            solved_at=timezone.now(),
            points_awarded=100,
            is_first_blood=True,
        )

        awarded = award_achievements(user.id, challenge.id, is_first_blood=True)

        assert {a.type for a in awarded} == {
            Achievement.FIRST_BLOOD,
            Achievement.FIRST_SOLVE,
        }
        assert Achievement.objects.filter(user=user).count() == 2

    def test_no_milestone_on_second_solve(self, user, challenges):
        for challenge in challenges[:2]:
            Solve.objects.create(
                user=user, challenge=challenge, solved_at=timezone.now(), points_awarded=1
            )

        assert award_achievements(user.id, challenges[1].id, is_first_blood=False) == []

    def test_errors_are_swallowed(self, user, challenge):
        with patch.object(
            Achievement.objects, "bulk_create", side_effect=DatabaseError("boom")
        ):
            assert award_achievements(user.id, challenge.id, is_first_blood=True) == []


@pytest.mark.django_db
class TestForensicsLogger:
    @pytest.fixture
    def forensics_logger(self):
        return ForensicsLogger()

    def test_every_submission_logged(self, forensics_logger, user, challenge):
        for flag in ["a", "b", "c"]:
            forensics_logger.log_submission(
                user.id, challenge.id, flag, False, "10.0.0.1", "curl/8.0"
            )
        assert FlagSubmission.objects.filter(user=user, challenge=challenge).count() == 3

    def test_get_forensics(self, forensics_logger, user, other_user, challenge):
        now = timezone.now()
        forensics_logger.log_submission(
            user.id, challenge.id, "a", False, "10.0.0.1", "curl/8.0", now=now
        )
        forensics_logger.log_submission(
            other_user.id, challenge.id, "b", False, "10.0.0.2", "", now=now + timedelta(seconds=10)
        )
        forensics_logger.log_submission(
            user.id, challenge.id, "a", False, "10.0.0.1", "curl/8.0", now=now + timedelta(seconds=25)
        )
        forensics_logger.log_submission(
            user.id, challenge.id, "FLAG{test}", True, "10.0.0.1", "curl/8.0", now=now + timedelta(seconds=30)
        )

        report = forensics_logger.get_forensics(challenge.id)

        assert report.wrong_flags == ["a", "b"]
        assert report.time_gaps == [15, 10]
        assert report.ip_addresses == ["10.0.0.1", "10.0.0.2"]
        assert report.user_agents == ["curl/8.0"]

    def test_get_forensics_filters_challenge(self, forensics_logger, user, challenges):
        forensics_logger.log_submission(user.id, challenges[0].id, "x", False, None, None)
        forensics_logger.log_submission(user.id, challenges[1].id, "y", False, None, None)

        assert forensics_logger.get_forensics(challenges[1].id).wrong_flags == ["y"]
        assert set(forensics_logger.get_forensics().wrong_flags) == {"x", "y"}

    def test_get_forensics_limit(self, settings, forensics_logger, user, challenge):
        settings.FORENSICS_MAX_SUBMISSIONS = 3
        now = timezone.now()
        for index in range(5):
            forensics_logger.log_submission(
                user.id, challenge.id, f"f{index}", False, None, None,
                now=now + timedelta(seconds=index),
            )

        assert forensics_logger.get_forensics(challenge.id).wrong_flags == ["f4", "f3", "f2"]
        assert forensics_logger.get_forensics(challenge.id, limit=2).wrong_flags == ["f4", "f3"]
        assert len(forensics_logger.get_forensics(challenge.id, limit=50).wrong_flags) == 3

    def test_oversized_ip_truncated(self, forensics_logger, user, challenge):
        submission = forensics_logger.log_submission(
            user.id, challenge.id, "x", False, "1" * 100, None
        )
        submission.refresh_from_db()
        assert len(submission.ip_address) == 45

    def test_empty_forensics(self, forensics_logger, challenge):
        assert forensics_logger.get_forensics(challenge.id).to_dict() == {
            "wrong_flags": [],
            "time_gaps": [],
            "ip_addresses": [],
            "user_agents": [],
        }

    def test_challenge_analytics(self, forensics_logger, user, other_user, challenge):
        for _ in range(3):
            forensics_logger.log_submission(user.id, challenge.id, "x", False, None, None)
        forensics_logger.log_submission(user.id, challenge.id, "FLAG{test}", True, None, None)
        now = timezone.now()
        Solve.objects.create(
            user=user, challenge=challenge, solved_at=now, points_awarded=100, solve_time=10
        )
        Solve.objects.create(
            user=other_user, challenge=challenge, solved_at=now, points_awarded=100, solve_time=21
        )

        analytics = forensics_logger.get_challenge_analytics(challenge.id)

        assert analytics.total_attempts == 4
        assert analytics.unique_solvers == 2
        assert analytics.average_solve_time == 15
        assert analytics.difficulty_rating == 4

    def test_analytics_without_attempts(self, forensics_logger, challenge):
        analytics = forensics_logger.get_challenge_analytics(challenge.id)
        assert analytics.to_dict() == {
            "total_attempts": 0,
            "unique_solvers": 0,
            "average_solve_time": 0,
            "difficulty_rating": 5,
        }

    def test_analytics_unknown_challenge(self, forensics_logger):
        with pytest.raises(ChallengeNotFoundError):
            forensics_logger.get_challenge_analytics(99999)

    @pytest.mark.parametrize(
        "attempts,solvers,expected", [(0, 0, 5), (3, 0, 6), (4, 2, 4), (100, 1, 10)]
    )
    def test_difficulty_rating(self, attempts, solvers, expected):
        assert difficulty_rating(attempts, solvers) == expected


@pytest.mark.django_db
class TestHintService:
    @pytest.fixture
    def hint_service(self):
        return HintService()

    def test_use_hint_charges_once(self, hint_service, user, challenge):
        first = hint_service.use_hint(user.id, challenge.id, 0)
        second = hint_service.use_hint(user.id, challenge.id, 0)

        assert first.content == "Look at the cookies."
        assert first.charged is True
        assert second.charged is False
        user.refresh_from_db()
        assert user.score == -10
        assert hint_service.used_hint_indexes(user.id, challenge.id) == [0]

    def test_free_hint(self, hint_service, user, challenge):
        result = hint_service.use_hint(user.id, challenge.id, 1)

        assert result.cost == 0
        user.refresh_from_db()
        assert user.score == 0

    def test_unknown_hint(self, hint_service, user, challenge):
        with pytest.raises(HintNotFoundError):
            hint_service.use_hint(user.id, challenge.id, 5)

    def test_inactive_challenge(self, hint_service, user, inactive_challenge):
        with pytest.raises(ChallengeNotFoundError):
            hint_service.use_hint(user.id, inactive_challenge.id, 0)


@pytest.mark.django_db
class TestChallengeService:
    @pytest.fixture
    def challenge_service(self):
        return ChallengeService(rate_limiter=RateLimiter(store=DatabaseRateLimitStore()))

    @pytest.fixture
    def scenario_challenge(self, db):
        return Challenge.objects.create(
            name="Scenario", category="Misc", points=100, flag="CTF{abc}", active=True
        )

    def test_end_to_end_scenario(
        self, challenge_service, scenario_challenge, user, other_user
    ):
        now = timezone.now()

        result = challenge_service.submit_flag(user.id, scenario_challenge.id, "wrong", now=now)
        assert result.to_dict() == {
            "correct": False,
            "message": "Incorrect flag. Try again.",
            "next_allowed_in_seconds": 5,
        }
        assert RateLimit.objects.get(user=user, challenge=scenario_challenge).attempts == 1

        result = challenge_service.submit_flag(
            user.id, scenario_challenge.id, "CTF{abc}", now=now + timedelta(seconds=6)
        )
        assert result.correct is True
        assert result.points_awarded == 100
        assert result.is_first_blood is True

        user.refresh_from_db()
        scenario_challenge.refresh_from_db()
        assert user.score == 100
        assert scenario_challenge.total_solves == 1

        result = challenge_service.submit_flag(
            other_user.id, scenario_challenge.id, "CTF{abc}", now=now + timedelta(seconds=7)
        )
        assert result.correct is True
        assert result.points_awarded == 100
        assert result.is_first_blood is False

    def test_rate_limited_submission(self, challenge_service, challenge, user):
        now = timezone.now()
        challenge_service.submit_flag(user.id, challenge.id, "FLAG{nope}", now=now)

        with pytest.raises(RateLimitedError) as excinfo:
            challenge_service.submit_flag(
                user.id, challenge.id, "FLAG{test}", now=now + timedelta(seconds=1)
            )

        assert excinfo.value.wait_seconds == 4
        assert FlagSubmission.objects.filter(user=user).count() == 1
        assert not Solve.objects.filter(user=user).exists()

    def test_wrong_submissions_back_off(self, challenge_service, challenge, user):
        now = timezone.now()
        waits = []
        for _ in range(4):
            result = challenge_service.submit_flag(user.id, challenge.id, "FLAG{nope}", now=now)
            waits.append(result.next_allowed_in_seconds)
            now += timedelta(seconds=result.next_allowed_in_seconds)

        assert waits == [5, 10, 15, 15]
        assert FlagSubmission.objects.filter(user=user, is_correct=False).count() == 4

    def test_whitespace_trimmed(self, challenge_service, challenge, user):
        result = challenge_service.submit_flag(user.id, challenge.id, "  FLAG{test}  ")
        assert result.correct is True

    def test_already_solved(self, challenge_service, challenge, user):
        challenge_service.submit_flag(user.id, challenge.id, "FLAG{test}")

        with pytest.raises(AlreadySolvedError):
            challenge_service.submit_flag(user.id, challenge.id, "FLAG{test}")

        assert FlagSubmission.objects.filter(user=user).count() == 1

    @pytest.mark.parametrize("flag", [None, "", "   ", 123])
    def test_invalid_input(self, challenge_service, challenge, user, flag):
        with pytest.raises(SubmissionValidationError):
            challenge_service.submit_flag(user.id, challenge.id, flag)

    def test_flag_too_long(self, settings, challenge_service, challenge, user):
        settings.FLAG_MAX_LENGTH = 10
        with pytest.raises(SubmissionValidationError):
            challenge_service.submit_flag(user.id, challenge.id, "x" * 11)

    def test_challenge_not_found(self, challenge_service, user):
        with pytest.raises(ChallengeNotFoundError):
            challenge_service.submit_flag(user.id, 99999, "FLAG{test}")

    def test_inactive_challenge(self, challenge_service, inactive_challenge, user):
        with pytest.raises(ChallengeInactiveError):
            challenge_service.submit_flag(user.id, inactive_challenge.id, "FLAG{retired}")

    def test_persistence_error(self, challenge_service, challenge, user):
        with patch.object(
            ForensicsLogger, "log_submission", side_effect=DatabaseError("down")
        ):
            with pytest.raises(PersistenceError):
                challenge_service.submit_flag(user.id, challenge.id, "FLAG{nope}")

        assert not RateLimit.objects.filter(user=user).exists()

    def test_rate_limit_status(self, challenge_service, challenge, user):
        now = timezone.now()
        challenge_service.submit_flag(user.id, challenge.id, "FLAG{nope}", now=now)

        status = challenge_service.get_rate_limit_status(
            user.id, challenge.id, now + timedelta(seconds=1)
        )
        assert status.allowed is False
        assert status.wait_seconds == 4
        assert status.attempts == 1

    def test_check_user_solved_challenge(self, challenge_service, challenge, user):
        assert challenge_service.check_user_solved_challenge(user.id, challenge.id) is False
        assert challenge_service.check_user_solved_challenge(None, challenge.id) is False

        challenge_service.submit_flag(user.id, challenge.id, "FLAG{test}")
        assert challenge_service.check_user_solved_challenge(user.id, challenge.id) is True

    def test_list_challenges_hides_flags(
        self, challenge_service, challenge, inactive_challenge, user
    ):
        challenge_service.submit_flag(user.id, challenge.id, "FLAG{test}")

        listed = challenge_service.list_challenges(user.id)

        assert [c["name"] for c in listed] == ["Test Challenge"]
        assert "flag" not in listed[0]
        assert listed[0]["solved"] is True
        assert listed[0]["hint_costs"] == [10, 0]
        assert listed[0]["total_solves"] == 1


@pytest.mark.django_db
class TestLeaderboard:
    def test_ordering_and_exclusions(self, user, other_user, admin_user):
        user.score = 50
        user.save()
        other_user.score = 80
        other_user.save()
        admin_user.score = 1000
        admin_user.save()

        board = get_leaderboard()

        assert [row["username"] for row in board] == ["otheruser", "testuser"]
        assert [row["rank"] for row in board] == [1, 2]

    def test_banned_users_hidden(self, user, other_user):
        other_user.banned = True
        other_user.save()

        assert [row["username"] for row in get_leaderboard()] == ["testuser"]

    def test_country_leaderboard(self, user, other_user):
        user.score = 30
        user.save()
        other_user.score = 70
        other_user.save()

        assert get_country_leaderboard() == [
            {"country": "DE", "total_score": 70, "user_count": 1},
            {"country": "NL", "total_score": 30, "user_count": 1},
        ]

    def test_user_stats(self, user, other_user, challenge):
        SolveRecorder().record_solve(user.id, challenge.id)
        user.refresh_from_db()

        assert get_user_stats(user) == {
            "solves": 1,
            "score": 100,
            "rank": 1,
            "solve_streak": 1,
        }


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(
    connection.vendor == "sqlite",
    reason="SQLite serializes writers and ignores SELECT ... FOR UPDATE",
)
class TestConcurrentSubmissions:
    THREADS = 8

    def run_concurrently(self, calls: List[Callable[[], Any]]) -> List[Any]:
        barrier = threading.Barrier(len(calls))
        outcomes: List[Any] = [None] * len(calls)

        def worker(index: int, call: Callable[[], Any]) -> None:
            try:
                barrier.wait()
                outcomes[index] = call()
            except Exception as err:
                outcomes[index] = err
            finally:
                connection.close()

        threads = [
            threading.Thread(target=worker, args=(index, call))
            for index, call in enumerate(calls)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return outcomes

    @pytest.fixture
    def challenge_service(self):
        return ChallengeService(rate_limiter=RateLimiter(store=DatabaseRateLimitStore()))

    def test_single_first_blood_across_users(self, challenge_service, challenge):
        users = [
            User.objects.create_user(username=f"racer{index}", password="racerpass123")
            for index in range(self.THREADS)
        ]

        outcomes = self.run_concurrently(
            [
                partial(challenge_service.submit_flag, racer.id, challenge.id, "FLAG{test}")
                for racer in users
            ]
        )

        assert all(isinstance(outcome, SubmissionResult) for outcome in outcomes)
        assert sum(outcome.is_first_blood for outcome in outcomes) == 1
        assert Solve.objects.filter(challenge=challenge, is_first_blood=True).count() == 1
        assert Solve.objects.filter(challenge=challenge).count() == self.THREADS
        challenge.refresh_from_db()
        assert challenge.total_solves == self.THREADS

    def test_duplicate_solve_race_for_one_user(self, challenge_service, challenge, user):
        outcomes = self.run_concurrently(
            [
                partial(challenge_service.submit_flag, user.id, challenge.id, "FLAG{test}")
                for _ in range(self.THREADS)
            ]
        )

        solved = [o for o in outcomes if isinstance(o, SubmissionResult)]
        rejected = [o for o in outcomes if isinstance(o, AlreadySolvedError)]
        assert len(solved) == 1
        assert len(rejected) == self.THREADS - 1
        assert Solve.objects.filter(user=user, challenge=challenge).count() == 1
        user.refresh_from_db()
        assert user.score == 100

    def test_wrong_submission_race_counts_once(self, challenge_service, challenge, user):
        outcomes = self.run_concurrently(
            [
                partial(challenge_service.submit_flag, user.id, challenge.id, "FLAG{nope}")
                for _ in range(self.THREADS)
            ]
        )

        accepted = [o for o in outcomes if isinstance(o, SubmissionResult)]
        limited = [o for o in outcomes if isinstance(o, RateLimitedError)]
        assert len(accepted) == 1
        assert len(limited) == self.THREADS - 1
        assert RateLimit.objects.get(user=user, challenge=challenge).attempts == 1
