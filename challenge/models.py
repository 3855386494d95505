from django.conf import settings
from django.db import models
from django.db.models import Q
from typing import Any, Dict, List


def default_flag_format() -> str:
    return str(settings.FLAG_FORMAT)


class Challenge(models.Model):
    name = models.CharField(max_length=150, unique=True, null=False)
    description = models.TextField(null=False, blank=True, default="")
    category = models.CharField(max_length=150, null=False)
    difficulty = models.CharField(max_length=32, null=False, default="medium")
    author = models.CharField(max_length=150, null=False, blank=True, default="")
    points = models.IntegerField(null=False)
    flag = models.CharField(max_length=500, null=False)
    flag_format = models.CharField(
        max_length=150, null=False, default=default_flag_format
    )
    hints = models.JSONField(null=False, blank=True, default=list)
    attachment_url = models.CharField(max_length=500, null=True, blank=True)
    instance_url = models.CharField(max_length=500, null=True, blank=True)
    active = models.BooleanField(null=False, default=True, db_index=True)
    total_solves = models.IntegerField(null=False, default=0)
    metadata_filepath = models.CharField(max_length=256, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "challenge"
        managed = True
        indexes = [
            models.Index(fields=["active"], name="idx_challenge_active"),
        ]

    def __str__(self) -> str:
        return f"<Challenge {self.category}::{self.name}>"

    def get_hint(self, index: int) -> Dict[str, Any]:
        hints: List[Dict[str, Any]] = self.hints or []
        if index < 0 or index >= len(hints):
            raise IndexError(index)
        return hints[index]


class Solve(models.Model):
    user = models.ForeignKey(
        "user_auth.User",
        on_delete=models.CASCADE,
        db_column="user_id",
        null=False,
        db_index=True,
    )
    challenge = models.ForeignKey(
        Challenge,
        on_delete=models.CASCADE,
        db_column="challenge_id",
        null=False,
        db_index=True,
    )
    solved_at = models.DateTimeField(null=False)
    is_first_blood = models.BooleanField(null=False, default=False)
    points_awarded = models.IntegerField(null=False)
    solve_time = models.IntegerField(null=True, blank=True)
    hints_used = models.IntegerField(null=False, default=0)

    class Meta:
        db_table = "solve"
        managed = True
        constraints = [
            models.UniqueConstraint(
                fields=["user", "challenge"], name="uniq_solve_user_challenge"
            ),
            models.UniqueConstraint(
                fields=["challenge"],
                condition=Q(is_first_blood=True),
                name="uniq_solve_first_blood",
            ),
        ]
        indexes = [
            models.Index(fields=["challenge", "solved_at"], name="idx_solve_chal_time"),
            models.Index(fields=["solved_at"], name="idx_solve_time"),
        ]

    def __str__(self) -> str:
        return f"<Solve user_id={self.user_id} challenge_id={self.challenge_id} first_blood={self.is_first_blood}>"


class FlagSubmission(models.Model):
    user = models.ForeignKey(
        "user_auth.User",
        on_delete=models.CASCADE,
        db_column="user_id",
        null=False,
        db_index=True,
    )
    challenge = models.ForeignKey(
        Challenge,
        on_delete=models.CASCADE,
        db_column="challenge_id",
        null=False,
        db_index=True,
    )
    submitted_flag = models.TextField(null=False)
    is_correct = models.BooleanField(null=False, db_index=True)
    ip_address = models.CharField(max_length=45, null=True, blank=True)
    user_agent = models.TextField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=False)

    class Meta:
        db_table = "flag_submission"
        managed = True
        indexes = [
            models.Index(
                fields=["user", "challenge", "submitted_at"],
                name="idx_flagsub_user_chal_time",
            ),
            models.Index(
                fields=["challenge", "is_correct"], name="idx_flagsub_chal_correct"
            ),
        ]

    def __str__(self) -> str:
        return f"<FlagSubmission user_id={self.user_id} challenge_id={self.challenge_id} correct={self.is_correct}>"


class RateLimit(models.Model):
    user = models.ForeignKey(
        "user_auth.User",
        on_delete=models.CASCADE,
        db_column="user_id",
        null=False,
    )
    challenge = models.ForeignKey(
        Challenge,
        on_delete=models.CASCADE,
        db_column="challenge_id",
        null=False,
    )
    attempts = models.IntegerField(null=False, default=0)
    last_attempt = models.DateTimeField(null=False)
    next_allowed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "rate_limit"
        managed = True
        constraints = [
            models.UniqueConstraint(
                fields=["user", "challenge"], name="uniq_ratelimit_user_challenge"
            ),
        ]

    def __str__(self) -> str:
        return f"<RateLimit user_id={self.user_id} challenge_id={self.challenge_id} attempts={self.attempts}>"


class HintUsage(models.Model):
    user = models.ForeignKey(
        "user_auth.User",
        on_delete=models.CASCADE,
        db_column="user_id",
        null=False,
    )
    challenge = models.ForeignKey(
        Challenge,
        on_delete=models.CASCADE,
        db_column="challenge_id",
        null=False,
    )
    hint_index = models.IntegerField(null=False)
    cost = models.IntegerField(null=False, default=0)
    used_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "hint_usage"
        managed = True
        constraints = [
            models.UniqueConstraint(
                fields=["user", "challenge", "hint_index"], name="uniq_hint_usage"
            ),
        ]

    def __str__(self) -> str:
        return f"<HintUsage user_id={self.user_id} challenge_id={self.challenge_id} hint_index={self.hint_index}>"


class Achievement(models.Model):
    FIRST_BLOOD = "first_blood"
    FIRST_SOLVE = "first_solve"
    SOLVER = "solver"
    EXPERT = "expert"

    TYPE_CHOICES = [
        (FIRST_BLOOD, "First Blood!"),
        (FIRST_SOLVE, "Getting Started"),
        (SOLVER, "Problem Solver"),
        (EXPERT, "Expert Hacker"),
    ]

    user = models.ForeignKey(
        "user_auth.User",
        on_delete=models.CASCADE,
        db_column="user_id",
        null=False,
        db_index=True,
    )
    challenge = models.ForeignKey(
        Challenge,
        on_delete=models.SET_NULL,
        db_column="challenge_id",
        null=True,
        blank=True,
    )
    type = models.CharField(max_length=32, choices=TYPE_CHOICES, null=False)
    title = models.CharField(max_length=150, null=False)
    description = models.CharField(max_length=255, null=False)
    icon = models.CharField(max_length=16, null=False, blank=True, default="")
    awarded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "achievement"
        managed = True
        ordering = ["-awarded_at"]

    def __str__(self) -> str:
        return f"<Achievement user_id={self.user_id} type={self.type}>"
