from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    is_admin = models.BooleanField(default=False, null=False)
    banned = models.BooleanField(default=False, null=False)
    country = models.CharField(max_length=64, null=True, blank=True)
    score = models.IntegerField(default=0, null=False)
    solve_streak = models.IntegerField(default=0, null=False)
    last_solve_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["banned"], name="idx_user_banned"),
            models.Index(fields=["is_admin"], name="idx_user_is_admin"),
            models.Index(
                fields=["-score", "-solve_streak"], name="idx_user_leaderboard"
            ),
        ]

    def __str__(self) -> str:
        return self.username
