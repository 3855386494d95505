from django.db import models
from typing import Any, Dict


class Notification(models.Model):
    FIRST_BLOOD = "first_blood"
    CHALLENGE_RELEASED = "challenge_released"
    CHALLENGE_DEACTIVATED = "challenge_deactivated"
    ANNOUNCEMENT = "announcement"
    KIND_CHOICES = [
        (FIRST_BLOOD, "First blood"),
        (CHALLENGE_RELEASED, "Challenge released"),
        (CHALLENGE_DEACTIVATED, "Challenge deactivated"),
        (ANNOUNCEMENT, "Announcement"),
    ]

    user = models.ForeignKey(
        "user_auth.User", on_delete=models.CASCADE, db_column="user_id"
    )
    kind = models.CharField(
        max_length=32, choices=KIND_CHOICES, null=False, default=ANNOUNCEMENT
    )
    challenge = models.ForeignKey(
        "challenge.Challenge",
        on_delete=models.SET_NULL,
        db_column="challenge_id",
        null=True,
        blank=True,
    )
    message = models.CharField(max_length=255)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "notification"
        managed = True
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_read"], name="idx_notification_unread"),
        ]

    def to_payload(self) -> Dict[str, Any]:
        """Shape shared by the list endpoint and the event stream."""
        return {
            "id": self.id,
            "kind": self.kind,
            "challenge_id": self.challenge_id,
            "message": self.message,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self) -> str:
        return f"<Notification {self.kind} user_id={self.user_id}>"
