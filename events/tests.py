import pytest

from notifications.models import Notification
from services.solve_recorder import SolveRecorder
from tasks.tasks import send_notification


@pytest.mark.django_db
class TestSendNotification:
    def test_single_user(self, user, mock_redis):
        assert send_notification("Hello there.", user_id=user.id) == 1

        notification = Notification.objects.get(user=user)
        assert notification.message == "Hello there."
        assert notification.kind == Notification.ANNOUNCEMENT
        mock_redis.publish.assert_called_once()

    def test_to_all_skips_banned(self, user, other_user):
        other_user.banned = True
        other_user.save()

        send_notification("Announcement.", to_all=True)

        assert list(Notification.objects.values_list("user_id", flat=True)) == [user.id]


@pytest.mark.django_db
class TestSignals:
    def test_first_blood_announced(
        self, user, other_user, challenge, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            SolveRecorder().record_solve(user.id, challenge.id)

        rows = set(Notification.objects.values_list("kind", "challenge_id", "message"))
        assert rows == {
            (
                Notification.FIRST_BLOOD,
                challenge.id,
                "First blood! testuser solved Test Challenge.",
            )
        }
        assert Notification.objects.count() == 2

    def test_second_solve_not_announced(
        self, user, other_user, challenge, django_capture_on_commit_callbacks
    ):
        SolveRecorder().record_solve(user.id, challenge.id)

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            SolveRecorder().record_solve(other_user.id, challenge.id)

        assert callbacks == []

    def test_deactivation_announced(
        self, user, challenge, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            challenge.active = False
            challenge.save()

        notification = Notification.objects.get(user=user)
        assert notification.kind == Notification.CHALLENGE_DEACTIVATED
        assert notification.message == "Challenge Test Challenge has been deactivated."


@pytest.mark.django_db
class TestSendNotificationRecipients:
    def test_no_recipients(self, user):
        assert send_notification("Nobody.") == 0
        assert not Notification.objects.exists()
