import json
import pytest
from itertools import count
from unittest.mock import Mock
from django.urls import reverse

from notifications.models import Notification
from notifications.stream import channel_name, iter_events, publish


@pytest.mark.django_db
class TestNotificationViews:
    def test_requires_login(self, client):
        assert client.get(reverse("notifications:notifications")).status_code == 401

    def test_list_and_mark_read(self, logged_in_client, user, other_user, challenge):
        Notification.objects.create(
            user=user,
            kind=Notification.CHALLENGE_RELEASED,
            challenge=challenge,
            message="Challenge released.",
        )
        Notification.objects.create(user=other_user, message="Not yours.")

        body = logged_in_client.get(reverse("notifications:notifications")).json()
        assert len(body["notifications"]) == 1
        assert body["notifications"][0]["kind"] == "challenge_released"
        assert body["notifications"][0]["challenge_id"] == challenge.id

        response = logged_in_client.post(reverse("notifications:mark_read"))
        assert response.json() == {"updated": 1}
        assert Notification.objects.get(user=user).is_read is True

    def test_filter_by_kind_and_unread(self, logged_in_client, user):
        Notification.objects.create(user=user, kind=Notification.FIRST_BLOOD, message="a")
        Notification.objects.create(
            user=user, kind=Notification.ANNOUNCEMENT, message="b", is_read=True
        )
        url = reverse("notifications:notifications")

        by_kind = logged_in_client.get(url, {"kind": "first_blood"}).json()
        unread = logged_in_client.get(url, {"unread": "true"}).json()

        assert [n["message"] for n in by_kind["notifications"]] == ["a"]
        assert [n["message"] for n in unread["notifications"]] == ["a"]
        assert logged_in_client.get(url, {"kind": "bogus"}).status_code == 400

    def test_stream_rejects_other_channel(self, logged_in_client, other_user):
        response = logged_in_client.get(
            reverse("notifications:stream", args=[other_user.id])
        )
        assert response.status_code == 403


@pytest.mark.django_db
class TestPublish:
    def test_publishes_payload_to_owner_channel(self, mock_redis, user, challenge):
        notification = Notification.objects.create(
            user=user,
            kind=Notification.FIRST_BLOOD,
            challenge=challenge,
            message="First blood!",
        )

        assert publish([notification]) == 1

        channel, payload = mock_redis.publish.call_args[0]
        assert channel == channel_name(user.id)
        assert json.loads(payload)["kind"] == "first_blood"
        assert json.loads(payload)["challenge_id"] == challenge.id

    def test_redis_errors_logged(self, mock_redis, user):
        mock_redis.publish.side_effect = ConnectionError("refused")
        notification = Notification.objects.create(user=user, message="hello")

        assert publish([notification]) == 0


class TestIterEvents:
    def test_events_named_after_kind(self):
        pubsub = Mock()
        pubsub.get_message.side_effect = [
            {"data": json.dumps({"kind": "first_blood", "message": "First blood!"})},
            {"data": "not json"},
            None,
        ]
        ticks = count()
        calls = count()

        events = list(
            iter_events(
                pubsub,
                heartbeat_interval=2,
                clock=lambda: next(ticks),
                should_stop=lambda: next(calls) >= 3,
            )
        )

        assert events[0].startswith("event: connected\n")
        assert events[1].startswith("event: first_blood\ndata: ")
        assert "event: heartbeat\n\n" in events
        assert not any("not json" in event for event in events)
