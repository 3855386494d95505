import json
import pytest
from io import StringIO
from pathlib import Path
from unittest.mock import patch
from django.core.management import call_command
from django.urls import reverse

from challenge.exceptions import RateLimitedError
from challenge.models import Challenge, FlagSubmission, HintUsage, Solve


@pytest.mark.django_db
class TestChallengeModel:
    def test_create_challenge(self, settings):
        challenge = Challenge.objects.create(
            name="Test Challenge",
            category="Web",
            points=100,
            flag="FLAG{test}",
        )
        assert challenge.active is True
        assert challenge.total_solves == 0
        assert challenge.hints == []
        assert challenge.flag_format == settings.FLAG_FORMAT

    def test_challenge_str(self, challenge):
        assert str(challenge) == "<Challenge Web::Test Challenge>"

    def test_get_hint(self, challenge):
        assert challenge.get_hint(0)["cost"] == 10
        with pytest.raises(IndexError):
            challenge.get_hint(2)
        with pytest.raises(IndexError):
            challenge.get_hint(-1)


class TestRateLimitedError:
    def test_to_dict(self):
        err = RateLimitedError(7)
        assert err.status_code == 429
        assert err.to_dict() == {
            "error": "Rate limited. Try again in 7 seconds.",
            "wait_seconds": 7,
        }


@pytest.mark.django_db
class TestChallengeViews:
    def submit(self, client, challenge_id, flag, **extra):
        return client.post(
            reverse("submit_flag", args=[challenge_id]),
            data=json.dumps({"flag": flag}),
            content_type="application/json",
            **extra,
        )

    def test_list_is_public(self, client, challenge, inactive_challenge):
        response = client.get(reverse("challenge_list"))

        assert response.status_code == 200
        challenges = response.json()["challenges"]
        assert [c["name"] for c in challenges] == ["Test Challenge"]
        assert challenges[0]["solved"] is False
        assert "flag" not in challenges[0]

    def test_submit_requires_login(self, client, challenge):
        response = self.submit(client, challenge.id, "FLAG{test}")
        assert response.status_code == 401

    def test_submit_correct(self, logged_in_client, challenge, user):
        response = self.submit(
            logged_in_client,
            challenge.id,
            "FLAG{test}",
            HTTP_USER_AGENT="pytest-agent",
            HTTP_X_FORWARDED_FOR="203.0.113.9",
        )

        assert response.status_code == 200
        assert response.json() == {
            "correct": True,
            "message": "Correct! First blood!",
            "points_awarded": 100,
            "is_first_blood": True,
        }
        submission = FlagSubmission.objects.get(user=user, challenge=challenge)
        assert submission.ip_address == "203.0.113.9"
        assert submission.user_agent == "pytest-agent"

    def test_submit_with_forged_forwarded_for(self, logged_in_client, challenge, user):
        response = self.submit(
            logged_in_client, challenge.id, "FLAG{test}", HTTP_X_FORWARDED_FOR="x" * 100
        )

        assert response.status_code == 200
        assert response.json()["correct"] is True
        submission = FlagSubmission.objects.get(user=user, challenge=challenge)
        assert submission.ip_address == "127.0.0.1"

    def test_submit_incorrect_then_rate_limited(self, logged_in_client, challenge):
        response = self.submit(logged_in_client, challenge.id, "FLAG{wrong}")
        assert response.status_code == 200
        assert response.json()["correct"] is False
        assert response.json()["next_allowed_in_seconds"] == 5

        response = self.submit(logged_in_client, challenge.id, "FLAG{test}")
        assert response.status_code == 429
        assert response.json()["wait_seconds"] > 0

    def test_submit_form_encoded(self, logged_in_client, challenge):
        response = logged_in_client.post(
            reverse("submit_flag", args=[challenge.id]), data={"flag": "FLAG{test}"}
        )
        assert response.status_code == 200
        assert response.json()["correct"] is True

    def test_submit_missing_flag(self, logged_in_client, challenge):
        response = logged_in_client.post(
            reverse("submit_flag", args=[challenge.id]),
            data="{}",
            content_type="application/json",
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Flag is required."}

    def test_submit_invalid_json(self, logged_in_client, challenge):
        response = logged_in_client.post(
            reverse("submit_flag", args=[challenge.id]),
            data="{not json",
            content_type="application/json",
        )
        assert response.status_code == 400

    def test_submit_unknown_challenge(self, logged_in_client):
        response = self.submit(logged_in_client, 99999, "FLAG{test}")
        assert response.status_code == 404

    def test_submit_already_solved(self, logged_in_client, challenge):
        self.submit(logged_in_client, challenge.id, "FLAG{test}")
        response = self.submit(logged_in_client, challenge.id, "FLAG{test}")

        assert response.status_code == 409
        assert Solve.objects.filter(challenge=challenge).count() == 1

    def test_submit_get_not_allowed(self, logged_in_client, challenge):
        response = logged_in_client.get(reverse("submit_flag", args=[challenge.id]))
        assert response.status_code == 405

    def test_rate_limit_status(self, logged_in_client, challenge):
        url = reverse("rate_limit_status", args=[challenge.id])
        assert logged_in_client.get(url).json() == {
            "allowed": True,
            "wait_seconds": 0,
            "attempts": 0,
        }

        self.submit(logged_in_client, challenge.id, "FLAG{wrong}")

        body = logged_in_client.get(url).json()
        assert body["allowed"] is False
        assert body["attempts"] == 1

    def test_use_hint(self, logged_in_client, challenge, user):
        url = reverse("use_hint", args=[challenge.id, 0])

        first = logged_in_client.post(url)
        second = logged_in_client.post(url)

        assert first.json() == {
            "index": 0,
            "content": "Look at the cookies.",
            "cost": 10,
            "charged": True,
        }
        assert second.json()["charged"] is False
        assert HintUsage.objects.filter(user=user).count() == 1
        user.refresh_from_db()
        assert user.score == -10

    def test_use_unknown_hint(self, logged_in_client, challenge):
        response = logged_in_client.post(reverse("use_hint", args=[challenge.id, 9]))
        assert response.status_code == 404


@pytest.mark.django_db
class TestSetupChallengesCommand:
    def write_challenge(self, root: Path, folder: str, metadata: dict) -> Path:
        challenge_dir = root / folder
        challenge_dir.mkdir(parents=True)
        path = challenge_dir / "metadata.json"
        path.write_text(json.dumps(metadata))
        return path

    @pytest.fixture
    def metadata(self):
        return {
            "NAME": "Baby SQLi",
            "POINTS": 150,
            "FLAG": "CyberCTF{union_select}",
            "ACTIVE": True,
            "CATEGORY": "Web",
            "DIFFICULTY": "easy",
            "HINTS": [{"content": "Quotes matter.", "cost": 15}],
        }

    def test_creates_challenge(self, tmp_path, metadata):
        self.write_challenge(tmp_path, "baby_sqli", metadata)

        with patch(
            "challenge.management.commands.setup_challenges.send_notification"
        ) as mock_notify:
            call_command("setup_challenges", challenges_dir=str(tmp_path))

        challenge = Challenge.objects.get(name="Baby SQLi")
        assert challenge.points == 150
        assert challenge.difficulty == "easy"
        assert challenge.hints == [{"content": "Quotes matter.", "cost": 15}]
        mock_notify.delay.assert_called_once()

    def test_updates_existing(self, tmp_path, metadata):
        path = self.write_challenge(tmp_path, "baby_sqli", metadata)
        with patch("challenge.management.commands.setup_challenges.send_notification"):
            call_command("setup_challenges", challenges_dir=str(tmp_path))

        metadata["POINTS"] = 200
        path.write_text(json.dumps(metadata))
        with patch(
            "challenge.management.commands.setup_challenges.send_notification"
        ) as mock_notify:
            call_command("setup_challenges", challenges_dir=str(tmp_path))

        assert Challenge.objects.get(name="Baby SQLi").points == 200
        assert Challenge.objects.count() == 1
        mock_notify.delay.assert_not_called()

    def test_invalid_metadata_skipped(self, tmp_path, metadata):
        del metadata["FLAG"]
        self.write_challenge(tmp_path, "broken", metadata)

        call_command("setup_challenges", challenges_dir=str(tmp_path))

        assert not Challenge.objects.exists()

    def test_missing_directory(self, tmp_path):
        out = StringIO()
        call_command(
            "setup_challenges", challenges_dir=str(tmp_path / "missing"), stdout=out
        )

        assert "Challenges directory not found" in out.getvalue()
        assert not Challenge.objects.exists()
