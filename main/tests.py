import pytest
from django.urls import reverse

from services.solve_recorder import SolveRecorder


@pytest.mark.django_db
class TestHealthCheck:
    def test_healthy(self, client, mock_redis):
        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": True, "redis": True}
        mock_redis.ping.assert_called_once()

    def test_redis_down(self, client, mock_redis):
        mock_redis.ping.side_effect = ConnectionError("refused")

        response = client.get(reverse("health_check"))

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
        assert response.json()["redis"] is False


@pytest.mark.django_db
class TestHomeView:
    def test_home(self, client, user, challenge, inactive_challenge):
        SolveRecorder().record_solve(user.id, challenge.id)

        body = client.get(reverse("home")).json()

        assert body["active_challenges"] == 1
        assert body["latest_solves"][0]["user"] == "testuser"
        assert body["latest_solves"][0]["is_first_blood"] is True


@pytest.mark.django_db
class TestScoreboardViews:
    def test_scoreboard(self, client, user, other_user, challenge):
        SolveRecorder().record_solve(other_user.id, challenge.id)

        board = client.get(reverse("scoreboard")).json()["leaderboard"]

        assert board[0]["username"] == "otheruser"
        assert board[0]["score"] == 100
        assert board[0]["solves"] == 1
        assert board[1]["username"] == "testuser"

    def test_country_scoreboard(self, client, user, other_user, challenge):
        SolveRecorder().record_solve(user.id, challenge.id)

        countries = client.get(reverse("country_scoreboard")).json()["countries"]

        assert countries[0] == {"country": "NL", "total_score": 100, "user_count": 1}


@pytest.mark.django_db
class TestMeView:
    def test_requires_login(self, client):
        assert client.get(reverse("me")).status_code == 401

    def test_stats_and_achievements(self, logged_in_client, user, challenge):
        SolveRecorder().record_solve(user.id, challenge.id)

        body = logged_in_client.get(reverse("me")).json()

        assert body["stats"]["score"] == 100
        assert body["stats"]["rank"] == 1
        assert {a["type"] for a in body["achievements"]} == {
            "first_blood",
            "first_solve",
        }
