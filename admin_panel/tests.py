import pytest
from datetime import timedelta
from django.urls import reverse
from django.utils import timezone

from services.forensics import ForensicsLogger


@pytest.fixture
def wrong_submissions(db, user, challenge):
    forensics_logger = ForensicsLogger()
    now = timezone.now()
    return [
        forensics_logger.log_submission(
            user.id,
            challenge.id,
            flag,
            False,
            "198.51.100.7",
            "curl/8.0",
            now=now + timedelta(seconds=offset),
        )
        for flag, offset in [("FLAG{a}", 0), ("FLAG{b}", 12)]
    ]


@pytest.mark.django_db
class TestAdminAccess:
    @pytest.mark.parametrize(
        "url_name,args",
        [
            ("admin:forensics", []),
            ("admin:submission_list", []),
        ],
    )
    def test_anonymous_rejected(self, client, url_name, args):
        assert client.get(reverse(url_name, args=args)).status_code == 401

    def test_regular_user_forbidden(self, logged_in_client, challenge):
        response = logged_in_client.get(
            reverse("admin:challenge_analytics", args=[challenge.id])
        )
        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required."}


@pytest.mark.django_db
class TestForensicsView:
    def test_forensics_for_challenge(self, admin_client, challenge, wrong_submissions):
        response = admin_client.get(
            reverse("admin:forensics"), {"challenge": challenge.id}
        )

        assert response.status_code == 200
        assert response.json() == {
            "wrong_flags": ["FLAG{b}", "FLAG{a}"],
            "time_gaps": [12],
            "ip_addresses": ["198.51.100.7"],
            "user_agents": ["curl/8.0"],
        }

    def test_forensics_all_challenges(self, admin_client, wrong_submissions):
        response = admin_client.get(reverse("admin:forensics"))
        assert len(response.json()["wrong_flags"]) == 2

    def test_forensics_limit(self, admin_client, challenge, wrong_submissions):
        response = admin_client.get(
            reverse("admin:forensics"), {"challenge": challenge.id, "limit": 1}
        )

        assert response.json()["wrong_flags"] == ["FLAG{b}"]
        assert response.json()["time_gaps"] == []

    def test_invalid_challenge_filter(self, admin_client):
        response = admin_client.get(reverse("admin:forensics"), {"challenge": "abc"})
        assert response.status_code == 400


@pytest.mark.django_db
class TestChallengeAnalyticsView:
    def test_analytics(self, admin_client, challenge, wrong_submissions):
        response = admin_client.get(
            reverse("admin:challenge_analytics", args=[challenge.id])
        )

        assert response.status_code == 200
        assert response.json() == {
            "total_attempts": 2,
            "unique_solvers": 0,
            "average_solve_time": 0,
            "difficulty_rating": 4,
        }

    def test_unknown_challenge(self, admin_client):
        response = admin_client.get(reverse("admin:challenge_analytics", args=[99999]))
        assert response.status_code == 404


@pytest.mark.django_db
class TestSubmissionListView:
    def test_lists_newest_first(self, admin_client, wrong_submissions):
        response = admin_client.get(reverse("admin:submission_list"))

        body = response.json()
        assert body["count"] == 2
        assert [s["submitted_flag"] for s in body["submissions"]] == [
            "FLAG{b}",
            "FLAG{a}",
        ]

    def test_filters(self, admin_client, wrong_submissions):
        url = reverse("admin:submission_list")

        assert admin_client.get(url, {"correct": "true"}).json()["count"] == 0
        assert admin_client.get(url, {"search": "testuser"}).json()["count"] == 2
        assert admin_client.get(url, {"search": "nobody"}).json()["count"] == 0
