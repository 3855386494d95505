import pytest
from typing import List
from unittest.mock import Mock
from django.contrib.auth import get_user_model
from django.test import Client

import services.rate_limiter
from challenge.models import Challenge

User = get_user_model()


@pytest.fixture(autouse=True)
def disable_rate_limiting(settings):
    settings.DISABLE_RATE_LIMITING = True


@pytest.fixture(autouse=True)
def reset_rate_limit_store():
    services.rate_limiter._rate_limit_store = None
    yield
    services.rate_limiter._rate_limit_store = None


@pytest.fixture(autouse=True)
def mock_redis(monkeypatch) -> Mock:
    redis_client = Mock()
    monkeypatch.setattr("notifications.stream.get_redis_client", lambda: redis_client)
    monkeypatch.setattr("notifications.views.get_redis_client", lambda: redis_client)
    monkeypatch.setattr("main.views.get_redis_client", lambda: redis_client)
    return redis_client


@pytest.fixture
def client() -> Client:
    return Client()


@pytest.fixture
def user(db) -> User:
    return User.objects.create_user(
        username="testuser",
        email="test@example.com",
        password="testpass123",
        country="NL",
    )


@pytest.fixture
def other_user(db) -> User:
    return User.objects.create_user(
        username="otheruser",
        email="other@example.com",
        password="otherpass123",
        country="DE",
    )


@pytest.fixture
def admin_user(db) -> User:
    return User.objects.create_user(
        username="admin",
        email="admin@example.com",
        password="adminpass123",
        is_admin=True,
    )


@pytest.fixture
def challenge(db) -> Challenge:
    return Challenge.objects.create(
        name="Test Challenge",
        category="Web",
        points=100,
        flag="FLAG{test}",
        hints=[
            {"content": "Look at the cookies.", "cost": 10},
            {"content": "Free nudge.", "cost": 0},
        ],
        active=True,
    )


@pytest.fixture
def inactive_challenge(db) -> Challenge:
    return Challenge.objects.create(
        name="Retired Challenge",
        category="Crypto",
        points=50,
        flag="FLAG{retired}",
        active=False,
    )


@pytest.fixture
def challenges(db) -> List[Challenge]:
    return [
        Challenge.objects.create(
            name=f"Test Challenge {index}",
            category="Misc" if index % 2 else "Web",
            points=50 * index,
            flag=f"FLAG{{test{index}}}",
            active=True,
        )
        for index in range(1, 5)
    ]


@pytest.fixture
def logged_in_client(client, user, db) -> Client:
    client.force_login(user)
    return client


@pytest.fixture
def admin_client(db, admin_user) -> Client:
    client = Client()
    client.force_login(admin_user)
    return client
