import json
import pytest
from io import StringIO
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.http import HttpRequest
from django.urls import reverse

from user_auth.utils import get_client_ip, get_user_agent

User = get_user_model()


@pytest.mark.django_db
class TestUserModel:
    def test_create_user(self):
        user = User.objects.create(
            username="testuser",
            email="test@example.com",
        )
        assert user.is_admin is False
        assert user.banned is False
        assert user.score == 0
        assert user.solve_streak == 0
        assert user.last_solve_at is None

    def test_no_email_verification_field(self):
        field_names = {field.name for field in User._meta.get_fields()}
        assert "verified" not in field_names

    def test_user_str(self):
        user = User.objects.create(
            username="testuser",
            email="test@example.com",
        )
        assert str(user) == "testuser"

    def test_user_password_hashing(self):
        user = User.objects.create(
            username="testuser",
            email="test@example.com",
        )
        user.set_password("testpass123")
        user.save()
        assert user.check_password("testpass123")
        assert not user.check_password("wrongpassword")


@pytest.mark.django_db
class TestLoginView:
    def test_login_json(self, client, user):
        response = client.post(
            reverse("login"),
            data=json.dumps({"username": user.username, "password": "testpass123"}),
            content_type="application/json",
        )
        assert response.status_code == 200
        assert response.json()["username"] == "testuser"
        assert response.json()["is_admin"] is False

    def test_login_form(self, client, user):
        response = client.post(
            reverse("login"), {"username": user.username, "password": "testpass123"}
        )
        assert response.status_code == 200
        assert client.get(reverse("me")).status_code == 200

    def test_login_invalid_password(self, client, user):
        response = client.post(
            reverse("login"), {"username": user.username, "password": "wrongpassword"}
        )
        assert response.status_code == 401

    def test_login_missing_fields(self, client):
        response = client.post(reverse("login"), {"username": "someone"})
        assert response.status_code == 400

    def test_login_banned(self, client, user):
        user.banned = True
        user.save()

        response = client.post(
            reverse("login"), {"username": user.username, "password": "testpass123"}
        )
        assert response.status_code == 403

    def test_login_get_not_allowed(self, client):
        assert client.get(reverse("login")).status_code == 405


@pytest.mark.django_db
class TestLogoutView:
    def test_logout_authenticated(self, logged_in_client):
        response = logged_in_client.post(reverse("logout"))
        assert response.status_code == 200
        assert logged_in_client.get(reverse("me")).status_code == 401

    def test_logout_unauthenticated(self, client):
        response = client.post(reverse("logout"))
        assert response.status_code == 200


@pytest.mark.django_db
class TestUserStatusMiddleware:
    def test_banned_user_logged_out(self, logged_in_client, user):
        user.banned = True
        user.save()

        response = logged_in_client.get(reverse("me"))
        assert response.status_code == 403

        user.banned = False
        user.save()
        assert logged_in_client.get(reverse("me")).status_code == 401


@pytest.mark.django_db
class TestSecurityHeaders:
    def test_headers_present(self, client):
        response = client.get(reverse("home"))
        assert response["X-Frame-Options"] == "DENY"
        assert response["X-Content-Type-Options"] == "nosniff"
        assert "frame-ancestors 'none'" in response["Content-Security-Policy"]


@pytest.mark.django_db
class TestBootstrapAdminCommand:
    def test_creates_admin(self):
        call_command(
            "bootstrap_admin",
            username="root",
            email="root@example.com",
            password="s3cure-pass",
            stdout=StringIO(),
        )

        admin = User.objects.get(username="root")
        assert admin.is_admin is True
        assert admin.check_password("s3cure-pass")

    def test_requires_password(self, settings):
        settings.ADMIN_PASSWORD = ""
        with pytest.raises(CommandError):
            call_command("bootstrap_admin", username="root", stdout=StringIO())

    def test_promotes_existing_user(self, user):
        call_command(
            "bootstrap_admin",
            username=user.username,
            password="rotated-pass",
            stdout=StringIO(),
        )

        user.refresh_from_db()
        assert user.is_admin is True
        assert user.check_password("rotated-pass")


class TestGetClientIp:
    def test_get_client_ip_with_no_ips(self):
        request = HttpRequest()
        ip = get_client_ip(request)
        assert ip == "0.0.0.0"

    def test_get_client_ip_with_x_forwarded_for(self):
        request = HttpRequest()
        request.META = {
            "HTTP_X_FORWARDED_FOR": "127.0.0.1, 192.168.1.1",
        }
        ip = get_client_ip(request)
        assert ip == "127.0.0.1"

    def test_get_client_ip_with_x_real_ip(self):
        request = HttpRequest()
        request.META = {
            "HTTP_X_REAL_IP": "127.0.0.1",
        }
        ip = get_client_ip(request)
        assert ip == "127.0.0.1"

    def test_get_client_ip_with_remote_addr(self):
        request = HttpRequest()
        request.META = {
            "REMOTE_ADDR": "127.0.0.1",
        }
        ip = get_client_ip(request)
        assert ip == "127.0.0.1"

    def test_get_client_ip_ignores_garbage_forwarded_for(self):
        request = HttpRequest()
        request.META = {
            "HTTP_X_FORWARDED_FOR": "x" * 100,
            "REMOTE_ADDR": "10.1.2.3",
        }
        assert get_client_ip(request) == "10.1.2.3"

    def test_get_client_ip_falls_back_to_x_real_ip(self):
        request = HttpRequest()
        request.META = {
            "HTTP_X_FORWARDED_FOR": "not-an-ip",
            "HTTP_X_REAL_IP": "2001:db8::1",
            "REMOTE_ADDR": "10.1.2.3",
        }
        assert get_client_ip(request) == "2001:db8::1"


class TestGetUserAgent:
    def test_missing_user_agent(self):
        assert get_user_agent(HttpRequest()) == ""

    def test_user_agent_truncated(self):
        request = HttpRequest()
        request.META = {"HTTP_USER_AGENT": "a" * 2000}
        assert len(get_user_agent(request)) == 1024
