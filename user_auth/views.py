import json
import logging

from django.contrib.auth import authenticate, login, logout as django_logout
from django.views.decorators.http import require_http_methods
from django.http import HttpRequest, HttpResponse, JsonResponse
from typing import Any, Dict

from .decorators import rate_limit
from .utils import get_client_ip

logger = logging.getLogger(__name__)


def _read_credentials(request: HttpRequest) -> Dict[str, Any]:
    if request.content_type == "application/json":
        try:
            payload = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}
        return payload if isinstance(payload, dict) else {}
    return request.POST.dict()


@require_http_methods(["POST"])
@rate_limit("5/m", method="POST")
def login_view(request: HttpRequest) -> HttpResponse:
    credentials = _read_credentials(request)
    username = str(credentials.get("username", "")).strip()
    password = str(credentials.get("password", ""))

    if not username or not password:
        return JsonResponse({"error": "Username and password are required."}, status=400)

    user = authenticate(request, username=username, password=password)
    if user is None:
        logger.info(
            f"Failed login attempt: username={username}, ip={get_client_ip(request)}"
        )
        return JsonResponse({"error": "Invalid credentials."}, status=401)

    if user.banned:
        return JsonResponse({"error": "Your account has been banned."}, status=403)

    login(request, user)
    logger.info(f"User logged in: user_id={user.id}, ip={get_client_ip(request)}")
    return JsonResponse(
        {
            "id": user.id,
            "username": user.username,
            "is_admin": user.is_admin,
            "score": user.score,
        }
    )


@require_http_methods(["POST"])
def logout_view(request: HttpRequest) -> HttpResponse:
    if request.user.is_authenticated:
        logger.info(f"User logged out: user_id={request.user.id}")
    django_logout(request)
    return JsonResponse({"message": "Logged out."})
