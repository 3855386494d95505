import logging
from django.conf import settings
from django.contrib.auth import logout as django_logout
from django.utils.deprecation import MiddlewareMixin

from .models import User
from django.http import HttpRequest, HttpResponse, JsonResponse
from typing import Optional

logger = logging.getLogger(__name__)


class UserStatusMiddleware(MiddlewareMixin):
    def process_request(self, request: HttpRequest) -> Optional[HttpResponse]:
        user: Optional[User] = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return None

        if user.banned:
            logger.info(f"Logging out banned user: user_id={user.id}")
            django_logout(request)
            request.session.flush()
            return JsonResponse({"error": "Your account has been banned."}, status=403)

        return None


class SecurityHeadersMiddleware(MiddlewareMixin):
    def process_response(
        self, request: HttpRequest, response: HttpResponse
    ) -> HttpResponse:
        response["X-Frame-Options"] = "DENY"

        response["X-Content-Type-Options"] = "nosniff"

        response["X-XSS-Protection"] = "1; mode=block"

        response["Referrer-Policy"] = "strict-origin-when-cross-origin"

        host = request.get_host().split(":")[0].lower()
        is_secure = request.is_secure() or host in (
            "localhost",
            "127.0.0.1",
            "::1",
            settings.SERVER_NAME.split(":")[0],
        )
        if is_secure:
            response["Cross-Origin-Opener-Policy"] = "same-origin"

        response["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"

        return response
