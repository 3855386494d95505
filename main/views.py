import logging
from django.conf import settings
from django.http import JsonResponse, HttpRequest
from django.db import connection
from django.views.decorators.http import require_http_methods

from challenge.models import Achievement, Challenge
from challenge.utils import get_redis_client
from services.leaderboard import (
    get_country_leaderboard,
    get_latest_solves,
    get_leaderboard,
    get_user_stats,
)
from user_auth.decorators import login_required_json

logger = logging.getLogger(__name__)


def health_check(request: HttpRequest) -> JsonResponse:
    checks = {
        "status": "ok",
        "database": False,
        "redis": False,
    }
    status_code = 200

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            checks["database"] = True
    except Exception:
        logger.error("Error checking database", exc_info=True)
        checks["database"] = False
        checks["status"] = "degraded"
        status_code = 503

    try:
        redis_client = get_redis_client()
        redis_client.ping()
        checks["redis"] = True
    except Exception:
        logger.error("Error checking Redis", exc_info=True)
        checks["redis"] = False
        checks["status"] = "degraded"
        status_code = 503

    return JsonResponse(checks, status=status_code)


@require_http_methods(["GET"])
def home(request: HttpRequest) -> JsonResponse:
    return JsonResponse(
        {
            "name": settings.CTF_NAME,
            "flag_format": settings.FLAG_FORMAT,
            "active_challenges": Challenge.objects.filter(active=True).count(),
            "latest_solves": get_latest_solves(10),
        }
    )


@require_http_methods(["GET"])
def scoreboard_view(request: HttpRequest) -> JsonResponse:
    return JsonResponse({"leaderboard": get_leaderboard(settings.LEADERBOARD_SIZE)})


@require_http_methods(["GET"])
def country_scoreboard_view(request: HttpRequest) -> JsonResponse:
    return JsonResponse({"countries": get_country_leaderboard()})


@require_http_methods(["GET"])
@login_required_json
def me_view(request: HttpRequest) -> JsonResponse:
    user = request.user
    achievements = Achievement.objects.filter(user_id=user.id).select_related(  # type: ignore
        "challenge"
    )

    return JsonResponse(
        {
            "id": user.id,
            "username": user.username,
            "country": user.country,  # type: ignore
            "is_admin": user.is_admin,  # type: ignore
            "stats": get_user_stats(user),  # type: ignore
            "achievements": [
                {
                    "type": achievement.type,
                    "title": achievement.title,
                    "description": achievement.description,
                    "icon": achievement.icon,
                    "challenge": achievement.challenge.name
                    if achievement.challenge
                    else None,
                    "awarded_at": achievement.awarded_at.isoformat(),
                }
                for achievement in achievements
            ],
        }
    )
