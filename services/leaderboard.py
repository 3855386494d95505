from typing import Any, Dict, List

from django.db.models import Count, Sum

from challenge.models import Solve
from user_auth.models import User


def get_leaderboard(limit: int = 50) -> List[Dict[str, Any]]:
    users = (
        User.objects.filter(banned=False, is_admin=False)
        .annotate(solves=Count("solve"))
        .order_by("-score", "-solve_streak", "last_solve_at", "id")
        .values("id", "username", "country", "score", "solve_streak", "solves")[:limit]
    )
    return [{"rank": index + 1, **user} for index, user in enumerate(users)]


def get_country_leaderboard() -> List[Dict[str, Any]]:
    rows = (
        User.objects.filter(banned=False, is_admin=False, country__isnull=False)
        .exclude(country="")
        .values("country")
        .annotate(total_score=Sum("score"), user_count=Count("id"))
        .order_by("-total_score", "country")
    )
    return [
        {
            "country": row["country"],
            "total_score": int(row["total_score"] or 0),
            "user_count": row["user_count"],
        }
        for row in rows
    ]


def get_user_stats(user: User) -> Dict[str, int]:
    """Rank counts every user whose score is at least this user's, ties included."""
    return {
        "solves": Solve.objects.filter(user_id=user.id).count(),
        "score": user.score,
        "rank": User.objects.filter(score__gte=user.score).count(),
        "solve_streak": user.solve_streak,
    }


def get_latest_solves(limit: int = 10) -> List[Dict[str, Any]]:
    solves = Solve.objects.select_related("user", "challenge").order_by(
        "-solved_at", "-id"
    )[:limit]
    return [
        {
            "user": solve.user.username,
            "challenge": solve.challenge.name,
            "points_awarded": solve.points_awarded,
            "is_first_blood": solve.is_first_blood,
            "solved_at": solve.solved_at.isoformat(),
        }
        for solve in solves
    ]
