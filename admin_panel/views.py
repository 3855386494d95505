import logging
from typing import Optional

from django.core.paginator import Paginator
from django.db.models import Q
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_http_methods

from challenge.exceptions import SubmissionError
from challenge.models import FlagSubmission
from services.forensics import ForensicsLogger
from user_auth.decorators import admin_required

logger = logging.getLogger(__name__)

forensics_logger = ForensicsLogger()


def _parse_int_param(request: HttpRequest, name: str) -> Optional[int]:
    raw = request.GET.get(name, "").strip()
    if not raw:
        return None
    return int(raw)


@require_http_methods(["GET"])
@admin_required
def forensics(request: HttpRequest) -> HttpResponse:
    try:
        challenge_id = _parse_int_param(request, "challenge")
        limit = _parse_int_param(request, "limit")
    except ValueError:
        return JsonResponse({"error": "Invalid challenge id or limit."}, status=400)

    report = forensics_logger.get_forensics(challenge_id, limit)
    return JsonResponse(report.to_dict())


@require_http_methods(["GET"])
@admin_required
def challenge_analytics(request: HttpRequest, challenge_id: int) -> HttpResponse:
    try:
        analytics = forensics_logger.get_challenge_analytics(challenge_id)
    except SubmissionError as err:
        return JsonResponse(err.to_dict(), status=err.status_code)

    return JsonResponse(analytics.to_dict())


@require_http_methods(["GET"])
@admin_required
def submission_list(request: HttpRequest) -> HttpResponse:
    submissions = (
        FlagSubmission.objects.select_related("user", "challenge")
        .all()
        .order_by("-submitted_at", "-id")
    )

    search = request.GET.get("search", "")
    if search:
        submissions = submissions.filter(
            Q(user__username__icontains=search)
            | Q(challenge__name__icontains=search)
            | Q(ip_address__icontains=search)
        )

    correct_filter = request.GET.get("correct", "")
    if correct_filter == "true":
        submissions = submissions.filter(is_correct=True)
    elif correct_filter == "false":
        submissions = submissions.filter(is_correct=False)

    paginator = Paginator(submissions, 50)
    page_number = request.GET.get("page", 1)
    page_obj = paginator.get_page(page_number)

    return JsonResponse(
        {
            "page": page_obj.number,
            "num_pages": paginator.num_pages,
            "count": paginator.count,
            "submissions": [
                {
                    "id": submission.id,
                    "user": submission.user.username,
                    "challenge": submission.challenge.name,
                    "submitted_flag": submission.submitted_flag,
                    "is_correct": submission.is_correct,
                    "ip_address": submission.ip_address,
                    "user_agent": submission.user_agent,
                    "submitted_at": submission.submitted_at.isoformat(),
                }
                for submission in page_obj
            ],
        }
    )
