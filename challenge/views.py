import json
import logging

from django.views.decorators.http import require_http_methods
from django.http import HttpRequest, HttpResponse, JsonResponse
from typing import Any, Dict, cast

from .exceptions import SubmissionError, SubmissionValidationError
from user_auth.decorators import login_required_json, rate_limit
from user_auth.utils import get_client_ip, get_user_agent
from services.challenge_service import ChallengeService
from services.hint_service import HintService

logger = logging.getLogger(__name__)

challenge_service = ChallengeService()
hint_service = HintService()


def _read_payload(request: HttpRequest) -> Dict[str, Any]:
    if request.content_type == "application/json":
        try:
            payload = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise SubmissionValidationError("Invalid JSON body.")
        if not isinstance(payload, dict):
            raise SubmissionValidationError("Invalid JSON body.")
        return payload
    return request.POST.dict()


def _error_response(err: SubmissionError) -> JsonResponse:
    return JsonResponse(err.to_dict(), status=err.status_code)


@require_http_methods(["GET"])
def challenge_list(request: HttpRequest) -> HttpResponse:
    user = request.user
    user_id = cast(int, user.id) if user.is_authenticated else None
    return JsonResponse({"challenges": challenge_service.list_challenges(user_id)})


@require_http_methods(["POST"])
@rate_limit("30/m", method="POST")
@login_required_json
def submit_flag(request: HttpRequest, challenge_id: int) -> HttpResponse:
    user = request.user

    try:
        payload = _read_payload(request)
        result = challenge_service.submit_flag(
            cast(int, user.id),
            challenge_id,
            payload.get("flag"),
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )
    except SubmissionError as err:
        return _error_response(err)

    return JsonResponse(result.to_dict())


@require_http_methods(["GET"])
@login_required_json
def rate_limit_status(request: HttpRequest, challenge_id: int) -> HttpResponse:
    try:
        status = challenge_service.get_rate_limit_status(
            cast(int, request.user.id), challenge_id
        )
    except SubmissionError as err:
        return _error_response(err)

    return JsonResponse(
        {
            "allowed": status.allowed,
            "wait_seconds": status.wait_seconds,
            "attempts": status.attempts,
        }
    )


@require_http_methods(["POST"])
@rate_limit("10/m", method="POST")
@login_required_json
def use_hint(request: HttpRequest, challenge_id: int, hint_index: int) -> HttpResponse:
    try:
        hint = hint_service.use_hint(cast(int, request.user.id), challenge_id, hint_index)
    except SubmissionError as err:
        return _error_response(err)

    return JsonResponse(
        {
            "index": hint.index,
            "content": hint.content,
            "cost": hint.cost,
            "charged": hint.charged,
        }
    )
