import logging
from django.http import HttpRequest, HttpResponse, JsonResponse, StreamingHttpResponse
from django.views.decorators.http import require_http_methods
from typing import Iterator

from challenge.utils import get_redis_client
from user_auth.decorators import login_required_json
from .models import Notification
from .stream import channel_name, format_event, iter_events

logger = logging.getLogger(__name__)

KINDS = {kind for kind, _ in Notification.KIND_CHOICES}


@require_http_methods(["GET"])
@login_required_json
def notifications_view(request: HttpRequest) -> HttpResponse:
    notifications = Notification.objects.filter(user_id=request.user.id)  # type: ignore

    kind = request.GET.get("kind", "")
    if kind:
        if kind not in KINDS:
            return JsonResponse({"error": "Unknown notification kind."}, status=400)
        notifications = notifications.filter(kind=kind)

    if request.GET.get("unread") == "true":
        notifications = notifications.filter(is_read=False)

    return JsonResponse(
        {
            "notifications": [
                notification.to_payload()
                for notification in notifications.order_by("-created_at", "-id")[:100]
            ]
        }
    )


@require_http_methods(["POST"])
@login_required_json
def mark_read_view(request: HttpRequest) -> HttpResponse:
    updated = Notification.objects.filter(
        user_id=request.user.id, is_read=False  # type: ignore
    ).update(is_read=True)
    return JsonResponse({"updated": updated})


@require_http_methods(["GET"])
@login_required_json
def stream_view(request: HttpRequest, channel: int) -> HttpResponse:
    if channel != request.user.id:
        return JsonResponse({"error": "Cannot subscribe to another user."}, status=403)

    def event_stream() -> Iterator[str]:
        pubsub = get_redis_client().pubsub()  # type: ignore
        pubsub.subscribe(channel_name(channel))
        try:
            yield from iter_events(pubsub)
        except GeneratorExit:
            raise
        except Exception:
            logger.error(f"Error in event stream: user_id={channel}", exc_info=True)
            yield format_event("error", {"message": "Error in event stream"})
        finally:
            pubsub.unsubscribe(channel_name(channel))
            pubsub.close()

    response = StreamingHttpResponse(event_stream(), content_type="text/event-stream")
    response["Cache-Control"] = "no-cache"
    response["X-Accel-Buffering"] = "no"
    return response
