from functools import wraps
from django.http import HttpRequest, HttpResponse, JsonResponse
from typing import Callable, Any, ParamSpec, TypeVar, Concatenate, cast
from django_ratelimit.decorators import ratelimit
from django.conf import settings

P = ParamSpec("P")
R = TypeVar("R", bound=HttpResponse)


def get_rate_limit_key_fn(group: str, request: HttpRequest) -> str:
    if hasattr(request, "user") and request.user.is_authenticated:
        return f"user:{request.user.id}"
    x_forwarded_for: str = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if x_forwarded_for:
        return f"ip:{x_forwarded_for.split(',')[0]}"
    else:
        return f"ip:{request.META.get('REMOTE_ADDR', 'unknown')}"


def rate_limit(rate: str, method: str = "POST", block: bool = True) -> Callable[
    [Callable[Concatenate[HttpRequest, P], R]],
    Callable[Concatenate[HttpRequest, P], R],
]:
    def decorator(
        view_func: Callable[Concatenate[HttpRequest, P], R],
    ) -> Callable[Concatenate[HttpRequest, P], R]:
        ratelimited_func = ratelimit(
            key=get_rate_limit_key_fn, rate=rate, method=method, block=block
        )(view_func)

        @wraps(view_func)
        def sync_wrapper(request: HttpRequest, /, *args: Any, **kwargs: Any) -> Any:
            if settings.DISABLE_RATE_LIMITING:
                return view_func(request, *args, **kwargs)
            return ratelimited_func(request, *args, **kwargs)

        return sync_wrapper

    return decorator


def login_required_json(
    view_func: Callable[Concatenate[HttpRequest, P], R],
) -> Callable[Concatenate[HttpRequest, P], R]:
    @wraps(view_func)
    def wrapper(request: HttpRequest, /, *args: P.args, **kwargs: P.kwargs) -> R:
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return cast(
                R, JsonResponse({"error": "Authentication required."}, status=401)
            )
        return view_func(request, *args, **kwargs)

    return wrapper


def admin_required(
    view_func: Callable[Concatenate[HttpRequest, P], R],
) -> Callable[Concatenate[HttpRequest, P], R]:
    @wraps(view_func)
    def wrapper(request: HttpRequest, /, *args: P.args, **kwargs: P.kwargs) -> R:
        user = getattr(request, "user", None)
        if (
            not user
            or not hasattr(user, "is_authenticated")
            or not user.is_authenticated
        ):
            return cast(
                R, JsonResponse({"error": "Authentication required."}, status=401)
            )
        if not hasattr(user, "is_admin") or not user.is_admin:
            return cast(R, JsonResponse({"error": "Admin access required."}, status=403))
        return view_func(request, *args, **kwargs)

    return wrapper
