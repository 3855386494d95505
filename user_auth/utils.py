import ipaddress
from django.http import HttpRequest
from typing import Optional, cast


def _valid_ip(value: str) -> Optional[str]:
    value = value.strip()
    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        return None


def get_client_ip(request: HttpRequest) -> str:
    """First parseable address from the proxy headers, else REMOTE_ADDR.

    Header values are client-controlled, so anything that is not an IP
    address is ignored.
    """
    x_forwarded_for: str = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if x_forwarded_for:
        ip = _valid_ip(x_forwarded_for.split(",")[0])
        if ip:
            return ip

    x_real_ip: str = request.META.get("HTTP_X_REAL_IP", "")
    if x_real_ip:
        ip = _valid_ip(x_real_ip)
        if ip:
            return ip

    return cast(str, request.META.get("REMOTE_ADDR", "0.0.0.0"))


def get_user_agent(request: HttpRequest) -> str:
    return cast(str, request.META.get("HTTP_USER_AGENT", ""))[:1024]
