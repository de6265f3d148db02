"""Per-IP rate limits (SlowAPI) for the auth endpoints."""
from fastapi import Request
from slowapi import Limiter

from .config import settings

LOGIN_LIMIT = f"{settings.rate_limit_per_minute}/minute"
REGISTER_LIMIT = f"{settings.rate_limit_register_per_minute}/minute;100/hour"


def client_ip(request: Request) -> str:
    """X-Forwarded-For is client controlled; it is only used when a trusted proxy sets it."""
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


limiter = Limiter(key_func=client_ip)
