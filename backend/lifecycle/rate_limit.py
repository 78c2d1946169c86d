"""Rate limiting singleton using slowapi, keyed on the real client address."""

from fastapi import Request
from slowapi import Limiter


def client_ip(request: Request) -> str:
    """Client address, honouring the first X-Forwarded-For hop when behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Login and manual run-check are the only limited endpoints; limits come from settings.
limiter = Limiter(key_func=client_ip)
