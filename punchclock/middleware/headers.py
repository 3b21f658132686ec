"""Response headers every clock client relies on."""
from email.utils import formatdate
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


class ClockHeadersMiddleware(BaseHTTPMiddleware):
    """
    Forbids caching and guarantees a Date header on every response.

    Routes that sample the authoritative clock set Date themselves; the
    host clock only fills it in when they did not.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store"
        if "date" not in response.headers:
            response.headers["Date"] = formatdate(usegmt=True)
        return response
