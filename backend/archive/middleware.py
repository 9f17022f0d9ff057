"""ASGI middleware for the archive."""
from urllib.parse import parse_qs

from starlette.types import ASGIApp, Receive, Scope, Send

OVERRIDE_PARAM = "_method"
OVERRIDABLE_METHODS = frozenset({"DELETE", "PUT", "PATCH"})


class MethodOverrideMiddleware:
    """Let HTML forms issue DELETE/PUT/PATCH.

    A ``POST`` with ``?_method=DELETE`` in the query string is routed as a
    ``DELETE``. Other methods and unknown override values pass through
    untouched.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "POST":
            query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
            override = (query.get(OVERRIDE_PARAM) or [""])[0].upper()
            if override in OVERRIDABLE_METHODS:
                scope = dict(scope, method=override)
        await self.app(scope, receive, send)
