"""Vercel ASGI function entrypoint for the GradeDesk backend."""

from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from gradedesk.main import app as inner_app
from gradedesk.settings import settings

_ALLOWED_METHODS = "GET,POST,PUT,PATCH,DELETE,OPTIONS"


def _preflight_origin(request_origin: str) -> str:
    allowed = settings.cors_origin_list
    if "*" in allowed:
        return request_origin or "*"
    return request_origin if request_origin in allowed else allowed[0] if allowed else ""


class ApiPrefixMount:
    """Serve the app under ``/api`` and answer CORS preflights before auth runs."""

    def __init__(self, app: ASGIApp, prefix: str = "/api") -> None:
        self.app = app
        self.prefix = prefix.rstrip("/")

    def _strip(self, scope: Scope) -> Scope:
        path = scope.get("path", "")
        if path != self.prefix and not path.startswith(f"{self.prefix}/"):
            return scope
        return {**scope, "path": path[len(self.prefix):] or "/"}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        scope = self._strip(scope)
        if scope["type"] == "http" and scope.get("method") == "OPTIONS":
            headers = {key.decode("latin1").lower(): value.decode("latin1") for key, value in scope.get("headers", [])}
            response = Response(
                status_code=204,
                headers={
                    "Access-Control-Allow-Origin": _preflight_origin(headers.get("origin", "")),
                    "Access-Control-Allow-Methods": _ALLOWED_METHODS,
                    "Access-Control-Allow-Headers": headers.get("access-control-request-headers", "*"),
                },
            )
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)


app = ApiPrefixMount(inner_app)
