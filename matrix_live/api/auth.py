from __future__ import annotations

from typing import Awaitable, Callable, Optional

from fastapi import Request
from fastapi.responses import PlainTextResponse, Response

# Paths that never need the access code
OPEN_PREFIXES = ("/api/",)
OPEN_PATHS = {"/health", "/favicon.ico", "/robots.txt", "/sitemap.xml"}


def is_open_path(path: str) -> bool:
    return path in OPEN_PATHS or path.startswith(OPEN_PREFIXES)


def access_code_middleware(
    required_code: Optional[str],
) -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    """
    Access-code gate for the dashboard pages.

    - no code configured -> everything passes
    - API routes and static extras always pass
    - otherwise ?code=<AUTH_CODE> must match, else 401 text/plain
    """

    async def middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if not required_code or is_open_path(request.url.path):
            return await call_next(request)

        if request.query_params.get("code") == required_code:
            return await call_next(request)

        return PlainTextResponse("Unauthorized", status_code=401)

    return middleware
