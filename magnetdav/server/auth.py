"""HTTP Basic authentication for the WebDAV routes."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from aiohttp import BasicAuth, hdrs, web

if TYPE_CHECKING:  # pragma: no cover
    from aiohttp.web_request import Request
    from aiohttp.web_response import StreamResponse

    from magnetdav.models import AuthConfig

logger = logging.getLogger(__name__)

Handler = Callable[["Request"], Awaitable["StreamResponse"]]


def check_credentials(header: str | None, username: str, password: str) -> bool:
    """Validate an ``Authorization`` header against the configured pair."""
    if not header:
        return False
    try:
        auth = BasicAuth.decode(header)
    except ValueError:
        return False
    user_ok = secrets.compare_digest(auth.login.encode(), username.encode())
    pass_ok = secrets.compare_digest(auth.password.encode(), password.encode())
    return user_ok and pass_ok


def basic_auth_middleware(config: AuthConfig, protected_prefix: str) -> Any:
    """Build a middleware guarding paths under ``protected_prefix``."""
    challenge = f'Basic realm="{config.realm}", charset="UTF-8"'

    @web.middleware
    async def auth_middleware(request: Request, handler: Handler) -> StreamResponse:
        if (
            not request.path.startswith(protected_prefix)
            or request.method == hdrs.METH_OPTIONS
        ):
            return await handler(request)
        if check_credentials(
            request.headers.get(hdrs.AUTHORIZATION), config.username, config.password
        ):
            return await handler(request)
        logger.debug("Rejected unauthenticated %s %s", request.method, request.path)
        raise web.HTTPUnauthorized(
            headers={hdrs.WWW_AUTHENTICATE: challenge}, text="Unauthorized"
        )

    return auth_middleware
