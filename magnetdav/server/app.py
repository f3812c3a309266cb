"""aiohttp application: JSON management API and WebDAV routes."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web
from pydantic import ValidationError as PydanticValidationError

from magnetdav import __version__
from magnetdav.models import Config
from magnetdav.server.auth import basic_auth_middleware
from magnetdav.server.protocol import (
    API_BASE_PATH,
    HEALTH_PATH,
    AddMagnetRequest,
    ErrorResponse,
    FileListResponse,
    HealthResponse,
    MagnetListResponse,
)
from magnetdav.utils.exceptions import MagnetDAVError, NotFoundError, ValidationError
from magnetdav.utils.logging_config import set_correlation_id
from magnetdav.webdav.streaming import WEBDAV_PREFIX, StreamingHandler

if TYPE_CHECKING:  # pragma: no cover
    from aiohttp.web_request import Request
    from aiohttp.web_response import Response, StreamResponse

    from magnetdav.session.manager import LifecycleManager
    from magnetdav.storage.catalog import Catalog

logger = logging.getLogger(__name__)


def _error(status: int, error: str, code: str, details: dict[str, Any] | None = None) -> Response:
    return web.json_response(
        ErrorResponse(error=error, code=code, details=details).model_dump(),
        status=status,
    )


class HTTPServer:
    """HTTP front end over the lifecycle manager and catalog."""

    def __init__(
        self,
        manager: LifecycleManager,
        catalog: Catalog,
        config: Config | None = None,
        host: str | None = None,
        port: int | None = None,
    ):
        """Initialize the server.

        Args:
            manager: lifecycle manager owning live sessions
            catalog: content catalog
            config: full configuration (defaults when omitted)
            host: bind address, overrides ``server.host``
            port: bind port, overrides ``server.port`` (0 picks a free port)

        """
        self.manager = manager
        self.catalog = catalog
        self.config = config or Config()
        self.host = host if host is not None else self.config.server.host
        self.port = port if port is not None else self.config.server.port
        self.streaming = StreamingHandler(
            manager,
            catalog,
            cache_config=self.config.cache,
            readahead=self.config.torrent.readahead_bytes,
            chunk_size=self.config.torrent.chunk_size,
            prefix=WEBDAV_PREFIX,
        )

        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None

        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self) -> None:
        """Set up error handling and, when enabled, authentication."""

        @web.middleware
        async def error_middleware(request: Request, handler: Any) -> StreamResponse:
            set_correlation_id()
            try:
                return await handler(request)
            except asyncio.CancelledError:
                raise
            except web.HTTPException:
                raise
            except ValidationError as e:
                return _error(400, e.message, "VALIDATION_ERROR", e.details or None)
            except NotFoundError as e:
                return _error(404, e.message, "NOT_FOUND", e.details or None)
            except Exception as e:
                logger.exception(
                    "Error handling request %s %s from %s",
                    request.method,
                    request.path,
                    request.remote,
                )
                return _error(500, str(e), "INTERNAL_ERROR")

        self.app.middlewares.append(error_middleware)
        if self.config.auth.enabled:
            self.app.middlewares.append(
                basic_auth_middleware(self.config.auth, WEBDAV_PREFIX)
            )

    def _setup_routes(self) -> None:
        router = self.app.router
        router.add_get(HEALTH_PATH, self._handle_health)
        router.add_get("/", self._handle_root)
        router.add_post(f"{API_BASE_PATH}/magnets", self._handle_add_magnet)
        router.add_get(f"{API_BASE_PATH}/magnets", self._handle_list_magnets)
        router.add_get(f"{API_BASE_PATH}/magnets/{{id}}/files", self._handle_list_files)
        router.add_delete(f"{API_BASE_PATH}/magnets/{{id}}", self._handle_delete_magnet)
        router.add_get(f"{API_BASE_PATH}/stats", self._handle_stats)
        router.add_route("*", WEBDAV_PREFIX, self._handle_webdav)
        router.add_route("*", f"{WEBDAV_PREFIX}/{{tail:.*}}", self._handle_webdav)

    async def _handle_health(self, _request: Request) -> Response:
        """Handle GET /health."""
        health = HealthResponse(
            version=__version__,
            auth=self.config.auth.enabled,
            active_torrents=self.manager.active_count(),
        )
        return web.json_response(health.model_dump())

    async def _handle_root(self, _request: Request) -> Response:
        raise web.HTTPFound(f"{WEBDAV_PREFIX}/")

    async def _handle_add_magnet(self, request: Request) -> Response:
        """Handle POST /api/magnets."""
        try:
            body = await request.json()
            add_request = AddMagnetRequest.model_validate(body)
        except (ValueError, PydanticValidationError) as e:
            return _error(400, "Invalid request body", "INVALID_REQUEST", {"message": str(e)})
        record = await self.manager.submit(add_request.magnet_uri)
        return web.json_response(record.model_dump(mode="json"), status=201)

    async def _handle_list_magnets(self, _request: Request) -> Response:
        """Handle GET /api/magnets."""
        records = await self.catalog.list_records()
        response = MagnetListResponse(magnets=records, count=len(records))
        return web.json_response(response.model_dump(mode="json"))

    async def _handle_list_files(self, request: Request) -> Response:
        """Handle GET /api/magnets/{id}/files."""
        identifier = request.match_info["id"]
        if await self.catalog.get_record(identifier) is None:
            raise NotFoundError(f"Content {identifier} not found")
        files = await self.catalog.list_files(identifier)
        response = FileListResponse(magnet_id=identifier, files=files, count=len(files))
        return web.json_response(response.model_dump(mode="json"))

    async def _handle_delete_magnet(self, request: Request) -> Response:
        """Handle DELETE /api/magnets/{id}."""
        identifier = request.match_info["id"]
        if not await self.manager.remove(identifier):
            raise NotFoundError(f"Content {identifier} not found")
        return web.json_response({"removed": identifier})

    async def _handle_stats(self, _request: Request) -> Response:
        """Handle GET /api/stats."""
        stats = await self.manager.stats()
        return web.json_response(stats.model_dump())

    async def _handle_webdav(self, request: Request) -> StreamResponse:
        return await self.streaming.handle(request)

    async def start(self) -> None:
        """Start listening; with port 0 the bound port is stored on ``self.port``."""
        self.runner = web.AppRunner(self.app, handle_signals=False)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        try:
            await self.site.start()
        except OSError as e:
            logger.exception("Failed to bind HTTP server to %s:%d", self.host, self.port)
            await self.runner.cleanup()
            self.runner = None
            msg = f"HTTP server failed to bind to {self.host}:{self.port}: {e}"
            raise MagnetDAVError(msg) from e

        server = self.site._server  # noqa: SLF001
        if server is not None and getattr(server, "sockets", None):
            self.port = server.sockets[0].getsockname()[1]
        logger.info("HTTP server listening on http://%s:%d", self.host, self.port)
        if self.config.server.domain:
            logger.info("Public WebDAV URL: https://%s%s/", self.config.server.domain, WEBDAV_PREFIX)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
            self.site = None
            logger.info("HTTP server stopped")
