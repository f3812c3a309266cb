"""Range-streaming request handler for the WebDAV routes.

A request resolves ``identifier/path`` to a live session and one of its
files, checks the conditional-cache validator, then copies exactly the
requested byte interval from the swarm reader to the client.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import hdrs, web

from magnetdav.core.media import response_mime_type
from magnetdav.models import CacheConfig
from magnetdav.utils.exceptions import (
    NotFoundError,
    NotReadyError,
    RangeNotSatisfiableError,
    StreamError,
)
from magnetdav.webdav import listing
from magnetdav.webdav.cache import CORS_HEADERS, cache_headers, etag_matches, generate_etag
from magnetdav.webdav.ranges import ResolvedRange, normalize_range, parse_range_header

if TYPE_CHECKING:  # pragma: no cover
    from aiohttp.web_request import Request

    from magnetdav.engine.types import SwarmFile, SwarmReader, SwarmSession
    from magnetdav.session.manager import LifecycleManager
    from magnetdav.storage.catalog import Catalog

logger = logging.getLogger(__name__)

WEBDAV_PREFIX = "/webdav"
ALLOWED_METHODS = ("GET", "HEAD", "OPTIONS", "PROPFIND")
DEFAULT_READAHEAD = 2 * 1024 * 1024
DEFAULT_CHUNK_SIZE = 64 * 1024

_XML_CONTENT_TYPE = "application/xml"


def split_tail(tail: str) -> tuple[str, str]:
    """Split ``identifier/relative/path`` into its two parts."""
    tail = tail.strip("/")
    identifier, _, path = tail.partition("/")
    return identifier, path.strip("/")


class StreamingHandler:
    """Serve catalog listings and file bytes for ``/webdav/*``."""

    def __init__(
        self,
        manager: LifecycleManager,
        catalog: Catalog,
        cache_config: CacheConfig | None = None,
        readahead: int = DEFAULT_READAHEAD,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        prefix: str = WEBDAV_PREFIX,
    ):
        self.manager = manager
        self.catalog = catalog
        self.cache_config = cache_config or CacheConfig()
        self.readahead = readahead
        self.chunk_size = chunk_size
        self.prefix = prefix.rstrip("/")

    def resolve(self, identifier: str, path: str) -> tuple[SwarmSession, SwarmFile]:
        """Find the live session and the file at ``path``.

        Raises:
            NotFoundError: unknown identifier or path
            NotReadyError: the session has no metadata yet

        """
        session = self.manager.lookup(identifier)
        if session is None:
            msg = f"Content {identifier} not found"
            raise NotFoundError(msg, {"identifier": identifier})
        if not session.has_metadata():
            msg = f"Content {identifier} is not ready"
            raise NotReadyError(msg, {"identifier": identifier})
        for file in session.files():
            if file.path == path:
                return session, file
        msg = "file not found"
        raise NotFoundError(msg, {"identifier": identifier, "path": path})

    async def list_directory(self, identifier: str) -> listing.DirectoryView:
        """Catalog view of one record.

        Raises:
            NotFoundError: unknown identifier

        """
        record = await self.catalog.get_record(identifier)
        if record is None:
            msg = f"Content {identifier} not found"
            raise NotFoundError(msg, {"identifier": identifier})
        files = await self.catalog.list_files(identifier)
        return listing.DirectoryView(record=record, files=files)

    async def handle(self, request: Request) -> web.StreamResponse:
        """Route entry point for ``/webdav/{tail:.*}``."""
        identifier, path = split_tail(request.match_info.get("tail", ""))
        method = request.method
        try:
            if method == hdrs.METH_OPTIONS:
                return self._options()
            if method == "PROPFIND":
                return await self._propfind(request, identifier, path)
            if method not in (hdrs.METH_GET, hdrs.METH_HEAD):
                raise web.HTTPMethodNotAllowed(method, ALLOWED_METHODS)
            if not identifier:
                records = await self.catalog.list_records()
                return self._html(listing.render_root(records, self.prefix))
            if not path:
                view = await self.list_directory(identifier)
                return self._html(listing.render_directory(view, self.prefix))
            return await self.stream_file(
                request, identifier, path, head=method == hdrs.METH_HEAD
            )
        except (NotFoundError, NotReadyError) as e:
            logger.debug("WebDAV %s %s: %s", method, request.path, e.message)
            raise web.HTTPNotFound(text=e.message) from e
        except RangeNotSatisfiableError as e:
            raise web.HTTPRequestRangeNotSatisfiable(
                headers={hdrs.CONTENT_RANGE: f"bytes */{e.length}", **CORS_HEADERS},
                text=e.message,
            ) from e

    def _html(self, text: str) -> web.Response:
        return web.Response(text=text, content_type="text/html", charset="utf-8")

    def _options(self) -> web.Response:
        headers = {
            "DAV": "1",
            hdrs.ALLOW: ", ".join(ALLOWED_METHODS),
            "MS-Author-Via": "DAV",
            **CORS_HEADERS,
        }
        return web.Response(status=200, headers=headers)

    async def _propfind(
        self, request: Request, identifier: str, path: str
    ) -> web.Response:
        depth = request.headers.get("Depth", "1").strip().lower()
        if not identifier:
            records = await self.catalog.list_records()
            body = listing.propfind_root(records, self.prefix, depth)
        elif not path:
            view = await self.list_directory(identifier)
            body = listing.propfind_directory(view, self.prefix, depth)
        else:
            view = await self.list_directory(identifier)
            entry = next((f for f in view.files if f.file_path == path), None)
            if entry is None:
                msg = "file not found"
                raise NotFoundError(msg, {"identifier": identifier, "path": path})
            body = listing.propfind_file(view.record, entry, self.prefix)
        return web.Response(
            status=207, text=body, content_type=_XML_CONTENT_TYPE, charset="utf-8"
        )

    def _file_headers(self, path: str, span: ResolvedRange) -> dict[str, str]:
        etag = generate_etag(path, span.start, span.end, span.length)
        headers = cache_headers(path, etag, span.covers_whole_file, self.cache_config)
        headers.update(CORS_HEADERS)
        headers[hdrs.ACCEPT_RANGES] = "bytes"
        headers[hdrs.CONTENT_TYPE] = response_mime_type(path)
        return headers

    async def stream_file(
        self, request: Request, identifier: str, path: str, *, head: bool = False
    ) -> web.StreamResponse:
        """Serve ``path`` of ``identifier``, honoring ``Range`` and ``If-None-Match``."""
        _session, file = self.resolve(identifier, path)
        self.manager.record_access(identifier)

        requested = parse_range_header(request.headers.get(hdrs.RANGE))
        span = normalize_range(requested, file.length)
        headers = self._file_headers(path, span)

        if etag_matches(request.headers.get(hdrs.IF_NONE_MATCH), headers["ETag"]):
            headers.pop(hdrs.CONTENT_TYPE, None)
            return web.Response(status=304, headers=headers)

        response = web.StreamResponse(
            status=206 if span.partial else 200, headers=headers
        )
        if span.partial:
            response.headers[hdrs.CONTENT_RANGE] = span.content_range
        response.content_length = span.content_length
        await response.prepare(request)
        if head or span.content_length == 0:
            await response.write_eof()
            return response

        logger.debug(
            "Serving %s bytes %d-%d/%d of %s",
            path,
            span.start,
            span.end,
            span.length,
            identifier,
        )
        if await self._copy(request, response, file, span):
            await response.write_eof()
        return response

    async def _copy(
        self,
        request: Request,
        response: web.StreamResponse,
        file: SwarmFile,
        span: ResolvedRange,
    ) -> bool:
        """Copy the interval; on failure close the connection and return False."""
        reader: SwarmReader | None = None
        remaining = span.content_length
        try:
            reader = file.open_reader(span.start)
            reader.set_readahead(self.readahead)
            while remaining > 0:
                chunk = await reader.read(min(self.chunk_size, remaining))
                if not chunk:
                    msg = f"Unexpected end of stream with {remaining} bytes left"
                    raise StreamError(msg)
                await response.write(chunk)
                remaining -= len(chunk)
        except StreamError as e:
            logger.warning("Stream of %s aborted: %s", file.path, e)
            self._close_connection(request)
            return False
        except ConnectionError as e:
            logger.debug("Client went away while streaming %s: %s", file.path, e)
            self._close_connection(request)
            return False
        finally:
            if reader is not None:
                reader.close()
        return True

    @staticmethod
    def _close_connection(request: Request) -> None:
        transport: Any = request.transport
        if transport is not None:
            transport.close()
