"""HTTP server exposing the management API and WebDAV routes."""

from __future__ import annotations

from magnetdav.server.app import HTTPServer

__all__ = ["HTTPServer"]
