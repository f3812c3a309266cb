"""magnetdav - serve magnet links as seekable files over WebDAV."""

from __future__ import annotations

__version__ = "1.0.0"
APP_NAME = "Magnet WebDAV Server"

__all__ = ["APP_NAME", "__version__"]
