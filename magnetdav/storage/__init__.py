"""Persistent storage for the content catalog."""

from __future__ import annotations

from magnetdav.storage.catalog import Catalog

__all__ = ["Catalog"]
