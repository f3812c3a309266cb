"""Pytest configuration and shared fixtures for magnetdav tests."""

from __future__ import annotations

import logging
import os

import pytest
import pytest_asyncio

from magnetdav.config.config import reset_config
from magnetdav.core.magnet import content_identifier
from magnetdav.engine.memory import MemorySwarmEngine
from magnetdav.session.manager import LifecycleManager
from magnetdav.storage.catalog import Catalog


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("unit", "marks tests as unit tests"),
        ("integration", "marks tests as integration tests"),
        ("property", "marks tests as property-based tests"),
        ("core", "marks tests as core helper tests"),
        ("config", "marks tests as configuration tests"),
        ("engine", "marks tests as swarm engine tests"),
        ("storage", "marks tests as catalog storage tests"),
        ("session", "marks tests as session lifecycle tests"),
        ("webdav", "marks tests as WebDAV streaming tests"),
        ("server", "marks tests as HTTP server tests"),
        ("cli", "marks tests as CLI tests"),
        ("slow", "marks tests as slow (deselect with '-m \"not slow\"')"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _clean_magnetdav_env(monkeypatch):
    """Keep host MAGNETDAV_* variables and cached config out of tests."""
    for name in list(os.environ):
        if name.startswith("MAGNETDAV_"):
            monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


def make_magnet(info_hash: str, name: str = "test") -> str:
    """Magnet URI for a 40-character hex info hash."""
    return f"magnet:?xt=urn:btih:{info_hash}&dn={name}"


HASH_A = "a" * 40
HASH_B = "b" * 40
MAGNET_A = make_magnet(HASH_A, "alpha")
MAGNET_B = make_magnet(HASH_B, "beta")
ID_A = content_identifier(MAGNET_A)
ID_B = content_identifier(MAGNET_B)


@pytest.fixture
def memory_engine() -> MemorySwarmEngine:
    return MemorySwarmEngine()


@pytest_asyncio.fixture
async def catalog():
    cat = Catalog(":memory:")
    yield cat
    await cat.close()


@pytest_asyncio.fixture
async def manager(catalog, memory_engine):
    mgr = LifecycleManager(catalog, memory_engine, metadata_timeout=1.0)
    yield mgr
    await mgr.shutdown()
