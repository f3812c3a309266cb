"""Swarm engine abstraction and implementations."""

from __future__ import annotations

from magnetdav.engine.factory import create_engine
from magnetdav.engine.memory import MemorySwarmEngine
from magnetdav.engine.types import SwarmEngine, SwarmFile, SwarmReader, SwarmSession

__all__ = [
    "MemorySwarmEngine",
    "SwarmEngine",
    "SwarmFile",
    "SwarmReader",
    "SwarmSession",
    "create_engine",
]
