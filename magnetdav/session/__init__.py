"""Session lifecycle: registry, manager and metadata synchronizer."""

from __future__ import annotations

from magnetdav.session.manager import LifecycleManager
from magnetdav.session.registry import SessionRegistry
from magnetdav.session.synchronizer import (
    MetadataSynchronizer,
    SyncPlan,
    plan_reconciliation,
)

__all__ = [
    "LifecycleManager",
    "MetadataSynchronizer",
    "SessionRegistry",
    "SyncPlan",
    "plan_reconciliation",
]
