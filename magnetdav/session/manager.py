"""Session lifecycle manager.

Owns the identifier to swarm session map and drives each content record
from ``pending`` to ``ready`` or ``error``. Acquisition runs as a supervised
background task racing metadata arrival against a timeout and shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from magnetdav.core.magnet import content_identifier
from magnetdav.models import CatalogStats, ContentRecord, ContentStatus
from magnetdav.session.registry import SessionRegistry
from magnetdav.session.synchronizer import MetadataSynchronizer
from magnetdav.utils.exceptions import (
    EngineRejectedError,
    MagnetDAVError,
    MetadataTimeoutError,
    PersistenceError,
    StreamError,
    ValidationError,
)
from magnetdav.utils.tasks import TaskSupervisor

if TYPE_CHECKING:  # pragma: no cover
    from magnetdav.engine.types import SwarmEngine, SwarmSession
    from magnetdav.storage.catalog import Catalog

logger = logging.getLogger(__name__)

METADATA_TIMEOUT_REASON = "metadata timeout"


class LifecycleManager:
    """Manage swarm sessions for content records.

    Attributes:
        catalog: persistent record store
        engine: swarm engine sessions are acquired from
        registry: live sessions keyed by content identifier
        synchronizer: catalog reconciliation for newly available metadata
        metadata_timeout: seconds to wait for metadata per acquisition

    """

    def __init__(
        self,
        catalog: Catalog,
        engine: SwarmEngine,
        metadata_timeout: float = 30.0,
    ):
        self.catalog = catalog
        self.engine = engine
        self.metadata_timeout = metadata_timeout
        self.registry = SessionRegistry()
        self.synchronizer = MetadataSynchronizer(catalog)
        self._acquisitions = TaskSupervisor()
        self._background = TaskSupervisor()
        self._pending: dict[str, asyncio.Task[None]] = {}
        self._shutdown = asyncio.Event()

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown.is_set()

    async def submit(self, uri: str) -> ContentRecord:
        """Register ``uri`` and start acquiring it in the background.

        Re-submitting a known identifier returns the stored record untouched.

        Raises:
            ValidationError: ``uri`` is empty

        """
        uri = (uri or "").strip()
        if not uri:
            msg = "Magnet URI is required"
            raise ValidationError(msg)

        identifier = content_identifier(uri)
        existing = await self.catalog.get_record(identifier)
        if existing is not None:
            logger.debug("Content %s already known (%s)", identifier, existing.status.value)
            return existing

        record = ContentRecord(id=identifier, magnet_uri=uri)
        if not await self.catalog.create_record(record):
            # Lost the insert race to a concurrent submit of the same URI
            stored = await self.catalog.get_record(identifier)
            return stored if stored is not None else record

        logger.info("Added content %s", identifier)
        self._spawn_acquisition(identifier, uri)
        return record

    def _spawn_acquisition(self, identifier: str, uri: str) -> None:
        if self.is_shut_down:
            return
        task = self._acquisitions.create_task(
            self._acquire(identifier, uri), name=f"acquire-{identifier}"
        )
        self._pending[identifier] = task
        task.add_done_callback(lambda t: self._forget_pending(identifier, t))

    def _forget_pending(self, identifier: str, task: asyncio.Task[None]) -> None:
        if self._pending.get(identifier) is task:
            del self._pending[identifier]

    async def _acquire(self, identifier: str, uri: str) -> None:
        session: SwarmSession | None = None
        try:
            try:
                session = await self.engine.acquire(uri, identifier)
            except EngineRejectedError as e:
                logger.warning("Engine rejected %s: %s", identifier, e.message)
                await self.catalog.set_status(identifier, ContentStatus.ERROR, e.message)
                return

            if self.is_shut_down:
                session.drop()
                return

            metadata = asyncio.ensure_future(session.wait_metadata())
            stopping = asyncio.ensure_future(self._shutdown.wait())
            try:
                done, _ = await asyncio.wait(
                    {metadata, stopping},
                    timeout=self.metadata_timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                metadata.cancel()
                stopping.cancel()

            if metadata in done and not self.is_shut_down:
                try:
                    metadata.result()
                except MagnetDAVError:
                    raise
                except Exception as e:
                    msg = f"Metadata wait failed: {e}"
                    raise StreamError(msg, {"identifier": identifier}) from e
                previous = self.registry.register(identifier, session)
                if previous is not None and previous is not session:
                    previous.drop()
                logger.info("Content %s metadata ready", identifier)
                await self.synchronizer.synchronize(identifier, session)
            elif self.is_shut_down:
                session.drop()
            else:
                session.drop()
                timeout_error = MetadataTimeoutError(
                    METADATA_TIMEOUT_REASON, {"timeout": self.metadata_timeout}
                )
                logger.warning("Content %s %s", identifier, timeout_error)
                await self.catalog.set_status(
                    identifier, ContentStatus.ERROR, timeout_error.message
                )
        except asyncio.CancelledError:
            if session is not None and self.registry.lookup(identifier) is not session:
                session.drop()
            raise
        except MagnetDAVError as e:
            logger.exception("Acquisition of %s failed", identifier)
            if session is not None and self.registry.lookup(identifier) is not session:
                session.drop()
            if not isinstance(e, PersistenceError):
                await self._record_failure(identifier, e.message)

    async def _record_failure(self, identifier: str, reason: str) -> None:
        try:
            await self.catalog.set_status(identifier, ContentStatus.ERROR, reason)
        except PersistenceError:
            logger.exception("Failed to record error status for %s", identifier)

    def lookup(self, identifier: str) -> SwarmSession | None:
        return self.registry.lookup(identifier)

    def record_access(self, identifier: str) -> None:
        """Bump access statistics without waiting for the write."""
        if self.is_shut_down:
            return
        self._background.create_task(
            self._touch(identifier), name=f"access-{identifier}"
        )

    async def _touch(self, identifier: str) -> None:
        try:
            await self.catalog.touch_access(identifier)
        except PersistenceError:
            logger.exception("Failed to update access stats for %s", identifier)

    async def remove(self, identifier: str) -> bool:
        """Drop the session (if any) and delete the record with its files."""
        task = self._pending.pop(identifier, None)
        if task is not None and not task.done():
            task.cancel()
        session = self.registry.remove(identifier)
        if session is not None:
            session.drop()
        removed = await self.catalog.delete_record(identifier)
        if removed:
            logger.info("Removed content %s", identifier)
        return removed

    async def recover(self) -> int:
        """Re-acquire every record persisted as ``ready``."""
        records = await self.catalog.list_records_by_status(ContentStatus.READY)
        scheduled = 0
        for record in records:
            if record.id in self.registry or record.id in self._pending:
                continue
            self._spawn_acquisition(record.id, record.magnet_uri)
            scheduled += 1
        logger.info("Recovered %d content record(s)", scheduled)
        return scheduled

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Abort acquisitions and release every session. Safe to call twice."""
        if self.is_shut_down:
            return
        self._shutdown.set()
        await self._acquisitions.wait_all(timeout)
        await self._acquisitions.cancel_and_wait(timeout)
        await self._background.wait_all(timeout)
        await self._background.cancel_and_wait(timeout)
        sessions = self.registry.pop_all()
        for session in sessions:
            session.drop()
        logger.info("Lifecycle manager stopped, released %d session(s)", len(sessions))

    def active_count(self) -> int:
        return len(self.registry)

    async def stats(self) -> CatalogStats:
        stats = await self.catalog.stats()
        stats.active_torrents = self.active_count()
        return stats

    async def wait_idle(self, timeout: float | None = None) -> None:
        """Wait for in-flight acquisitions and access updates to finish."""
        await self._acquisitions.wait_all(timeout)
        await self._background.wait_all(timeout)
