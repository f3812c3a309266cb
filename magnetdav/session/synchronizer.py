"""Reconcile the persisted file catalog with a swarm's reported file list."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from magnetdav.core.media import catalog_mime_type
from magnetdav.models import FileEntry
from magnetdav.utils.exceptions import PersistenceError

if TYPE_CHECKING:  # pragma: no cover
    from magnetdav.engine.types import SwarmFile, SwarmSession
    from magnetdav.storage.catalog import Catalog

logger = logging.getLogger(__name__)


@dataclass
class SyncPlan:
    """Staged catalog changes for one identifier."""

    creates: list[FileEntry] = field(default_factory=list)
    updates: list[FileEntry] = field(default_factory=list)
    deletes: list[FileEntry] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.creates or self.updates or self.deletes)

    @property
    def counts(self) -> tuple[int, int, int]:
        return len(self.creates), len(self.updates), len(self.deletes)


def plan_reconciliation(
    identifier: str,
    existing: Iterable[FileEntry],
    reported: Iterable[SwarmFile],
) -> SyncPlan:
    """Diff the catalog entries against the swarm's file list.

    Each reported file gets its position in the walk as index. A path that
    repeats within ``reported`` keeps its first occurrence; the position
    counter still advances past the repeat.
    """
    plan = SyncPlan()
    by_path = {entry.file_path: entry for entry in existing}
    seen: set[str] = set()

    for index, file in enumerate(reported):
        path = file.path
        if path in seen:
            logger.warning(
                "Duplicate path %s at index %d in %s, skipping", path, index, identifier
            )
            continue
        seen.add(path)

        mime_type = catalog_mime_type(path)
        current = by_path.pop(path, None)
        if current is None:
            plan.creates.append(
                FileEntry(
                    magnet_id=identifier,
                    file_path=path,
                    file_name=posixpath.basename(path),
                    file_size=file.length,
                    file_index=index,
                    mime_type=mime_type,
                )
            )
            continue

        if (
            current.file_size != file.length
            or current.file_index != index
            or current.mime_type != mime_type
        ):
            plan.updates.append(
                current.model_copy(
                    update={
                        "file_size": file.length,
                        "file_index": index,
                        "mime_type": mime_type,
                    }
                )
            )

    plan.deletes.extend(by_path.values())
    return plan


class MetadataSynchronizer:
    """Applies reconciliation plans to the catalog."""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    async def synchronize(self, identifier: str, session: SwarmSession) -> SyncPlan:
        """Mark the record ready and bring its file entries in line.

        Each batch (creates, updates, deletes) is applied independently; a
        failing batch is logged and the remaining batches still run.
        """
        files = session.files()
        await self.catalog.mark_ready(
            identifier, session.name(), session.total_length(), len(files)
        )
        existing = await self.catalog.list_files(identifier)
        plan = plan_reconciliation(identifier, existing, files)
        if plan.is_empty:
            logger.debug("Content %s file entries already in sync", identifier)
            return plan

        if plan.creates:
            try:
                await self.catalog.insert_files(plan.creates)
            except PersistenceError:
                logger.exception("Failed to create file entries for %s", identifier)

        for entry in plan.updates:
            try:
                await self.catalog.update_file(entry)
            except PersistenceError:
                logger.exception(
                    "Failed to update %s for %s", entry.file_path, identifier
                )

        if plan.deletes:
            try:
                await self.catalog.delete_files(
                    e.id for e in plan.deletes if e.id is not None
                )
            except PersistenceError:
                logger.exception("Failed to delete file entries for %s", identifier)

        created, updated, deleted = plan.counts
        logger.info(
            "Reconciled %s: %d created, %d updated, %d deleted",
            identifier,
            created,
            updated,
            deleted,
        )
        return plan
