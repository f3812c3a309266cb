"""Swarm engine backed by the libtorrent Python bindings.

Pieces are fetched on demand: a reader sets piece deadlines for the range it
is about to return (plus the read-ahead window), waits for the pieces to
land, then reads the bytes from the sparse file on disk.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import IO

import libtorrent as lt

from magnetdav.utils.exceptions import EngineRejectedError, StreamError

logger = logging.getLogger(__name__)

# Deadline spacing between consecutive pieces, in milliseconds
_DEADLINE_STEP_MS = 100


class LibtorrentReader:
    """Reader that prioritizes and awaits pieces before reading from disk."""

    def __init__(self, file: LibtorrentFile, start: int = 0):
        self._file = file
        self._session = file.session
        self._pos = start
        self._readahead = 0
        self._deadlined: set[int] = set()
        self._fh: IO[bytes] | None = None
        self.closed = False

    def set_readahead(self, nbytes: int) -> None:
        self._readahead = max(0, nbytes)

    def _piece_span(self, offset: int, size: int) -> range:
        piece_length = self._session.piece_length()
        first = (self._file.offset + offset) // piece_length
        last = (self._file.offset + offset + max(size, 1) - 1) // piece_length
        return range(first, last + 1)

    def _prioritize(self, size: int) -> None:
        wanted = self._piece_span(self._pos, size + self._readahead)
        last_piece = self._session.num_pieces() - 1
        handle = self._session.handle
        for order, piece in enumerate(wanted):
            if piece > last_piece:
                break
            if piece in self._deadlined:
                continue
            handle.set_piece_deadline(piece, order * _DEADLINE_STEP_MS)
            self._deadlined.add(piece)

    async def _wait_piece(self, piece: int) -> None:
        while not self._session.handle.have_piece(piece):
            if self._session.dropped or self.closed:
                msg = f"Session {self._session.identifier} was dropped"
                raise StreamError(msg)
            await asyncio.sleep(self._session.poll_interval)

    def _read_disk(self, offset: int, size: int) -> bytes:
        if self._fh is None:
            self._fh = open(self._file.disk_path, "rb")  # noqa: SIM115
        self._fh.seek(offset)
        return self._fh.read(size)

    async def read(self, size: int) -> bytes:
        if self.closed:
            msg = "Reader is closed"
            raise StreamError(msg)
        remaining = self._file.length - self._pos
        if remaining <= 0:
            return b""
        size = min(size, remaining)
        try:
            self._prioritize(size)
            for piece in self._piece_span(self._pos, size):
                await self._wait_piece(piece)
            data = await asyncio.get_running_loop().run_in_executor(
                None, self._read_disk, self._pos, size
            )
        except (OSError, RuntimeError) as e:
            msg = f"Failed to read {self._file.path}: {e}"
            raise StreamError(msg) from e
        self._pos += len(data)
        return data

    def close(self) -> None:
        self.closed = True
        if self._fh is not None:
            self._fh.close()
            self._fh = None


class LibtorrentFile:
    """A file inside a libtorrent torrent."""

    def __init__(
        self,
        session: LibtorrentSession,
        index: int,
        path: str,
        length: int,
        offset: int,
        disk_path: Path,
    ):
        self.session = session
        self.index = index
        self.path = path
        self.length = length
        self.offset = offset
        self.disk_path = disk_path

    def open_reader(self, start: int = 0) -> LibtorrentReader:
        return LibtorrentReader(self, start)


class LibtorrentSession:
    """Session wrapping a ``lt.torrent_handle``."""

    def __init__(
        self,
        engine: LibtorrentSwarmEngine,
        handle: lt.torrent_handle,
        identifier: str,
    ):
        self._engine = engine
        self.handle = handle
        self.identifier = identifier
        self.poll_interval = engine.poll_interval
        self.dropped = False
        self._files: list[LibtorrentFile] | None = None

    def _info(self) -> lt.torrent_info:
        info = self.handle.torrent_file()
        if info is None:
            msg = f"No metadata for {self.identifier}"
            raise StreamError(msg)
        return info

    async def wait_metadata(self) -> None:
        while not self.has_metadata():
            if not self.dropped and not self.handle.is_valid():
                msg = f"Torrent handle for {self.identifier} is no longer valid"
                raise StreamError(msg)
            await asyncio.sleep(self.poll_interval)

    def has_metadata(self) -> bool:
        if self.dropped or not self.handle.is_valid():
            return False
        try:
            return bool(self.handle.status().has_metadata)
        except RuntimeError as e:
            msg = f"Failed to query status of {self.identifier}: {e}"
            raise StreamError(msg) from e

    def name(self) -> str:
        return self._info().name()

    def total_length(self) -> int:
        return self._info().total_size()

    def piece_length(self) -> int:
        return self._info().piece_length()

    def num_pieces(self) -> int:
        return self._info().num_pieces()

    def files(self) -> list[LibtorrentFile]:
        if not self.has_metadata():
            return []
        if self._files is None:
            self._files = self._build_files()
        return self._files

    def _build_files(self) -> list[LibtorrentFile]:
        info = self._info()
        storage = info.files()
        save_path = Path(self._engine.download_dir)
        multi_file = storage.num_files() > 1
        prefix = f"{info.name()}/"
        files: list[LibtorrentFile] = []
        for index in range(storage.num_files()):
            if storage.pad_file_at(index):
                continue
            disk_rel = storage.file_path(index)
            path = disk_rel.replace(os.sep, "/")
            if multi_file and path.startswith(prefix):
                path = path[len(prefix) :]
            files.append(
                LibtorrentFile(
                    self,
                    index=index,
                    path=path,
                    length=storage.file_size(index),
                    offset=storage.file_offset(index),
                    disk_path=save_path / disk_rel,
                )
            )
        return files

    def drop(self) -> None:
        if self.dropped:
            return
        self.dropped = True
        try:
            self._engine.session.remove_torrent(self.handle)
        except RuntimeError as e:
            logger.warning("Failed to remove torrent %s: %s", self.identifier, e)


class LibtorrentSwarmEngine:
    """Swarm engine driving a single ``lt.session``."""

    def __init__(
        self,
        download_dir: str | Path,
        listen_port: int = 42069,
        user_agent: str = "magnetdav/1.0",
        max_connections: int = 200,
        poll_interval: float = 0.2,
    ):
        self.download_dir = Path(download_dir)
        self.download_dir.mkdir(parents=True, exist_ok=True)
        self.poll_interval = poll_interval
        self.session = lt.session(
            {
                "listen_interfaces": f"0.0.0.0:{listen_port}",
                "user_agent": user_agent,
                "connections_limit": max_connections,
                "enable_dht": True,
                "enable_lsd": True,
                "alert_mask": lt.alert.category_t.error_notification,
            }
        )
        logger.info(
            "libtorrent %s session listening on port %d", lt.__version__, listen_port
        )

    async def acquire(self, uri: str, identifier: str) -> LibtorrentSession:
        try:
            params = lt.parse_magnet_uri(uri)
        except RuntimeError as e:
            raise EngineRejectedError(
                f"Invalid magnet URI: {e}", {"identifier": identifier}
            ) from e
        params.save_path = str(self.download_dir)
        params.storage_mode = lt.storage_mode_t.storage_mode_sparse
        try:
            handle = self.session.add_torrent(params)
        except RuntimeError as e:
            raise EngineRejectedError(str(e), {"identifier": identifier}) from e
        return LibtorrentSession(self, handle, identifier)

    async def close(self) -> None:
        self.session.pause()
        logger.info("libtorrent session paused")
