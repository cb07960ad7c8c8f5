"""In-memory torrent registry for btmeta.

Decoded torrents are stored by info hash. Every request, reads included, is
served by a single worker task in arrival order, so concurrent callers see
one consistent sequence of operations.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from btmeta.config.config import get_config
from btmeta.core.torrent import Torrent
from btmeta.utils.exceptions import BTMetaTimeoutError, RegistryError
from btmeta.utils.logging_config import get_logger


class RegistryOperation(str, Enum):
    """Requests understood by the registry worker."""

    ADD = "add"
    GET = "get"
    REMOVE = "remove"
    LIST = "list"


@dataclass
class _Request:
    operation: RegistryOperation
    payload: Any = None
    future: asyncio.Future = field(
        default_factory=lambda: asyncio.get_running_loop().create_future(),
    )


class TorrentRegistry:
    """Stores decoded torrents keyed by info hash."""

    def __init__(
        self,
        request_timeout: float | None = None,
        max_queue_size: int | None = None,
    ):
        """Initialize torrent registry.

        Args:
            request_timeout: Seconds a caller waits for a reply; defaults to
                ``registry.request_timeout`` from the configuration
            max_queue_size: Maximum number of pending requests; defaults to
                ``registry.max_queue_size`` from the configuration

        """
        registry_config = get_config().registry
        self.request_timeout = (
            request_timeout
            if request_timeout is not None
            else registry_config.request_timeout
        )
        self.max_queue_size = (
            max_queue_size
            if max_queue_size is not None
            else registry_config.max_queue_size
        )
        self.running = False
        self.logger = get_logger(__name__)
        self._torrents: dict[bytes, Torrent] = {}
        self._queue: asyncio.Queue[_Request] | None = None
        self._task: asyncio.Task | None = None

        self.stats = {
            "requests_processed": 0,
            "torrents_added": 0,
            "torrents_removed": 0,
        }

    async def __aenter__(self) -> TorrentRegistry:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop()

    async def start(self) -> None:
        """Start the worker task."""
        if self.running:
            return

        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self.running = True
        self._task = asyncio.create_task(self._process_requests(self._queue))
        self.logger.info("Torrent registry started")

    async def stop(self) -> None:
        """Stop the worker task and fail every request still queued."""
        if not self.running:
            return

        self.running = False
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        if self._queue is not None:
            while not self._queue.empty():
                request = self._queue.get_nowait()
                if not request.future.done():
                    request.future.set_exception(
                        RegistryError("Torrent registry stopped"),
                    )
            self._queue = None

        self.logger.info("Torrent registry stopped")

    async def add(self, torrent: Torrent) -> bytes:
        """Store a torrent.

        Adding a torrent whose info hash is already present keeps the stored
        torrent.

        Returns:
            The torrent's info hash

        """
        return await self._request(RegistryOperation.ADD, torrent)

    async def get(self, info_hash: bytes) -> Torrent | None:
        """Return the torrent stored under ``info_hash``, if any."""
        return await self._request(RegistryOperation.GET, info_hash)

    async def remove(self, info_hash: bytes) -> bool:
        """Remove a torrent.

        Returns:
            True if a torrent was stored under ``info_hash``

        """
        return await self._request(RegistryOperation.REMOVE, info_hash)

    async def list_hashes(self) -> list[bytes]:
        """Return the stored info hashes in insertion order."""
        return await self._request(RegistryOperation.LIST)

    async def _request(self, operation: RegistryOperation, payload: Any = None) -> Any:
        if not self.running or self._queue is None:
            msg = f"Torrent registry is not running ({operation.value})"
            raise RegistryError(msg)

        request = _Request(operation, payload)
        try:
            return await asyncio.wait_for(
                self._submit(self._queue, request),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError as e:
            msg = (
                f"Torrent registry did not answer {operation.value} "
                f"within {self.request_timeout}s"
            )
            raise BTMetaTimeoutError(msg) from e

    @staticmethod
    async def _submit(queue: asyncio.Queue[_Request], request: _Request) -> Any:
        await queue.put(request)
        return await request.future

    async def _process_requests(self, queue: asyncio.Queue[_Request]) -> None:
        """Serve queued requests one at a time.

        Requests whose caller already gave up are dropped unapplied.
        """
        while self.running:
            try:
                request = await queue.get()
            except asyncio.CancelledError:
                break

            if request.future.done():
                self.logger.debug(
                    "Dropping abandoned registry %s request",
                    request.operation.value,
                )
                queue.task_done()
                continue

            try:
                result = self._handle(request.operation, request.payload)
            except Exception as e:
                self.logger.exception("Registry %s request failed", request.operation.value)
                if not request.future.done():
                    request.future.set_exception(e)
            else:
                if not request.future.done():
                    request.future.set_result(result)
            finally:
                self.stats["requests_processed"] += 1
                queue.task_done()

    def _handle(self, operation: RegistryOperation, payload: Any) -> Any:
        if operation is RegistryOperation.ADD:
            info_hash = payload.info_hash
            if info_hash in self._torrents:
                self.logger.debug("Torrent %s already registered", info_hash.hex())
            else:
                self._torrents[info_hash] = payload
                self.stats["torrents_added"] += 1
                self.logger.debug("Registered torrent %s", info_hash.hex())
            return info_hash

        if operation is RegistryOperation.GET:
            return self._torrents.get(payload)

        if operation is RegistryOperation.REMOVE:
            removed = self._torrents.pop(payload, None) is not None
            if removed:
                self.stats["torrents_removed"] += 1
                self.logger.debug("Removed torrent %s", payload.hex())
            return removed

        return list(self._torrents)
