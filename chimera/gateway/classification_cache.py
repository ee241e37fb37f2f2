"""
Identity-addressed cache in front of the classification provider.

Classification calls are billed, so a record computed once for an image
identity is reused for the lifetime of the process (and, when a records
directory is configured, across restarts through ``<identity>.animal.json``
files). Concurrent misses for the same identity share one upstream call.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Tuple, Union

from chimera.utils.logging import get_logger

from .classification_client import ClassificationClient
from .models import ClassificationRecord, ClientCredentials, ImageIdentity
from .token_manager import TokenManager

logger = get_logger(__name__)

RECORD_SUFFIX = ".animal.json"


class _FlightAbandoned(Exception):
    """The caller computing a value was cancelled before finishing."""


def _consume_exception(future: "asyncio.Future") -> None:
    # Marks the exception as retrieved when no waiter picked it up
    if not future.cancelled():
        future.exception()


class SingleFlight:
    """
    At most one in-flight computation per key.

    The first caller for a key runs the computation; callers arriving while it
    runs await the same result. Failures reach every waiter and leave no entry
    behind, so the next call starts afresh.
    """

    def __init__(self):
        self._inflight: Dict[str, asyncio.Future] = {}

    async def do(self, key: str, fn: Callable[[], Awaitable]) -> Tuple[object, bool]:
        """
        Run ``fn`` unless a computation for ``key`` is already running.

        Returns:
            (result, shared) where ``shared`` is True when this caller joined
            another caller's computation instead of running ``fn``.
        """
        while True:
            future = self._inflight.get(key)
            if future is None:
                break
            try:
                return await asyncio.shield(future), True
            except _FlightAbandoned:
                # Leader was cancelled; the next loop iteration takes over.
                continue

        future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        self._inflight[key] = future
        try:
            result = await fn()
        except asyncio.CancelledError:
            future.set_exception(_FlightAbandoned(key))
            raise
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result, False
        finally:
            self._inflight.pop(key, None)


class RecordStore:
    """
    In-memory map of classification records, optionally mirrored on disk.

    Records are write-once: an identity that already has a record (in memory
    or on disk) is never overwritten. The disk copy is best-effort; a records
    directory that cannot be read or written leaves the in-memory map as the
    only copy.

    ``get`` and ``put`` touch the filesystem and block; callers on the event
    loop run them in an executor.
    """

    def __init__(self, records_dir: Optional[Union[str, Path]] = None):
        self.records_dir = Path(records_dir) if records_dir else None
        self._records: Dict[str, ClassificationRecord] = {}

    def _path_for(self, identity: ImageIdentity) -> Optional[Path]:
        if self.records_dir is None:
            return None
        return self.records_dir / f"{identity}{RECORD_SUFFIX}"

    def peek(self, identity: ImageIdentity) -> Optional[ClassificationRecord]:
        """In-memory lookup only; never touches the filesystem."""
        return self._records.get(str(identity))

    def get(self, identity: ImageIdentity) -> Optional[ClassificationRecord]:
        record = self.peek(identity)
        if record is not None:
            return record

        path = self._path_for(identity)
        if path is None:
            return None

        try:
            if not path.is_file():
                return None
            data = json.loads(path.read_text(encoding="utf-8"))
            record = ClassificationRecord.from_dict(data, identity=identity)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable record file for {identity}: {e}")
            return None

        self._records[str(identity)] = record
        return record

    def put(self, record: ClassificationRecord) -> None:
        key = str(record.identity)
        if key in self._records:
            return
        self._records[key] = record

        path = self._path_for(record.identity)
        if path is None:
            return

        try:
            self._write(path, record)
        except OSError as e:
            logger.warning(f"Could not persist record for {record.identity}: {e}")

    def _write(self, path: Path, record: ClassificationRecord) -> None:
        if path.exists():
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Persisted classification record to {path.name}")

    def __contains__(self, identity: ImageIdentity) -> bool:
        return self.get(identity) is not None

    def __len__(self) -> int:
        return len(self._records)


class ClassificationCache:
    """Returns cached classification records, computing them on a miss."""

    def __init__(
        self,
        token_manager: TokenManager,
        client: ClassificationClient,
        credentials: ClientCredentials,
        top_n: int = 10,
        store: Optional[RecordStore] = None,
    ):
        self.token_manager = token_manager
        self.client = client
        self.credentials = credentials
        self.top_n = top_n
        self.store = store if store is not None else RecordStore()
        self._flights = SingleFlight()
        self.stats = {"hits": 0, "misses": 0, "shared": 0}

    async def classify(
        self, identity: ImageIdentity, image_bytes: Union[bytes, Callable[[], bytes]]
    ) -> Tuple[ClassificationRecord, bool]:
        """
        Return the record for ``identity``, classifying the image on a miss.

        Args:
            identity: Cache key of the image
            image_bytes: Image contents, or a callable producing them (only
                invoked on a miss)

        Returns:
            (record, from_cache); ``from_cache`` is False only for the call
            that performed the upstream classification

        Raises:
            AuthError: If the token exchange fails
            UpstreamError: If the classification call fails
        """
        record = self.store.peek(identity)
        if record is not None:
            self.stats["hits"] += 1
            logger.debug(f"Cache hit for {identity}")
            return record, True

        async def compute() -> Tuple[ClassificationRecord, bool]:
            loop = asyncio.get_running_loop()
            # Record file on disk, or one stored by a flight that just finished
            existing = await loop.run_in_executor(None, self.store.get, identity)
            if existing is not None:
                return existing, False
            if callable(image_bytes):
                data = await loop.run_in_executor(None, image_bytes)
            else:
                data = image_bytes
            token = await self.token_manager.acquire_token(self.credentials)
            fresh = await self.client.classify_remote(
                token, data, self.top_n, identity=identity
            )
            await loop.run_in_executor(None, self.store.put, fresh)
            self.stats["misses"] += 1
            return fresh, True

        (record, computed), shared = await self._flights.do(str(identity), compute)
        if shared:
            self.stats["shared"] += 1
            logger.debug(f"Joined in-flight classification for {identity}")
            return record, True

        if not computed:
            self.stats["hits"] += 1
        return record, not computed
