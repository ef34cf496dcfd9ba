# Ariwa - Checkpoint Persistence
"""
Durable storage for the stream's resumption marker.

The marker is a single integer kept in a JSON file
``{"lastMessageTimestamp": <int>}``. Persistence is advisory: reads and writes
are bounded by a timeout, and every failure degrades to "no marker" (load) or a
log line (save). Nothing here raises into the frame dispatch path.
"""

import json
import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Optional, Union

import structlog

logger = structlog.get_logger(__name__)

IO_TIMEOUT = 1.0  # seconds
CHECKPOINT_KEY = "lastMessageTimestamp"

PathLike = Union[str, Path]

_io_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ariwa-checkpoint-io")


def _read(path: Path) -> Optional[int]:
    data = json.loads(path.read_text(encoding="utf-8"))
    value = data.get(CHECKPOINT_KEY) if isinstance(data, dict) else None
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _write(path: Path, timestamp: int) -> None:
    # Write to a sibling temp file and swap it in so a reader never sees a
    # half-written checkpoint.
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({CHECKPOINT_KEY: timestamp}, f)
        os.replace(tmp_name, path)
    except Exception:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def load_timestamp(path: PathLike, timeout: float = IO_TIMEOUT) -> Optional[int]:
    """Read the persisted marker.

    Args:
        path: Checkpoint file path
        timeout: Maximum seconds to wait for the read

    Returns:
        The stored marker, or None when the file is missing, malformed, or the
        read times out
    """
    future = _io_executor.submit(_read, Path(path))
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning("checkpoint_load_timeout", path=str(path), timeout=timeout)
        return None
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.warning("checkpoint_load_failed", path=str(path), error=str(e), error_type=type(e).__name__)
        return None


def save_timestamp(path: PathLike, timestamp: int, timeout: float = IO_TIMEOUT) -> bool:
    """Persist ``timestamp``.

    Args:
        path: Checkpoint file path
        timestamp: Marker to store
        timeout: Maximum seconds to wait for the write

    Returns:
        True if the write completed within the timeout
    """
    future = _io_executor.submit(_write, Path(path), timestamp)
    try:
        future.result(timeout=timeout)
        return True
    except FutureTimeoutError:
        logger.warning("checkpoint_save_timeout", path=str(path), timeout=timeout)
    except (OSError, TypeError, ValueError) as e:
        logger.warning("checkpoint_save_failed", path=str(path), error=str(e), error_type=type(e).__name__)
    return False


class CheckpointTracker:
    """In-memory resumption marker mirrored to an optional checkpoint file.

    ``advance`` updates memory synchronously; ``persist`` queues the write on a
    single background worker, so writes land in the order markers were observed
    and never block the caller. A crash between the two loses at most one
    advance.

    Attributes:
        path: Checkpoint file, or None to keep the marker in memory only
        timeout: I/O timeout for each load/save
        consecutive_failures: Saves that failed since the last success
    """

    def __init__(self, path: Optional[PathLike] = None, timeout: float = IO_TIMEOUT):
        self.path = Path(path) if path is not None else None
        self.timeout = timeout
        self.consecutive_failures = 0
        self._marker: Optional[int] = None
        self._lock = threading.Lock()
        self._writer: Optional[ThreadPoolExecutor] = None

    @property
    def marker(self) -> Optional[int]:
        return self._marker

    def reset(self, marker: Optional[int]) -> None:
        """Set the starting marker for a new session."""
        with self._lock:
            self._marker = marker

    def load(self) -> Optional[int]:
        """Read the marker from disk (None without a path)."""
        if self.path is None:
            return None
        return load_timestamp(self.path, timeout=self.timeout)

    def advance(self, timestamp: int) -> bool:
        """Move the marker forward.

        Returns:
            False when ``timestamp`` is older than the current marker, which
            is left in place
        """
        with self._lock:
            if self._marker is not None and timestamp < self._marker:
                return False
            self._marker = timestamp
            return True

    def persist(self) -> None:
        """Queue a write of the current marker."""
        if self.path is None or self._marker is None:
            return
        with self._lock:
            if self._writer is None:
                self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ariwa-checkpoint")
            self._writer.submit(self._save, self._marker)

    def _save(self, timestamp: int) -> None:
        if save_timestamp(self.path, timestamp, timeout=self.timeout):
            self.consecutive_failures = 0
        else:
            self.consecutive_failures += 1

    def flush(self) -> None:
        """Wait for queued writes to finish and release the writer thread."""
        with self._lock:
            writer, self._writer = self._writer, None
        if writer is not None:
            writer.shutdown(wait=True)
