"""Advisory locking around registry index rebuilds.

Two nixhelp invocations rebuilding the template index at the same time must
not interleave their writes to the index cache file.
"""
import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

from nixhelp.core.logger import get_logger

logger = get_logger(__name__)


class LockError(Exception):
    """Raised when unable to acquire lock."""
    pass


class IndexLock:
    """File-based lock held while the registry index cache is written."""

    def __init__(self, lock_file: Path, timeout: float = 0):
        """Initialize lock.

        Args:
            lock_file: Path to lock file (normally <cache_dir>/templates/index.lock)
            timeout: Seconds to wait for lock (0 = fail immediately)
        """
        self.lock_file = Path(lock_file)
        self.timeout = timeout
        self.lock_fd = None

    def acquire(self) -> bool:
        """Acquire the lock.

        Returns:
            True if lock acquired successfully

        Raises:
            LockError: If unable to acquire lock
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)

        # Append mode keeps the holder's PID readable until we own the lock
        self.lock_fd = open(self.lock_file, 'a+')

        start_time = time.time()
        while True:
            try:
                fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

                self.lock_fd.seek(0)
                self.lock_fd.truncate()
                self.lock_fd.write(f"{os.getpid()}\n")
                self.lock_fd.write(f"{time.strftime('%Y-%m-%d %H:%M:%S')}\n")
                self.lock_fd.flush()

                logger.debug(f"Acquired lock: {self.lock_file}")
                return True

            except OSError:
                elapsed = time.time() - start_time
                if self.timeout == 0 or elapsed >= self.timeout:
                    lock_info = self._read_lock_info()
                    self.lock_fd.close()
                    self.lock_fd = None
                    if self.timeout == 0:
                        raise LockError(
                            f"Another nixhelp process is rebuilding the template index.\n"
                            f"Lock held by PID {lock_info['pid']} since {lock_info['time']}"
                        )
                    raise LockError(
                        f"Timeout waiting for lock after {self.timeout}s.\n"
                        f"Lock held by PID {lock_info['pid']} since {lock_info['time']}"
                    )

                time.sleep(0.1)

    def release(self) -> None:
        """Release the lock. The lock file stays on disk."""
        if self.lock_fd is None:
            return
        try:
            fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_UN)
            logger.debug(f"Released lock: {self.lock_file}")
        finally:
            self.lock_fd.close()
            self.lock_fd = None

    def _read_lock_info(self) -> Dict[str, str]:
        """Read info from lock file about who holds it."""
        try:
            lines = self.lock_file.read_text().splitlines()
        except OSError:
            lines = []

        if len(lines) >= 2:
            return {'pid': lines[0].strip(), 'time': lines[1].strip()}
        return {'pid': 'unknown', 'time': 'unknown'}

    def __enter__(self):
        """Context manager entry."""
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.release()
        return False


@contextmanager
def index_lock(lock_file: Path, timeout: float = 0) -> Iterator[IndexLock]:
    """Context manager for index rebuild locking.

    Usage:
        with index_lock(config.index_lock_file, timeout=config.lock_timeout):
            # write the index
            pass

    Raises:
        LockError: If unable to acquire lock
    """
    lock = IndexLock(lock_file=lock_file, timeout=timeout)
    lock.acquire()
    try:
        yield lock
    finally:
        lock.release()
