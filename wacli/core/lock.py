"""Exclusive store lock.

Only one process may open the live session for a store directory. The lock is
an ``flock`` on ``<store>/LOCK``, held for as long as the session is open and
released by the kernel if the process dies.
"""

import fcntl
import logging
import os
from pathlib import Path
from typing import Optional, TextIO, Union

from wacli.core.errors import StoreLockedError

logger = logging.getLogger(__name__)

LOCK_NAME = "LOCK"


class StoreLock:
    def __init__(self, store_dir: Union[str, Path]):
        self.store_dir = Path(store_dir)
        self.lock_path = self.store_dir / LOCK_NAME
        self._file: Optional[TextIO] = None

    @property
    def held(self) -> bool:
        return self._file is not None

    def acquire(self) -> None:
        """
        Take the lock without blocking.

        Raises:
            StoreLockedError: If another process holds it
        """
        if self._file is not None:
            return

        self.store_dir.mkdir(parents=True, exist_ok=True)
        lock_file = open(self.lock_path, "a+")
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            holder = self._read_holder(lock_file)
            lock_file.close()
            raise StoreLockedError(str(self.store_dir), holder) from None

        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write(str(os.getpid()))
        lock_file.flush()
        self._file = lock_file
        logger.debug(f"Acquired store lock {self.lock_path}")

    def release(self) -> None:
        if self._file is None:
            return
        try:
            self._file.seek(0)
            self._file.truncate()
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        finally:
            self._file.close()
            self._file = None
        logger.debug(f"Released store lock {self.lock_path}")

    def __enter__(self) -> "StoreLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @staticmethod
    def _read_holder(lock_file: TextIO) -> Optional[int]:
        try:
            lock_file.seek(0)
            return int(lock_file.read().strip())
        except (OSError, ValueError):
            return None
