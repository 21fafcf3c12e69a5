"""
Per-game locking for backup, swap and restore.

Two layers are held together: a threading.Lock per game id serializes
threads of this process, and a lock file ``<data root>/locks/<game id>.lock``
holding the owner's PID keeps other processes out.
"""

import logging
import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional

import psutil

from .constants import LOCK_PID_GRACE_SECONDS, LOCKS_DIR, LOGGER_NAME
from .exceptions import GameLockedError
from .paths import as_data_root

logger = logging.getLogger(LOGGER_NAME)


def read_lock_pid(path: Path) -> Optional[int]:
    try:
        return int(path.read_text(encoding="ascii").strip())
    except (OSError, ValueError):
        return None


class GameLockRegistry:
    """Hands out per-game locks; share one instance across the application."""

    # Shared by every registry so two instances over one data root still exclude each other
    _locks: Dict[str, threading.Lock] = {}
    _registry_lock = threading.Lock()

    def __init__(self, data_root):
        self.data_root = as_data_root(data_root)

    @property
    def locks_dir(self) -> Path:
        return self.data_root.join(LOCKS_DIR)

    def lock_path(self, game_id: int) -> Path:
        return self.locks_dir / f"{game_id}.lock"

    def _thread_lock(self, game_id: int) -> threading.Lock:
        key = str(self.lock_path(game_id).absolute())
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, game_id: int):
        """
        Hold the lock for a game for the duration of the with-block.

        Raises:
            GameLockedError: If another live process holds the game's lock file
        """
        thread_lock = self._thread_lock(game_id)
        with thread_lock:
            self._acquire_file(game_id)
            try:
                yield
            finally:
                self._release_file(game_id)

    def is_locked(self, game_id: int) -> bool:
        pid = read_lock_pid(self.lock_path(game_id))
        return pid is not None and psutil.pid_exists(pid)

    def _acquire_file(self, game_id: int) -> None:
        path = self.lock_path(game_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        while True:
            try:
                fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            except FileExistsError:
                pid = read_lock_pid(path)
                if pid is None:
                    # The owner may have created the file and not written its PID yet
                    age = self._lock_age(path)
                    if age is None:
                        continue
                    if age < LOCK_PID_GRACE_SECONDS:
                        raise GameLockedError(
                            f"Game {game_id} is being locked by another process"
                        )
                elif pid != os.getpid() and psutil.pid_exists(pid):
                    raise GameLockedError(
                        f"Game {game_id} is locked by another process (PID: {pid})", pid=pid
                    )
                logger.warning(f"Removing stale lock for game {game_id} (PID: {pid})")
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass
                continue

            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write(str(os.getpid()))
            logger.debug(f"Acquired lock for game {game_id}")
            return

    @staticmethod
    def _lock_age(path: Path) -> Optional[float]:
        """Seconds since the lock file was last written, or None if it is gone"""
        try:
            return time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _release_file(self, game_id: int) -> None:
        path = self.lock_path(game_id)
        if read_lock_pid(path) == os.getpid():
            path.unlink()
            logger.debug(f"Released lock for game {game_id}")
