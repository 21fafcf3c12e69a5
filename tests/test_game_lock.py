import os
import threading
import time
from unittest.mock import patch

import pytest

from dlss_manager.constants import LOCK_PID_GRACE_SECONDS
from dlss_manager.exceptions import GameLockedError
from dlss_manager.game_lock import GameLockRegistry, read_lock_pid


GAME_ID = 1091500


@pytest.fixture
def locks(data_root):
    return GameLockRegistry(data_root)


def test_lock_file_holds_pid_while_held(locks):
    with locks.hold(GAME_ID):
        assert read_lock_pid(locks.lock_path(GAME_ID)) == os.getpid()
        assert locks.is_locked(GAME_ID)

    assert not locks.lock_path(GAME_ID).exists()
    assert not locks.is_locked(GAME_ID)


def test_released_on_exception(locks):
    with pytest.raises(RuntimeError):
        with locks.hold(GAME_ID):
            raise RuntimeError("boom")

    assert not locks.lock_path(GAME_ID).exists()


def test_stale_lock_is_reclaimed(locks):
    path = locks.lock_path(GAME_ID)
    path.parent.mkdir(parents=True)
    path.write_text("999999", encoding="ascii")

    with patch("dlss_manager.game_lock.psutil.pid_exists", return_value=False):
        with locks.hold(GAME_ID):
            assert read_lock_pid(path) == os.getpid()


def test_old_unreadable_lock_is_reclaimed(locks):
    path = locks.lock_path(GAME_ID)
    path.parent.mkdir(parents=True)
    path.write_text("garbage", encoding="ascii")
    expired = time.time() - LOCK_PID_GRACE_SECONDS - 60
    os.utime(path, (expired, expired))

    with locks.hold(GAME_ID):
        assert read_lock_pid(path) == os.getpid()


@pytest.mark.parametrize("content", ["", "garbage"])
def test_fresh_lock_without_pid_is_held(locks, content):
    path = locks.lock_path(GAME_ID)
    path.parent.mkdir(parents=True)
    path.write_text(content, encoding="ascii")
    entered = []

    with pytest.raises(GameLockedError):
        with locks.hold(GAME_ID):
            entered.append(True)

    assert entered == []
    # The owner is still writing its PID, so the file is left alone
    assert path.read_text(encoding="ascii") == content


def test_old_empty_lock_is_reclaimed(locks):
    path = locks.lock_path(GAME_ID)
    path.parent.mkdir(parents=True)
    path.touch()
    expired = time.time() - LOCK_PID_GRACE_SECONDS - 60
    os.utime(path, (expired, expired))

    with locks.hold(GAME_ID):
        assert read_lock_pid(path) == os.getpid()


def test_live_foreign_lock_raises(locks):
    path = locks.lock_path(GAME_ID)
    path.parent.mkdir(parents=True)
    path.write_text("4242", encoding="ascii")

    with patch("dlss_manager.game_lock.psutil.pid_exists", return_value=True):
        with pytest.raises(GameLockedError) as excinfo:
            with locks.hold(GAME_ID):
                pass

    assert excinfo.value.pid == 4242
    # Another process's lock file is left alone
    assert read_lock_pid(path) == 4242


def test_different_games_do_not_block(locks):
    with locks.hold(GAME_ID):
        with locks.hold(1245620):
            assert locks.is_locked(GAME_ID)
            assert locks.is_locked(1245620)


def test_threads_are_serialized_per_game(data_root):
    active = []
    overlaps = []
    guard = threading.Lock()

    def work():
        # Separate registries over one data root share the same thread lock
        registry = GameLockRegistry(data_root)
        with registry.hold(GAME_ID):
            with guard:
                active.append(1)
                if len(active) > 1:
                    overlaps.append(len(active))
            time.sleep(0.01)
            with guard:
                active.pop()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == []
    assert not GameLockRegistry(data_root).lock_path(GAME_ID).exists()
