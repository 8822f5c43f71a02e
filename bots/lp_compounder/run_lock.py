#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Per-instance lock so two processes never drive the same wallet and farm."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


class RunLockError(Exception):
    """Raised when unable to acquire run lock."""
    pass


def lock_path(base_dir: Path, instance_name: str) -> Path:
    return base_dir / f".run_lock_{instance_name}"


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _read_pid(path: Path) -> Optional[int]:
    try:
        first = path.read_text().splitlines()[0]
        return int(first.strip())
    except (OSError, IndexError, ValueError):
        return None


class RunLock:
    """
    Context manager holding ``.run_lock_<name>`` for the life of the process.

    The scheduler runs indefinitely, so staleness is judged by whether the
    recorded PID is still alive rather than by the lock's age.
    """

    def __init__(self, lock_file: Path):
        self.lock_file = lock_file
        self.acquired = False

    def __enter__(self) -> "RunLock":
        """Acquire the lock or raise RunLockError."""
        if self.lock_file.exists():
            pid = _read_pid(self.lock_file)
            if pid is not None and pid != os.getpid() and _pid_alive(pid):
                raise RunLockError(f"Another compounder instance is running (pid {pid})")
            # Stale lock - remove it
            try:
                self.lock_file.unlink()
            except OSError as exc:
                raise RunLockError(f"Cannot access lock file: {exc}") from exc

        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise RunLockError("Another compounder instance acquired the lock first") from exc
        except OSError as exc:
            raise RunLockError(f"Cannot create lock file: {exc}") from exc
        with os.fdopen(fd, "w") as fh:
            fh.write(f"{os.getpid()}\n")
        self.acquired = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Release the lock."""
        if self.acquired and self.lock_file.exists():
            try:
                self.lock_file.unlink()
            except OSError:
                # Best effort cleanup
                pass
        self.acquired = False
        return False


def acquire_run_lock(base_dir: Path, instance_name: str) -> RunLock:
    """
    Build the lock for one instance.

    Raises:
        RunLockError: on ``__enter__`` if another live process holds it
    """
    return RunLock(lock_path(base_dir, instance_name))
