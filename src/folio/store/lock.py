"""Cross-process write lock for a store root.

The lock is a marker file created with O_EXCL. It records who holds it and
when, so a marker left behind by a crashed writer can be reclaimed once it
is older than ``stale_after`` seconds. While the lock is held a background
heartbeat touches the marker, so long holds (a slow ``git pull``) never look
abandoned to other processes.

Threads sharing one ProcessLock queue on an in-process mutex before they
contend for the marker.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import threading
import time
import uuid
from pathlib import Path

from folio.errors import LockAcquisitionFailed, LockTimeout

logger = logging.getLogger(__name__)

LOCK_NAME = ".folio.lock"
POLL_INTERVAL = 0.01  # seconds
STALE_AFTER = 60.0  # seconds


class ProcessLock:
    """Non-reentrant mutual exclusion between processes sharing a store."""

    def __init__(
        self,
        root: Path,
        name: str = LOCK_NAME,
        *,
        timeout: float | None = None,
        poll_interval: float = POLL_INTERVAL,
        stale_after: float | None = STALE_AFTER,
        heartbeat: float | None = None,
    ) -> None:
        self.path = root / name
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.stale_after = stale_after
        # default: three beats per staleness window
        if heartbeat is None and stale_after is not None:
            heartbeat = stale_after / 3
        self.heartbeat = heartbeat
        self._mutex = threading.Lock()
        self._token: str | None = None
        self._holder: int | None = None
        self._beat_stop: threading.Event | None = None
        self._beat_thread: threading.Thread | None = None

    @property
    def held(self) -> bool:
        return self._token is not None

    def acquire(self, timeout: float | None = None) -> None:
        """Block until the marker is ours.

        ``timeout`` (falling back to the instance default) bounds the wait;
        None waits forever. Other threads using this instance wait their turn;
        acquiring again from the holding thread raises LockAcquisitionFailed.
        """
        if self._token is not None and self._holder == threading.get_ident():
            raise LockAcquisitionFailed(f"{self.path} is already held by this thread")

        if timeout is None:
            timeout = self.timeout
        deadline = None if timeout is None else time.monotonic() + timeout

        if not self._mutex.acquire(timeout=-1 if timeout is None else max(timeout, 0)):
            raise LockTimeout(f"timed out after {timeout}s waiting for {self.path}")
        try:
            token = self._create_marker(timeout, deadline)
        except BaseException:
            self._mutex.release()
            raise

        self._token = token
        self._holder = threading.get_ident()
        self._start_heartbeat()
        logger.debug("Acquired %s", self.path)

    def release(self) -> None:
        """Remove the marker if it is still ours."""
        if self._token is None:
            return
        token, self._token = self._token, None
        self._holder = None
        self._stop_heartbeat()
        try:
            self._remove_marker(token)
        finally:
            self._mutex.release()

    def refresh(self) -> None:
        """Heartbeat: bump the marker's mtime so it is not considered stale."""
        if self._token is not None:
            os.utime(self.path)

    def __enter__(self) -> ProcessLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    # ── Internal helpers ──────────────────────────────────────

    def _create_marker(self, timeout: float | None, deadline: float | None) -> str:
        token = uuid.uuid4().hex
        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if self._reclaim_if_stale():
                    continue
                if deadline is not None and time.monotonic() >= deadline:
                    raise LockTimeout(f"timed out after {timeout}s waiting for {self.path}") from None
                time.sleep(self.poll_interval)
                continue
            except OSError as e:
                raise LockAcquisitionFailed(f"failed to acquire lock {self.path}: {e}") from e

            record = {
                "owner": f"{socket.gethostname()}:{os.getpid()}:{token}",
                "acquired_at": time.time(),
            }
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f)
            return token

    def _remove_marker(self, token: str) -> None:
        owner = _owner_of(self.path)
        if owner is None:
            if self.path.exists():
                # unreadable: possibly a new holder that has not written its record yet
                logger.warning("Lock %s has no readable owner; leaving it in place", self.path)
            else:
                logger.warning("Lock %s vanished before release", self.path)
            return
        if not owner.endswith(f":{token}"):
            logger.warning("Lock %s was reclaimed by %s; leaving it in place", self.path, owner)
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning("Lock %s vanished before release", self.path)
            return
        logger.debug("Released %s", self.path)

    def _start_heartbeat(self) -> None:
        if self.heartbeat is None or self.heartbeat <= 0:
            return
        stop = threading.Event()
        thread = threading.Thread(
            target=self._beat, args=(stop, self._token), name="folio-lock-heartbeat", daemon=True
        )
        self._beat_stop, self._beat_thread = stop, thread
        thread.start()

    def _stop_heartbeat(self) -> None:
        stop, thread = self._beat_stop, self._beat_thread
        self._beat_stop = self._beat_thread = None
        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _beat(self, stop: threading.Event, token: str | None) -> None:
        while not stop.wait(self.heartbeat):
            owner = _owner_of(self.path)
            if owner is None or not owner.endswith(f":{token}"):
                logger.warning("Lock %s is no longer ours; heartbeat stopped", self.path)
                return
            try:
                os.utime(self.path)
            except FileNotFoundError:
                logger.warning("Lock %s vanished while held", self.path)
                return

    def _reclaim_if_stale(self) -> bool:
        """Move an abandoned marker out of the way. Returns True to retry at once."""
        if self.stale_after is None:
            return False
        try:
            judged = self.path.stat()
        except FileNotFoundError:
            return True
        age = time.time() - judged.st_mtime
        if age < self.stale_after:
            return False

        # Rename first so only one contender gets to remove it.
        aside = self.path.with_name(f"{self.path.name}.stale-{uuid.uuid4().hex}")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            return True

        moved = os.stat(aside)
        if (moved.st_ino, moved.st_mtime_ns) != (judged.st_ino, judged.st_mtime_ns):
            # Another contender reclaimed first and created a fresh marker; put it back.
            self._restore(aside)
            return True

        owner = _owner_of(aside)
        aside.unlink(missing_ok=True)
        logger.warning(
            "Reclaimed stale lock %s (age %.1fs, owner %s)", self.path, age, owner or "unknown"
        )
        return True

    def _restore(self, aside: Path) -> None:
        try:
            os.link(aside, self.path)
        except FileExistsError:
            logger.error(
                "Cannot restore lock %s taken by %s: a newer marker exists",
                self.path,
                _owner_of(aside) or "unknown",
            )
        aside.unlink(missing_ok=True)


def _owner_of(path: Path) -> str | None:
    try:
        record = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(record, dict):
        return None
    owner = record.get("owner")
    return owner if isinstance(owner, str) else None
