"""Periodic driver for the ACL maintainer."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from magicacl.exceptions import AclRecoveryError
from magicacl.maintainer import AclMaintainer


class AclScheduler:
    """Calls ``maintainer.run()`` immediately and then every ``interval`` seconds.

    Passes run on a single background thread, so they never overlap. Nothing
    starts until ``start()`` is called.
    """

    def __init__(self, maintainer: AclMaintainer, interval: float = 30.0):
        self.maintainer = maintainer
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self):
        try:
            self.maintainer.run()
        except AclRecoveryError as e:
            logging.critical(f"ACL pass left containers without recovery: {e}")
        except Exception:
            logging.exception("ACL pass failed")

    def _loop(self):
        logging.info(f"ACL maintainer started, interval {self.interval}s")
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self.interval)
        logging.info("ACL maintainer stopped")

    def start(self):
        if self.running:
            raise RuntimeError("ACL scheduler already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="acl-maintainer", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def wait(self):
        # short joins keep the main thread responsive to signals
        while self.running:
            self._thread.join(0.5)
