from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from .storage import KeyValueStore

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ChangeNotifier:
    """Payload-less "ledger or cart may have changed" signal.

    Subscribers must re-read the ledger and cart when called; nothing about the
    change is passed along. ``relay`` is called for local changes only, so a
    broker can forward them to other contexts without echoing remote ones.
    """

    def __init__(self, relay: Optional[Listener] = None):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self.relay = relay

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def notify(self) -> None:
        self._dispatch("local")
        if self.relay is not None:
            try:
                self.relay()
            except Exception:
                logger.exception("change relay failed")

    def notify_remote(self, origin: str) -> None:
        self._dispatch(origin)

    def _dispatch(self, origin: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        logger.debug("change notification origin=%s listeners=%d", origin, len(listeners))
        for listener in listeners:
            try:
                listener()
            except Exception:
                # the write already happened; other listeners still need the signal
                logger.exception("change listener failed origin=%s", origin)


class StorageWatcher:
    """Turns writes made by other contexts into remote notifications.

    Polls the store's revision table. A key whose revision moved and whose last
    writer is another context fires ``notify_remote("storage")``; the context's
    own writes are absorbed silently, the same way a browser does not deliver
    storage events to the tab that wrote.
    """

    def __init__(self, store: KeyValueStore, notifier: ChangeNotifier, interval: float = 1.0):
        self.store = store
        self.notifier = notifier
        self.interval = interval
        self._seen: Dict[str, Tuple[int, Optional[str]]] = store.revisions()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> bool:
        current = self.store.revisions()
        remote_change = False
        for key, (revision, writer) in current.items():
            seen = self._seen.get(key)
            if seen is not None and seen[0] == revision:
                continue
            if writer != self.store.context_id:
                remote_change = True
        self._seen = current
        if remote_change:
            self.notifier.notify_remote("storage")
        return remote_change

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()

        def _run() -> None:
            while not self._stop.is_set():
                try:
                    self.poll_once()
                except Exception:
                    logger.exception("storage watcher poll failed")
                self._stop.wait(self.interval)

        self._thread = threading.Thread(
            target=_run, name=f"storage-watcher:{self.store.context_id[:8]}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
            self._thread = None
