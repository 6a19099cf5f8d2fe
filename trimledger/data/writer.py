"""
Trailing-debounce write-back.

Each commit hands over an already-serialized payload and resets the timer;
only the last payload per key in a burst is written. The timer thread never
touches live ledger state.
"""
import threading
from typing import Any, Dict, Optional

from loguru import logger

from ..config import SAVE_DELAY_SECONDS
from .store import Store


class DebouncedWriter:

    def __init__(self, store: Store, delay: float = SAVE_DELAY_SECONDS):
        self.store = store
        self.delay = delay
        self._pending: Dict[str, Any] = {}
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"DebouncedWriter(delay={self.delay}, pending={sorted(self._pending)})"

    @property
    def pending(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._pending)

    def schedule(self, key: str, payload: Any) -> None:
        """Replace the pending payload for ``key`` and restart the timer."""
        with self._lock:
            self._pending[key] = payload
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        try:
            self.flush()
        except Exception:
            logger.exception("Debounced save failed")

    def flush(self) -> int:
        """
        Write every pending payload now.

        A key leaves the pending set only once its save succeeded (and no
        newer payload arrived meanwhile); failed keys stay pending for the
        next flush. Writes are serialized so an older payload never lands
        after a newer one.

        Returns: Number of keys written
        """
        with self._write_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                pending = dict(self._pending)

            written = []
            failures = []
            for key, payload in pending.items():
                try:
                    self.store.save(key, payload)
                except Exception as e:
                    logger.error(f"Saving {key} failed, keeping it pending: {e}")
                    failures.append(e)
                    continue
                with self._lock:
                    if self._pending.get(key) is payload:
                        del self._pending[key]
                written.append(key)

        if written:
            logger.info(f"Saved {', '.join(written)}")
        if failures:
            raise failures[0]
        return len(written)

    def cancel(self) -> None:
        """Drop pending writes; the in-memory state is unaffected."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending.clear()
