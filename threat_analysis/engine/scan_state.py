"""
Scan State

Owned record of which scans are in flight: one flag per detector
identifier plus the aggregate "running all" flag. Flags are only ever
flipped through try_begin/end, under a single lock, so at most one
invocation per identifier can hold its flag.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from ..errors import UnknownDetectorError

logger = logging.getLogger(__name__)

# callback(identifier, scanning); identifier is None for the aggregate flag
ScanStateListener = Callable[[Optional[str], bool], None]


class ScanState:
    """Per-detector and aggregate scan-in-progress flags."""

    def __init__(self, identifiers: Iterable[str]):
        self._lock = threading.Lock()
        self._flags: Dict[str, bool] = {identifier: False for identifier in identifiers}
        self._running_all = False
        self._listeners: List[ScanStateListener] = []

    def subscribe(self, listener: ScanStateListener) -> None:
        """Register a callback invoked on every flag transition."""
        with self._lock:
            self._listeners.append(listener)

    def is_scanning(self, identifier: str) -> bool:
        with self._lock:
            if identifier not in self._flags:
                raise UnknownDetectorError(identifier)
            return self._flags[identifier]

    @property
    def running_all(self) -> bool:
        with self._lock:
            return self._running_all

    @property
    def in_progress(self) -> List[str]:
        """Identifiers whose flag is currently set."""
        with self._lock:
            return [identifier for identifier, flag in self._flags.items() if flag]

    def snapshot(self) -> Dict[str, bool]:
        with self._lock:
            return dict(self._flags)

    def try_begin(self, identifier: str) -> bool:
        """Set the flag for identifier; False if it was already set."""
        with self._lock:
            if identifier not in self._flags:
                raise UnknownDetectorError(identifier)
            if self._flags[identifier]:
                return False
            self._flags[identifier] = True
        self._emit(identifier, True)
        return True

    def end(self, identifier: str) -> None:
        with self._lock:
            was_set = self._flags.get(identifier, False)
            self._flags[identifier] = False
        if was_set:
            self._emit(identifier, False)

    def try_begin_all(self) -> bool:
        """Set the aggregate flag; False if a full scan is already running."""
        with self._lock:
            if self._running_all:
                return False
            self._running_all = True
        self._emit(None, True)
        return True

    def end_all(self) -> None:
        with self._lock:
            was_set = self._running_all
            self._running_all = False
        if was_set:
            self._emit(None, False)

    def _emit(self, identifier: Optional[str], scanning: bool) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(identifier, scanning)
            except Exception:
                logger.exception("Scan state listener failed for %s", identifier or "all")
