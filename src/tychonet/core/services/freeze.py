from __future__ import annotations

"""
Freeze expiry scheduling.

One cancellable timer per network. Each armed timer carries a token; a
timer that fires after it has been cancelled or replaced sees a stale
token and does nothing, so cancellation is always a safe no-op.
"""

import itertools
import logging
import threading
import time
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)

ExpiryCallback = Callable[[str, int], None]


class FreezeScheduler:
    """
    Arms and cancels freeze expiry timers keyed by network name.

    Args:
        on_expire: Called as `on_expire(network, timestamp_until)` from the
            timer thread, without the scheduler lock held.
        timer_factory: `threading.Timer` compatible constructor.
        clock: Returns the current unix time in seconds.
    """

    def __init__(
            self,
            on_expire: ExpiryCallback,
            timer_factory: Callable[..., threading.Timer] = threading.Timer,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._on_expire = on_expire
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._timers: Dict[str, Tuple[int, threading.Timer]] = {}
        self._tokens = itertools.count(1)

    def schedule(self, network: str, timestamp_until: int) -> None:
        """Arm the expiry timer for a network, replacing any pending one."""
        delay = max(0.0, timestamp_until - self._clock())
        with self._lock:
            self._cancel_locked(network)
            token = next(self._tokens)
            timer = self._timer_factory(delay, self._fire, args=(network, token, timestamp_until))
            timer.daemon = True
            self._timers[network] = (token, timer)
            timer.start()
        logger.debug(f"Freeze expiry for '{network}' armed in {delay:.0f}s")

    def cancel(self, network: str) -> bool:
        """Cancel the pending timer for a network. Returns whether one existed."""
        with self._lock:
            return self._cancel_locked(network)

    def cancel_all(self) -> None:
        with self._lock:
            for network in list(self._timers):
                self._cancel_locked(network)

    def is_scheduled(self, network: str) -> bool:
        with self._lock:
            return network in self._timers

    def _cancel_locked(self, network: str) -> bool:
        entry = self._timers.pop(network, None)
        if entry is None:
            return False
        entry[1].cancel()
        return True

    def _fire(self, network: str, token: int, timestamp_until: int) -> None:
        with self._lock:
            entry = self._timers.get(network)
            if entry is None or entry[0] != token:
                return
            del self._timers[network]

        try:
            self._on_expire(network, timestamp_until)
        except Exception as e:
            logger.error(f"Freeze expiry handler failed for '{network}': {e}", exc_info=True)
