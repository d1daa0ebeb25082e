import time
import threading
from typing import Any, Callable, Optional


class Clock:
    """
    Wall-clock source for launch timestamps, inter-launch delays and the
    shutdown cooldown. Tests substitute a virtual clock with the same methods.
    """

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, interrupt: Optional[threading.Event] = None) -> bool:
        """
        Suspends the calling thread.

        :param seconds: How long to wait.
        :param interrupt: Optional event that ends the wait early when set.
        :return bool: True if the full duration elapsed, False if interrupted.
        """
        if interrupt is None:
            time.sleep(seconds)
            return True
        return not interrupt.wait(seconds)

    def call_later(self, seconds: float, callback: Callable[..., Any], *args: Any) -> threading.Timer:
        """Runs `callback(*args)` on a daemon timer thread. The returned timer can be cancelled."""
        timer = threading.Timer(seconds, callback, args=args)
        timer.daemon = True
        timer.start()
        return timer
