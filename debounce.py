import asyncio
import threading
from typing import Any, Callable, Optional

# schedule(delay, callback) -> handle with .cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]


def asyncio_scheduler(delay: float, callback: Callable[[], None]):
    return asyncio.get_running_loop().call_later(delay, callback)


def thread_scheduler(delay: float, callback: Callable[[], None]):
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


def default_scheduler(delay: float, callback: Callable[[], None]):
    """Use the running event loop when there is one, otherwise a timer thread."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return thread_scheduler(delay, callback)
    return loop.call_later(delay, callback)


class Debouncer:
    """Run `callback` once no new call has arrived for `delay` seconds.

    Each call cancels the pending one, so only the last arguments are used.
    """

    def __init__(self, delay: float, callback: Callable[..., None], schedule: Optional[Scheduler] = None):
        self.delay = delay
        self.callback = callback
        self.schedule = schedule or default_scheduler
        self._handle = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def call(self, *args, **kwargs) -> None:
        with self._lock:
            self._cancel()
            handle = None

            def fire():
                with self._lock:
                    if self._handle is not handle:
                        return
                    self._handle = None
                self.callback(*args, **kwargs)

            handle = self._handle = self.schedule(self.delay, fire)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def cancel(self) -> None:
        with self._lock:
            self._cancel()
