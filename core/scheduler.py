"""Single-threaded event dispatcher with cancellable timers

HID reports, socket messages and timer expirations all arrive on different
threads. Everything that touches pendant state is funnelled through one
`Dispatcher` thread so handlers never run concurrently.
"""
import heapq
import itertools
import logging
import threading
import time
from queue import Queue, Empty

LOG = logging.getLogger("cncpad.dispatcher")

# Upper bound on how long the loop sleeps without re-checking the stop flag
MAX_WAIT_S = 0.1


class TimerHandle:
    def __init__(self, when: float, fn, args):
        self.when = when
        self._fn = fn
        self._args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def _run(self):
        self._fn(*self._args)


class Dispatcher:
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._q = Queue()
        self._timers = []
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self._t = None
        self._stop = threading.Event()

    def now(self) -> float:
        return self._clock()

    def post(self, fn, *args):
        """Queue `fn(*args)` to run on the dispatcher thread."""
        self._q.put((fn, args))

    def call_later(self, delay: float, fn, *args) -> TimerHandle:
        handle = TimerHandle(self._clock() + max(0.0, delay), fn, args)
        with self._lock:
            heapq.heappush(self._timers, (handle.when, next(self._seq), handle))
        # wake the loop so it recomputes its sleep
        self._q.put(None)
        return handle

    def pending_timers(self):
        with self._lock:
            return [h for _, _, h in self._timers if not h.cancelled]

    def start(self):
        self._stop.clear()
        self._t = threading.Thread(target=self._loop, name="Dispatcher", daemon=True)
        self._t.start()

    def stop(self):
        self._stop.set()
        self._q.put(None)
        if self._t:
            self._t.join(timeout=1.0)

    def run_pending(self):
        """Run every queued callback and every timer that is due, then return."""
        while True:
            try:
                item = self._q.get_nowait()
            except Empty:
                break
            self._run_item(item)
        self._run_due_timers()

    def _next_delay(self) -> float:
        with self._lock:
            while self._timers and self._timers[0][2].cancelled:
                heapq.heappop(self._timers)
            if not self._timers:
                return MAX_WAIT_S
            return max(0.0, min(MAX_WAIT_S, self._timers[0][0] - self._clock()))

    def _run_due_timers(self):
        while True:
            with self._lock:
                if not self._timers or self._timers[0][0] > self._clock():
                    return
                _, _, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            try:
                handle._run()
            except Exception:
                LOG.exception("timer callback failed")

    def _run_item(self, item):
        if item is None:
            return
        fn, args = item
        try:
            fn(*args)
        except Exception:
            LOG.exception("dispatched callback failed")

    def _loop(self):
        while not self._stop.is_set():
            try:
                item = self._q.get(timeout=self._next_delay())
                self._run_item(item)
            except Empty:
                pass
            self._run_due_timers()
