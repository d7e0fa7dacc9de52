"""
Keyed, cancelable timers driven from the main loop.

Every debounce, cooldown release, ack timeout, settle and resync in the
bridge is a task in a TimerService. Tasks are keyed: scheduling under a key
that already has a pending task replaces it, so one key never has more than
one outstanding task. Nothing fires on its own; the owner calls run_due()
from its main loop, which keeps all handlers on one thread.
"""

import heapq
import itertools
import time
from typing import Callable, Hashable, Optional

from decksync.logging_config import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]
TimerCallback = Callable[[], None]


class TimerService:
    """
    Scheduler for delayed callbacks with cancel-and-replace semantics.

    Uses a heap ordered by (due time, scheduling sequence) with lazy
    invalidation: replaced or canceled entries stay in the heap and are
    skipped when popped.
    """

    def __init__(self, clock: Clock = time.monotonic):
        """
        Initialize the timer service.

        Args:
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self._clock = clock
        self._heap: list[tuple[float, int, Hashable]] = []
        self._tasks: dict[Hashable, tuple[int, TimerCallback]] = {}
        self._sequence = itertools.count()

    def now(self) -> float:
        """Current time from the service clock."""
        return self._clock()

    def schedule(self, key: Hashable, delay: float, callback: TimerCallback) -> None:
        """
        Arm a task, replacing any pending task under the same key.

        Args:
            key: Identity of the task (e.g., ("ack", control))
            delay: Seconds from now
            callback: Zero-argument callable
        """
        seq = next(self._sequence)
        due = self._clock() + max(0.0, delay)
        self._tasks[key] = (seq, callback)
        heapq.heappush(self._heap, (due, seq, key))

    def cancel(self, key: Hashable) -> bool:
        """
        Cancel the pending task under key.

        Returns:
            True if a task was pending
        """
        return self._tasks.pop(key, None) is not None

    def cancel_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """
        Cancel every pending task whose key matches predicate.

        Returns:
            Number of tasks canceled
        """
        doomed = [key for key in self._tasks if predicate(key)]
        for key in doomed:
            del self._tasks[key]
        return len(doomed)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._tasks

    def pending_count(self) -> int:
        return len(self._tasks)

    def next_due_in(self) -> Optional[float]:
        """
        Seconds until the next live task is due (0.0 if overdue).

        Returns:
            None when nothing is pending
        """
        self._discard_dead()
        if not self._heap:
            return None
        return max(0.0, self._heap[0][0] - self._clock())

    def run_due(self) -> int:
        """
        Fire every task that is due, in due-time order.

        Tasks scheduled by a callback with zero delay fire in the same call.
        A failing callback is logged and the remaining tasks still run.

        Returns:
            Number of callbacks executed
        """
        fired = 0
        while True:
            self._discard_dead()
            if not self._heap or self._heap[0][0] > self._clock():
                return fired

            _, seq, key = heapq.heappop(self._heap)
            _, callback = self._tasks.pop(key)
            fired += 1
            try:
                callback()
            except Exception as e:
                logger.exception(f"Error in timer task {key!r}: {e}")

    def clear(self) -> None:
        """Drop every pending task."""
        self._tasks.clear()
        self._heap.clear()

    def _discard_dead(self) -> None:
        """Pop heap entries that were canceled or replaced."""
        while self._heap:
            _, seq, key = self._heap[0]
            task = self._tasks.get(key)
            if task is not None and task[0] == seq:
                return
            heapq.heappop(self._heap)
