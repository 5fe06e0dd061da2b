# Copyright 2026 Benoit Chesneau
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Timer queue for delay and repeat callbacks.

Entries live in a min-heap of (due, sequence, callback) tuples. The
sequence number is unique per insertion, so ties on ``due`` fire in
insertion order and the callback itself is never compared.

A callback owns at most one live entry: the one whose sequence matches
``callback.sequence``. Cancelling, disabling or rescheduling a callback
only resets that attribute; the stale heap entry is dropped the next time
it reaches the top of the heap.
"""

import heapq
import itertools
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from ._registry import Callback

__all__ = ['TimerQueue']

TimerEntry = Tuple[float, int, Callback]


class TimerQueue:
    """Orders timers by due time on a monotonic clock."""

    __slots__ = ('_heap', '_sequence', '_clock', '_live')

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._heap: List[TimerEntry] = []
        self._sequence = itertools.count()
        self._clock = clock if clock is not None else time.monotonic
        self._live = 0

    def time(self) -> float:
        """Return the current time of the queue's clock."""
        return self._clock()

    def schedule_delay(self, callback: Callback, seconds: float) -> None:
        """Insert a one-shot entry ``seconds`` from now."""
        callback.interval = _check_interval(seconds)
        self.schedule_at(callback, self.time() + callback.interval)

    def schedule_repeat(self, callback: Callback, seconds: float) -> None:
        """Insert a recurring entry firing every ``seconds``."""
        callback.interval = _check_interval(seconds)
        self.schedule_at(callback, self.time() + callback.interval)

    def schedule_at(self, callback: Callback, when: float) -> None:
        """(Re)schedule a callback at an absolute time."""
        self.invalidate(callback)
        seq = next(self._sequence)
        callback.due = when
        callback.sequence = seq
        heapq.heappush(self._heap, (when, seq, callback))
        self._live += 1

    def invalidate(self, callback: Callback) -> None:
        """Forget the callback's live entry, if any."""
        if callback.sequence is not None:
            callback.sequence = None
            self._live -= 1

    def due_entries(self, now: Optional[float] = None) -> Deque[TimerEntry]:
        """Pop every live entry due at or before ``now``, in order."""
        if now is None:
            now = self.time()
        heap = self._heap
        due = deque()
        while heap and heap[0][0] <= now:
            entry = heapq.heappop(heap)
            callback = entry[2]
            if callback.sequence != entry[1]:
                continue
            callback.sequence = None
            self._live -= 1
            due.append(entry)
        return due

    def restore(self, entries) -> None:
        """Put popped but unfired entries back into the queue."""
        for entry in entries:
            when, seq, callback = entry
            if (callback.canceled or not callback.enabled
                    or callback.sequence is not None):
                continue
            callback.due = when
            callback.sequence = seq
            heapq.heappush(self._heap, entry)
            self._live += 1

    def next_deadline(self, now: Optional[float] = None) -> Optional[float]:
        """Seconds until the earliest live entry, or None if empty."""
        heap = self._heap
        # Lazy cleanup - pop stale entries
        while heap and heap[0][2].sequence != heap[0][1]:
            heapq.heappop(heap)
        if not heap:
            return None
        if now is None:
            now = self.time()
        return max(0.0, heap[0][0] - now)

    def clear(self) -> None:
        for _, _, callback in self._heap:
            callback.sequence = None
        self._heap.clear()
        self._live = 0

    def __len__(self) -> int:
        return self._live

    def __bool__(self) -> bool:
        return self._live > 0


def _check_interval(seconds) -> float:
    seconds = float(seconds)
    if not seconds >= 0:
        raise ValueError(f'Interval must be non-negative, got {seconds!r}')
    return seconds
