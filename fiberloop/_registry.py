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
Callback registry.

Every unit of work scheduled on a loop (defers, timers and I/O watchers)
is a Callback owned by the loop's CallbackRegistry. The registry assigns
ids, tracks the enabled/canceled/referenced flags and keeps a running
count of the callbacks that keep the loop alive, so the driver can decide
in O(1) whether any work remains.
"""

import itertools
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ._errors import InvalidCallbackError

__all__ = ['CallbackKind', 'Callback', 'CallbackRegistry']


class CallbackKind(Enum):
    """Kind of scheduled work."""
    DEFER = 'defer'
    DELAY = 'delay'
    REPEAT = 'repeat'
    READABLE = 'readable'
    WRITABLE = 'writable'

    @property
    def is_timer(self) -> bool:
        return self is CallbackKind.DELAY or self is CallbackKind.REPEAT

    @property
    def is_watcher(self) -> bool:
        return self is CallbackKind.READABLE or self is CallbackKind.WRITABLE


class Callback:
    """A registered unit of work.

    Attributes:
        id: Loop-scoped identifier, never reused.
        kind: The CallbackKind.
        callback: The callable to invoke.
        args: Extra positional arguments appended on invocation.
        enabled: Whether the callback participates in readiness checks.
        canceled: One-way latch; a canceled callback never runs again.
        referenced: Whether the callback keeps run() alive.
        interval: Seconds between firings (timers only).
        due: Monotonic time of the next firing (timers only).
        sequence: Insertion sequence of the live timer entry, or None when
            the callback has no entry in the timer queue.
        handle: The watched handle (watchers only).
        fd: File descriptor of the watched handle (watchers only).
    """

    __slots__ = (
        'id', 'kind', 'callback', 'args',
        'enabled', 'canceled', 'referenced',
        'interval', 'due', 'sequence',
        'handle', 'fd',
    )

    def __init__(self, callback_id: int, kind: CallbackKind,
                 callback: Callable, args: Tuple[Any, ...] = ()):
        self.id = callback_id
        self.kind = kind
        self.callback = callback
        self.args = args
        self.enabled = True
        self.canceled = False
        self.referenced = True
        self.interval = None
        self.due = None
        self.sequence = None
        self.handle = None
        self.fd = None

    @property
    def active(self) -> bool:
        """True if this callback keeps the loop alive."""
        return self.enabled and self.referenced and not self.canceled

    def __repr__(self):
        info = [self.kind.value, f'id={self.id}']
        if self.canceled:
            info.append('canceled')
        elif not self.enabled:
            info.append('disabled')
        if not self.referenced:
            info.append('unreferenced')
        if self.interval is not None:
            info.append(f'interval={self.interval!r}')
        if self.fd is not None:
            info.append(f'fd={self.fd}')
        return f'<Callback {" ".join(info)}>'


class CallbackRegistry:
    """Id-keyed store of a loop's callbacks."""

    def __init__(self):
        self._callbacks: Dict[int, Callback] = {}
        self._ids = itertools.count(1)
        self._active = 0

    def register(self, kind: CallbackKind, callback: Callable,
                 args: Tuple[Any, ...] = (), **payload) -> Callback:
        """Create an enabled, referenced callback with a fresh id.

        Args:
            kind: The CallbackKind.
            callback: Callable to invoke when the callback fires.
            args: Extra positional arguments for the callable.
            **payload: Kind-specific attributes (interval, handle, fd).

        Raises:
            TypeError: If callback is not callable.
        """
        if not callable(callback):
            raise TypeError(f'A callable object is required, got {callback!r}')
        cb = Callback(next(self._ids), kind, callback, args)
        for name, value in payload.items():
            setattr(cb, name, value)
        self._callbacks[cb.id] = cb
        self._active += 1
        return cb

    def get(self, callback_id: int) -> Callback:
        """Return a live callback.

        Raises:
            InvalidCallbackError: If the id is unknown or canceled.
        """
        cb = self._callbacks.get(callback_id)
        if cb is None:
            raise InvalidCallbackError(callback_id)
        return cb

    def cancel(self, callback_id: int) -> Optional[Callback]:
        """Cancel and forget a callback.

        Idempotent: unknown or already canceled ids return None.
        """
        cb = self._callbacks.pop(callback_id, None)
        if cb is None:
            return None
        if cb.active:
            self._active -= 1
        cb.canceled = True
        return cb

    def set_enabled(self, cb: Callback, enabled: bool) -> bool:
        """Set the enabled flag; return True if it changed."""
        if cb.canceled or cb.enabled == enabled:
            return False
        self._update(cb, 'enabled', enabled)
        return True

    def set_referenced(self, cb: Callback, referenced: bool) -> bool:
        """Set the referenced flag; return True if it changed."""
        if cb.canceled or cb.referenced == referenced:
            return False
        self._update(cb, 'referenced', referenced)
        return True

    def _update(self, cb, name, value):
        was_active = cb.active
        setattr(cb, name, value)
        self._active += cb.active - was_active

    def has_active(self) -> bool:
        """True if any enabled, referenced callback remains."""
        return self._active > 0

    def identifiers(self) -> List[int]:
        return list(self._callbacks)

    def clear(self) -> List[Callback]:
        """Cancel every callback; return what was canceled."""
        canceled = list(self._callbacks.values())
        for cb in canceled:
            cb.canceled = True
        self._callbacks.clear()
        self._active = 0
        return canceled

    def __contains__(self, callback_id) -> bool:
        return callback_id in self._callbacks

    def __iter__(self) -> Iterator[Callback]:
        return iter(list(self._callbacks.values()))

    def __len__(self) -> int:
        return len(self._callbacks)
