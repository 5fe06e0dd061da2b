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

"""I/O reactor - readiness polling for watched handles.

The reactor never reads or writes; it only reports which readable and
writable watchers have a ready handle. Readiness is level-triggered: a
watcher is reported on every poll for as long as its handle stays ready.

Any number of watchers may share a handle, in either direction. The
selector sees one registration per file descriptor whose event mask is
the union of the directions currently watched on it.

Example usage:

    reactor = Reactor()
    reactor.watch(callback)          # callback.kind is READABLE/WRITABLE
    for ready in reactor.poll(0.5):
        ...
    reactor.unwatch(callback)
"""

import selectors
import time
from typing import Dict, List, Optional

from ._mode import new_selector
from ._registry import Callback, CallbackKind

__all__ = ['Reactor', 'handle_to_fd']


def handle_to_fd(handle) -> int:
    """Return the file descriptor of an int or an object with fileno().

    Raises:
        ValueError: If the descriptor is negative (e.g. a closed socket).
        TypeError: If the handle is neither.
    """
    if isinstance(handle, int):
        fd = handle
    else:
        try:
            fd = int(handle.fileno())
        except (AttributeError, TypeError, ValueError):
            raise TypeError(f'Invalid handle: {handle!r}') from None
    if fd < 0:
        raise ValueError(f'Invalid file descriptor: {fd}')
    return fd


class Reactor:
    """Polls watched file descriptors with a selectors selector."""

    def __init__(self, selector: Optional[selectors.BaseSelector] = None):
        """Initialize the reactor.

        Args:
            selector: Selector to poll with. Defaults to one built by
                new_selector() for the configured backend.
        """
        self._selector = selector if selector is not None else new_selector()
        self._by_fd: Dict[int, Dict[int, Callback]] = {}
        self._count = 0

    @property
    def selector(self) -> selectors.BaseSelector:
        return self._selector

    def watch(self, callback: Callback) -> None:
        """Start reporting readiness for a watcher."""
        watchers = self._by_fd.setdefault(callback.fd, {})
        if callback.id in watchers:
            return
        watchers[callback.id] = callback
        self._count += 1
        try:
            self._update(callback.fd)
        except BaseException:
            # The selector rejected the fd; forget the watcher again
            del watchers[callback.id]
            self._count -= 1
            if not watchers:
                del self._by_fd[callback.fd]
            raise

    def unwatch(self, callback: Callback) -> bool:
        """Stop reporting readiness for a watcher.

        Returns:
            True if the watcher was being polled.
        """
        watchers = self._by_fd.get(callback.fd)
        if not watchers or watchers.pop(callback.id, None) is None:
            return False
        self._count -= 1
        if not watchers:
            del self._by_fd[callback.fd]
        self._update(callback.fd)
        return True

    def _update(self, fd):
        """Sync the selector registration of fd with its watchers."""
        events = 0
        for cb in self._by_fd.get(fd, {}).values():
            if cb.kind is CallbackKind.READABLE:
                events |= selectors.EVENT_READ
            else:
                events |= selectors.EVENT_WRITE

        selector = self._selector
        try:
            key = selector.get_key(fd)
        except KeyError:
            key = None

        if key is None:
            if events:
                selector.register(fd, events)
        elif not events:
            selector.unregister(fd)
        elif key.events != events:
            selector.modify(fd, events)

    def poll(self, timeout: Optional[float]) -> List[Callback]:
        """Wait for watched handles to become ready.

        Args:
            timeout: Seconds to wait; None blocks until a handle is ready,
                0 returns immediately.

        Returns:
            Ready watchers in registration order.
        """
        if not self._count:
            # Nothing to select on; just honour the timeout
            if timeout:
                time.sleep(timeout)
            return []

        ready = []
        for key, mask in self._selector.select(timeout):
            for cb in self._by_fd.get(key.fd, {}).values():
                if cb.kind is CallbackKind.READABLE:
                    if mask & selectors.EVENT_READ:
                        ready.append(cb)
                elif mask & selectors.EVENT_WRITE:
                    ready.append(cb)
        ready.sort(key=lambda cb: cb.id)
        return ready

    def close(self) -> None:
        """Release the selector."""
        self._by_fd.clear()
        self._count = 0
        self._selector.close()

    def __len__(self) -> int:
        return self._count
