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
Single-threaded cooperative event loop.

This module provides the EventLoop class that multiplexes deferred
callbacks, timers and I/O watchers, and hands out Suspensions that let
fibers wait on loop events.

Architecture:
- One loop object per logical loop, passed explicitly to whoever
  schedules work (no process-wide singleton)
- CallbackRegistry owns every callback and its id
- TimerQueue orders delay/repeat callbacks on a monotonic clock
- Reactor polls watched handles through a selectors selector
- Callback failures propagate out of run() unless an error handler is set

Each tick runs, in this fixed order:
1. The defers that were queued when the tick began (FIFO)
2. The timers due at or before the start of the timer phase
3. One reactor poll, blocking until the next timer deadline
4. The watchers the poll reported ready
"""

from collections import deque
from typing import Any, Callable, Deque, List, Optional

from ._fiber import Fiber, Suspension
from ._log import logger
from ._mode import is_debug_mode, new_selector
from ._reactor import Reactor, handle_to_fd
from ._registry import Callback, CallbackKind, CallbackRegistry
from ._timers import TimerQueue

__all__ = ['EventLoop']


class EventLoop:
    """Cooperative event loop for defers, timers and I/O watchers.

    Every callback receives its own id as its first argument, which lets
    it cancel or disable itself. Watcher callbacks also receive the
    watched handle:

        loop = EventLoop()
        loop.defer(lambda cid: print('soon'))
        loop.delay(0.5, lambda cid: print('later'))
        loop.on_readable(sock, lambda cid, sock: ...)
        loop.run()

    run() returns once no enabled, referenced callback remains.
    """

    # Use __slots__ for faster attribute access and reduced memory
    __slots__ = (
        '_registry', '_timers', '_reactor', '_defers',
        '_running', '_stopping', '_closed', '_until',
        '_error_handler', '_debug',
        'slow_callback_duration',
    )

    def __init__(self, selector=None, *, backend=None,
                 clock: Optional[Callable[[], float]] = None,
                 debug: Optional[bool] = None):
        """Initialize the event loop.

        Args:
            selector: selectors.BaseSelector the reactor polls with. Built
                from ``backend`` when omitted.
            backend: PollBackend (or its name) used when no selector is
                given; defaults to FIBERLOOP_BACKEND or the platform default.
            clock: Monotonic clock for timers, mostly useful in tests.
            debug: Enable debug mode; defaults to is_debug_mode().
        """
        if selector is None:
            selector = new_selector(backend)
        self._registry = CallbackRegistry()
        self._timers = TimerQueue(clock)
        self._reactor = Reactor(selector)
        self._defers: Deque[Callback] = deque()

        # State
        self._running = False
        self._stopping = False
        self._closed = False
        self._until = None

        self._error_handler = None

        # Debug mode
        self._debug = is_debug_mode() if debug is None else bool(debug)
        self.slow_callback_duration = 0.1

    # ========================================================================
    # Running and stopping the event loop
    # ========================================================================

    def run(self) -> None:
        """Run until no enabled, referenced callback remains.

        An exception raised by a callback propagates out of run(), unless an
        error handler is installed. Callbacks not reached in the failing tick
        stay scheduled for the next run().
        """
        self._run()

    def _run(self, until: Optional[Callable[[], bool]] = None) -> None:
        self._check_closed()
        self._check_running()

        self._running = True
        self._until = until
        registry = self._registry
        if self._debug:
            logger.debug('%r: running', self)
        try:
            while not self._stopping and registry.has_active():
                if until is not None and until():
                    break
                self._run_once()
        finally:
            self._stopping = False
            self._running = False
            self._until = None
            if self._debug:
                logger.debug('%r: stopped', self)

    def stop(self) -> None:
        """Make run() return at the start of the next tick."""
        if self._running:
            self._stopping = True

    def is_running(self) -> bool:
        """Return True if the event loop is running."""
        return self._running

    def is_closed(self) -> bool:
        """Return True if the event loop is closed."""
        return self._closed

    def close(self) -> None:
        """Cancel every callback and release the selector."""
        if self._running:
            raise RuntimeError('Cannot close a running event loop')
        if self._closed:
            return

        self._closed = True
        self._registry.clear()
        self._timers.clear()
        self._defers.clear()
        self._reactor.close()
        if self._debug:
            logger.debug('%r: closed', self)

    def time(self) -> float:
        """Return the current time according to the loop's clock."""
        return self._timers.time()

    # ========================================================================
    # Scheduling callbacks
    # ========================================================================

    def defer(self, callback: Callable, *args: Any) -> int:
        """Run ``callback(id, *args)`` on the next tick."""
        self._check_closed()
        cb = self._registry.register(CallbackKind.DEFER, callback, args)
        self._defers.append(cb)
        return cb.id

    def delay(self, seconds: float, callback: Callable, *args: Any) -> int:
        """Run ``callback(id, *args)`` once, ``seconds`` from now."""
        self._check_closed()
        cb = self._registry.register(CallbackKind.DELAY, callback, args)
        try:
            self._timers.schedule_delay(cb, seconds)
        except (TypeError, ValueError):
            self._registry.cancel(cb.id)
            raise
        return cb.id

    def repeat(self, interval: float, callback: Callable, *args: Any) -> int:
        """Run ``callback(id, *args)`` every ``interval`` seconds until canceled."""
        self._check_closed()
        cb = self._registry.register(CallbackKind.REPEAT, callback, args)
        try:
            self._timers.schedule_repeat(cb, interval)
        except (TypeError, ValueError):
            self._registry.cancel(cb.id)
            raise
        return cb.id

    def on_readable(self, handle, callback: Callable, *args: Any) -> int:
        """Run ``callback(id, handle, *args)`` whenever handle is readable."""
        return self._add_watcher(CallbackKind.READABLE, handle, callback, args)

    def on_writable(self, handle, callback: Callable, *args: Any) -> int:
        """Run ``callback(id, handle, *args)`` whenever handle is writable."""
        return self._add_watcher(CallbackKind.WRITABLE, handle, callback, args)

    def _add_watcher(self, kind, handle, callback, args):
        self._check_closed()
        fd = handle_to_fd(handle)
        cb = self._registry.register(kind, callback, args, handle=handle, fd=fd)
        try:
            self._reactor.watch(cb)
        except (OSError, ValueError):
            self._registry.cancel(cb.id)
            raise
        return cb.id

    # ========================================================================
    # Managing callbacks
    # ========================================================================

    def cancel(self, callback_id: int) -> None:
        """Cancel a callback; unknown or already canceled ids are ignored."""
        cb = self._registry.cancel(callback_id)
        if cb is not None:
            self._detach(cb)

    def enable(self, callback_id: int) -> int:
        """Re-enable a disabled callback.

        Timers restart their full interval from now; defers run on the
        next tick.

        Raises:
            InvalidCallbackError: If the id is unknown or canceled.
        """
        cb = self._registry.get(callback_id)
        if self._registry.set_enabled(cb, True):
            try:
                self._attach(cb)
            except BaseException:
                self._registry.set_enabled(cb, False)
                raise
        return callback_id

    def disable(self, callback_id: int) -> int:
        """Disable a callback without discarding it.

        Raises:
            InvalidCallbackError: If the id is unknown or canceled.
        """
        cb = self._registry.get(callback_id)
        if self._registry.set_enabled(cb, False):
            self._detach(cb)
        return callback_id

    def reference(self, callback_id: int) -> int:
        """Make a callback keep run() alive again."""
        self._registry.set_referenced(self._registry.get(callback_id), True)
        return callback_id

    def unreference(self, callback_id: int) -> int:
        """Let run() return even while this callback is pending."""
        self._registry.set_referenced(self._registry.get(callback_id), False)
        return callback_id

    def _attach(self, cb):
        kind = cb.kind
        if kind is CallbackKind.DEFER:
            self._defers.append(cb)
        elif kind.is_timer:
            self._timers.schedule_at(cb, self.time() + cb.interval)
        else:
            self._reactor.watch(cb)

    def _detach(self, cb):
        kind = cb.kind
        if kind is CallbackKind.DEFER:
            try:
                self._defers.remove(cb)
            except ValueError:
                pass
        elif kind.is_timer:
            self._timers.invalidate(cb)
        else:
            self._reactor.unwatch(cb)

    # ========================================================================
    # Introspection
    # ========================================================================

    def get_identifiers(self) -> List[int]:
        """Return the ids of all live callbacks, oldest first."""
        return self._registry.identifiers()

    def get_type(self, callback_id: int) -> CallbackKind:
        return self._registry.get(callback_id).kind

    def is_enabled(self, callback_id: int) -> bool:
        return self._registry.get(callback_id).enabled

    def is_referenced(self, callback_id: int) -> bool:
        return self._registry.get(callback_id).referenced

    def __contains__(self, callback_id) -> bool:
        return callback_id in self._registry

    # ========================================================================
    # Fibers
    # ========================================================================

    def get_suspension(self) -> Suspension:
        """Return a Suspension bound to the current fiber (or main context)."""
        return Suspension(self, Fiber.get_current())

    # ========================================================================
    # Error handling
    # ========================================================================

    def set_error_handler(self, handler: Optional[Callable[[Exception], Any]]):
        """Route callback exceptions to ``handler(exc)`` instead of run().

        Pass None to restore propagation. Exceptions raised by the handler
        itself propagate out of run().
        """
        if handler is not None and not callable(handler):
            raise TypeError(f'A callable object or None is required, got {handler!r}')
        old, self._error_handler = self._error_handler, handler
        return old

    def get_error_handler(self):
        """Get the error handler."""
        return self._error_handler

    # ========================================================================
    # Debug mode
    # ========================================================================

    def get_debug(self) -> bool:
        """Return the debug mode setting."""
        return self._debug

    def set_debug(self, enabled: bool) -> None:
        """Set the debug mode."""
        self._debug = bool(enabled)

    # ========================================================================
    # Internal methods
    # ========================================================================

    def _run_once(self):
        """Run one tick of the event loop."""
        registry = self._registry
        timers = self._timers
        invoke = self._invoke

        # Defers queued during this drain belong to the next tick
        batch, self._defers = self._defers, deque()
        try:
            while batch:
                cb = batch.popleft()
                if cb.canceled or not cb.enabled:
                    continue
                registry.cancel(cb.id)
                invoke(cb, cb.id)
        finally:
            if batch:
                batch.extend(self._defers)
                self._defers = batch

        now = timers.time()
        due = timers.due_entries(now)
        try:
            while due:
                cb = due.popleft()[2]
                if cb.canceled or not cb.enabled:
                    continue
                if cb.kind is CallbackKind.DELAY:
                    registry.cancel(cb.id)
                    invoke(cb, cb.id)
                    continue
                try:
                    invoke(cb, cb.id)
                finally:
                    # Not rescheduled if canceled, disabled or re-enabled
                    if not cb.canceled and cb.enabled and cb.sequence is None:
                        timers.schedule_at(cb, now + cb.interval)
        finally:
            if due:
                timers.restore(due)

        # Calculate timeout based on next timer
        if (self._defers or self._stopping or not registry.has_active()
                or (self._until is not None and self._until())):
            timeout = 0
        else:
            timeout = timers.next_deadline()

        # Poll for events
        for cb in self._reactor.poll(timeout):
            if cb.canceled or not cb.enabled:
                continue
            invoke(cb, cb.id, cb.handle)

    def _invoke(self, cb, *args):
        """Call a callback, routing failures to the error handler."""
        debug = self._debug
        if debug:
            t0 = self.time()
        try:
            cb.callback(*args, *cb.args)
        except Exception as exc:
            handler = self._error_handler
            if handler is None:
                raise
            handler(exc)
        finally:
            if debug:
                dt = self.time() - t0
                if dt >= self.slow_callback_duration:
                    logger.warning('Executing %r took %.3f seconds', cb, dt)

    def _check_closed(self):
        """Raise an error if the loop is closed."""
        if self._closed:
            raise RuntimeError('Event loop is closed')

    def _check_running(self):
        """Raise an error if the loop is already running."""
        if self._running:
            raise RuntimeError('This event loop is already running')

    def __repr__(self):
        return (
            f'<{type(self).__name__} running={self._running} '
            f'closed={self._closed} debug={self._debug}>'
        )
