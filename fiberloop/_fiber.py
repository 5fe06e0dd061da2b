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
Fibers - stackful coroutines on top of greenlet.

A Fiber runs a plain function on its own greenlet, so the body can call
Fiber.suspend() from any depth of its call stack. Control always returns
to whoever drove the fiber last (start(), resume() or throw()), which is
what makes fibers nest: suspending an inner fiber hands control back to
the outer fiber's body, not to the event loop.

Architecture:
- Each start/resume/throw re-parents the fiber's greenlet to the caller
- Fiber.suspend() switches to that parent, passing the suspend value
- Returning from the body ends the greenlet; the parent receives the
  return value
- Exceptions escaping the body are raised in the parent by greenlet

Suspension wires a fiber to the event loop: the loop callback that
resumes a Suspension schedules the fiber's continuation as a defer.
"""

from enum import Enum
from typing import Any, Callable, Optional

import greenlet

from ._errors import FiberError

__all__ = ['FiberState', 'Fiber', 'Suspension']


class FiberState(Enum):
    """Fiber lifecycle state."""
    CREATED = 'created'
    RUNNING = 'running'
    SUSPENDED = 'suspended'
    TERMINATED = 'terminated'


class _FiberGreenlet(greenlet.greenlet):
    """Greenlet carrying a back reference to its fiber."""

    def __init__(self, run, fiber):
        super().__init__(run)
        self.fiber = fiber


class Fiber:
    """An independently resumable execution context.

    Usage:
        def body(x):
            y = Fiber.suspend(x * 2)
            return x + y

        fiber = Fiber(body)
        fiber.start(1)      # -> 2, the suspend value
        fiber.resume(10)    # -> 11, the return value
    """

    __slots__ = ('_body', '_state', '_greenlet', '_return', '_failed')

    def __init__(self, body: Callable[..., Any]):
        if not callable(body):
            raise TypeError(f'Fiber body must be callable, got {body!r}')
        self._body = body
        self._state = FiberState.CREATED
        self._greenlet = None
        self._return = None
        self._failed = False

    @property
    def state(self) -> FiberState:
        return self._state

    def start(self, *args, **kwargs):
        """Run the body until it suspends, returns or raises.

        Returns:
            The value passed to the first Fiber.suspend(), or the body's
            return value if it finished without suspending.

        Raises:
            FiberError: If the fiber was already started.
        """
        if self._state is not FiberState.CREATED:
            raise FiberError(f'Cannot start a fiber that is {self._state.value}')
        self._greenlet = _FiberGreenlet(self._run, self)
        return self._enter(self._greenlet.switch, *args, **kwargs)

    def resume(self, value=None):
        """Continue a suspended fiber; ``value`` becomes suspend()'s result.

        Returns:
            The value of the next suspend, or the body's return value.

        Raises:
            FiberError: If the fiber is not suspended.
        """
        self._check_suspended('resume')
        return self._enter(self._greenlet.switch, value)

    def throw(self, exc: BaseException):
        """Raise ``exc`` inside a suspended fiber at its suspend point.

        Returns:
            The value of the next suspend, or the body's return value if
            the body handled the exception and finished.
        """
        self._check_suspended('throw into')
        return self._enter(self._greenlet.throw, exc)

    def _enter(self, switch, *args, **kwargs):
        # Suspend and termination hand control back to whoever entered last
        self._greenlet.parent = greenlet.getcurrent()
        self._state = FiberState.RUNNING
        return switch(*args, **kwargs)

    def _run(self, *args, **kwargs):
        try:
            self._return = self._body(*args, **kwargs)
        except BaseException:
            self._failed = True
            raise
        finally:
            self._state = FiberState.TERMINATED
            self._body = None
        return self._return

    def _check_suspended(self, action):
        if self._state is not FiberState.SUSPENDED:
            raise FiberError(f'Cannot {action} a fiber that is {self._state.value}')

    def get_return(self):
        """Return the body's return value.

        Raises:
            FiberError: If the fiber has not terminated, or terminated by
                raising.
        """
        if self._state is not FiberState.TERMINATED:
            raise FiberError(
                f'Cannot get the return value of a fiber that is {self._state.value}'
            )
        if self._failed:
            raise FiberError('The fiber raised an exception instead of returning')
        return self._return

    def is_started(self) -> bool:
        return self._state is not FiberState.CREATED

    def is_suspended(self) -> bool:
        return self._state is FiberState.SUSPENDED

    def is_running(self) -> bool:
        return self._state is FiberState.RUNNING

    def is_terminated(self) -> bool:
        return self._state is FiberState.TERMINATED

    @staticmethod
    def get_current() -> Optional['Fiber']:
        """Return the fiber whose body is executing, or None."""
        return getattr(greenlet.getcurrent(), 'fiber', None)

    @staticmethod
    def suspend(value=None):
        """Suspend the current fiber.

        Args:
            value: Returned to the caller of start()/resume()/throw().

        Returns:
            The value given to the resume() that continues this fiber.

        Raises:
            FiberError: If called outside of a fiber.
        """
        fiber = Fiber.get_current()
        if fiber is None:
            raise FiberError('Cannot suspend outside of a fiber')
        fiber._state = FiberState.SUSPENDED
        return fiber._greenlet.parent.switch(value)

    def __repr__(self):
        return f'<Fiber {self._state.value}>'


class Suspension:
    """One-shot bridge between a waiting context and a loop callback.

    Created by EventLoop.get_suspension(). A suspension created inside a
    fiber suspends that fiber and is resumed from a loop callback; one
    created outside of any fiber runs the loop until it is resumed.

    Usage (inside a fiber):
        suspension = loop.get_suspension()
        loop.delay(0.1, lambda cid: suspension.resume('timeout'))
        value = suspension.suspend()    # 'timeout'
    """

    __slots__ = ('_loop', '_fiber', '_pending', '_outcome')

    def __init__(self, loop, fiber: Optional[Fiber] = None):
        self._loop = loop
        self._fiber = fiber
        self._pending = False
        self._outcome = None

    @property
    def fiber(self) -> Optional[Fiber]:
        return self._fiber

    def is_pending(self) -> bool:
        return self._pending

    def suspend(self):
        """Wait until resume() or throw() is called.

        Raises:
            FiberError: If the suspension is already waiting, is used from
                a different fiber, or (outside a fiber) the loop runs out of
                work before the suspension is resumed.
        """
        if self._pending:
            raise FiberError('Suspension is already suspended')

        if self._fiber is not None:
            if Fiber.get_current() is not self._fiber:
                raise FiberError(
                    'Suspension must be suspended from the fiber that created it'
                )
            self._pending = True
            try:
                return Fiber.suspend()
            finally:
                self._pending = False

        if Fiber.get_current() is not None:
            raise FiberError('Suspension created outside a fiber used inside one')
        if self._loop.is_running():
            raise FiberError(
                'Cannot suspend the main context while the event loop is running'
            )
        self._pending = True
        self._outcome = None
        try:
            self._loop._run(until=self._is_resumed)
        finally:
            self._pending = False
        outcome, self._outcome = self._outcome, None
        if outcome is None:
            raise FiberError('Event loop stopped before the suspension was resumed')
        value, exc = outcome
        if exc is not None:
            raise exc
        return value

    def _is_resumed(self) -> bool:
        return self._outcome is not None

    def resume(self, value=None) -> None:
        """Wake the waiting context with ``value``."""
        self._settle(value, None)

    def throw(self, exc: BaseException) -> None:
        """Wake the waiting context by raising ``exc`` in it."""
        self._settle(None, exc)

    def _settle(self, value, exc):
        if not self._pending:
            raise FiberError('Suspension is not suspended')
        if self._fiber is None:
            if self._outcome is not None:
                raise FiberError('Suspension was already resumed')
            self._outcome = (value, exc)
            return
        self._pending = False
        fiber = self._fiber
        if exc is None:
            self._loop.defer(lambda _cid: fiber.resume(value))
        else:
            self._loop.defer(lambda _cid: fiber.throw(exc))
