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
Single-threaded cooperative event loop with fiber integration.

Usage patterns:

    # Pattern 1: Callbacks on an explicit loop
    import fiberloop
    loop = fiberloop.new_event_loop()
    loop.defer(lambda cid: print('first'))
    loop.delay(0.1, lambda cid: print('later'))
    loop.run()
    loop.close()

    # Pattern 2: A main fiber that waits on loop events
    import fiberloop

    def main(loop):
        suspension = loop.get_suspension()
        loop.delay(0.1, lambda cid: suspension.resume('tick'))
        return suspension.suspend()

    result = fiberloop.run(main)   # 'tick'

    # Pattern 3: Bare fibers
    from fiberloop import Fiber
    fiber = Fiber(lambda: Fiber.suspend('paused') and 'done')
    fiber.start()                  # 'paused'
    fiber.resume(True)             # 'done'
"""

from ._errors import FiberError, FiberLoopError, InvalidCallbackError
from ._fiber import Fiber, FiberState, Suspension
from ._loop import EventLoop
from ._mode import PollBackend, available_backends, detect_backend
from ._registry import CallbackKind

__all__ = [
    'run',
    'new_event_loop',
    'create_fiber',
    'EventLoop',
    'CallbackKind',
    'Fiber',
    'FiberState',
    'Suspension',
    'PollBackend',
    'detect_backend',
    'available_backends',
    'FiberLoopError',
    'InvalidCallbackError',
    'FiberError',
]


def new_event_loop(selector=None, *, backend=None, clock=None,
                   debug=None) -> EventLoop:
    """Create a new event loop.

    Returns:
        EventLoop: A new loop polling with ``selector``, or with a selector
            for ``backend`` (default: FIBERLOOP_BACKEND or the platform's
            preferred backend).
    """
    return EventLoop(selector, backend=backend, clock=clock, debug=debug)


def create_fiber(body) -> Fiber:
    """Create a fiber that will run ``body`` when started."""
    return Fiber(body)


def run(main, *args, debug=None):
    """Run ``main(loop, *args)`` in a fiber on a fresh event loop.

    The fiber is started from the loop's first tick. The loop runs until
    no work remains and is closed afterwards.

    Args:
        main: Function run as the main fiber's body.
        *args: Extra arguments for main.
        debug: Enable debug mode if True.

    Returns:
        The return value of main.

    Raises:
        FiberError: If the loop ran out of work while main was suspended.

    Example:
        import fiberloop

        def main(loop):
            suspension = loop.get_suspension()
            loop.delay(1, lambda cid: suspension.resume('done'))
            return suspension.suspend()

        result = fiberloop.run(main)
    """
    loop = new_event_loop(debug=debug)
    fiber = Fiber(main)
    try:
        loop.defer(lambda _cid: fiber.start(loop, *args))
        loop.run()
        if not fiber.is_terminated():
            raise FiberError(
                'Event loop ran out of work before the main fiber finished'
            )
        return fiber.get_return()
    finally:
        loop.close()
