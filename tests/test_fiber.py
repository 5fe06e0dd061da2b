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
Fiber tests without an event loop.

These tests verify the fiber state machine:
- start/suspend/resume value exchange
- exception propagation across suspend points
- nesting
- illegal transitions
"""

import unittest

from fiberloop import Fiber, FiberError, FiberState, create_fiber


class TestFiberLifecycle(unittest.TestCase):
    """Tests for state transitions and value exchange."""

    def test_start_runs_until_suspend(self):
        """start() runs the body up to the first suspend and returns its value."""
        steps = []

        def body():
            steps.append('start')
            Fiber.suspend('paused')
            steps.append('resumed')

        fiber = Fiber(body)
        self.assertIs(fiber.state, FiberState.CREATED)

        self.assertEqual(fiber.start(), 'paused')
        self.assertEqual(steps, ['start'])
        self.assertTrue(fiber.is_suspended())

    def test_resume_delivers_value(self):
        """The resume value becomes suspend()'s result."""
        def body():
            received = Fiber.suspend()
            return f'got {received}'

        fiber = Fiber(body)
        fiber.start()

        self.assertEqual(fiber.resume('x'), 'got x')
        self.assertTrue(fiber.is_terminated())
        self.assertEqual(fiber.get_return(), 'got x')

    def test_resume_returns_next_suspend_value(self):
        """resume() returns the value of the following suspend."""
        def body():
            total = 0
            while True:
                value = Fiber.suspend(total)
                if value is None:
                    return total
                total += value

        fiber = Fiber(body)
        self.assertEqual(fiber.start(), 0)
        self.assertEqual(fiber.resume(2), 2)
        self.assertEqual(fiber.resume(3), 5)
        self.assertEqual(fiber.resume(None), 5)
        self.assertTrue(fiber.is_terminated())

    def test_start_without_suspend(self):
        """A body that never suspends terminates inside start()."""
        fiber = Fiber(lambda a, b=0: a + b)

        self.assertEqual(fiber.start(1, b=2), 3)
        self.assertIs(fiber.state, FiberState.TERMINATED)
        self.assertEqual(fiber.get_return(), 3)

    def test_suspend_from_nested_call(self):
        """Fibers are stackful: suspend works from any call depth."""
        def helper(depth):
            if depth == 0:
                return Fiber.suspend('deep')
            return helper(depth - 1)

        fiber = Fiber(lambda: helper(10))

        self.assertEqual(fiber.start(), 'deep')
        self.assertEqual(fiber.resume('back'), 'back')

    def test_state_predicates(self):
        """is_started/is_running/is_suspended/is_terminated follow the body."""
        seen = []

        def body():
            seen.append((fiber.is_started(), fiber.is_running()))
            Fiber.suspend()

        fiber = Fiber(body)
        self.assertFalse(fiber.is_started())
        fiber.start()
        self.assertEqual(seen, [(True, True)])
        self.assertTrue(fiber.is_suspended())
        self.assertFalse(fiber.is_running())
        fiber.resume()
        self.assertTrue(fiber.is_terminated())

    def test_get_current(self):
        """get_current() is the running fiber inside its body, else None."""
        seen = []

        fiber = Fiber(lambda: seen.append(Fiber.get_current()))
        fiber.start()

        self.assertEqual(seen, [fiber])
        self.assertIsNone(Fiber.get_current())

    def test_create_fiber(self):
        fiber = create_fiber(lambda: 'value')

        self.assertIsInstance(fiber, Fiber)
        self.assertEqual(fiber.start(), 'value')

    def test_body_must_be_callable(self):
        with self.assertRaises(TypeError):
            Fiber('not callable')


class TestFiberErrors(unittest.TestCase):
    """Tests for illegal transitions and exception propagation."""

    def test_start_twice(self):
        """Only a created fiber can be started."""
        fiber = Fiber(lambda: Fiber.suspend())
        fiber.start()

        with self.assertRaises(FiberError):
            fiber.start()

    def test_resume_not_suspended(self):
        """resume() fails on created and terminated fibers."""
        fiber = Fiber(lambda: None)
        with self.assertRaises(FiberError):
            fiber.resume()

        fiber.start()
        with self.assertRaises(FiberError):
            fiber.resume()
        with self.assertRaises(FiberError):
            fiber.start()

    def test_resume_running_fiber(self):
        """A fiber cannot resume itself."""
        errors = []

        def body():
            try:
                fiber.resume()
            except FiberError as e:
                errors.append(e)

        fiber = Fiber(body)
        fiber.start()

        self.assertEqual(len(errors), 1)

    def test_suspend_outside_fiber(self):
        with self.assertRaises(FiberError):
            Fiber.suspend()

    def test_exception_in_start(self):
        """A failure inside start() reaches the caller with its message."""
        def body():
            raise RuntimeError('Test error')

        fiber = Fiber(body)

        with self.assertRaisesRegex(RuntimeError, 'Test error'):
            fiber.start()
        self.assertTrue(fiber.is_terminated())
        with self.assertRaises(FiberError):
            fiber.get_return()

    def test_exception_after_resume(self):
        """A failure after a suspend point propagates out of resume()."""
        def body():
            Fiber.suspend()
            raise KeyError('later')

        fiber = Fiber(body)
        fiber.start()

        with self.assertRaises(KeyError):
            fiber.resume()
        self.assertTrue(fiber.is_terminated())

    def test_get_return_before_termination(self):
        fiber = Fiber(lambda: Fiber.suspend())
        with self.assertRaises(FiberError):
            fiber.get_return()
        fiber.start()
        with self.assertRaises(FiberError):
            fiber.get_return()

    def test_throw_caught_by_body(self):
        """throw() raises at the suspend point; the body may recover."""
        def body():
            try:
                Fiber.suspend()
            except ValueError as e:
                return f'handled {e}'
            return 'not thrown'

        fiber = Fiber(body)
        fiber.start()

        self.assertEqual(fiber.throw(ValueError('bad')), 'handled bad')

    def test_throw_uncaught_propagates(self):
        fiber = Fiber(lambda: Fiber.suspend())
        fiber.start()

        with self.assertRaisesRegex(ValueError, 'unhandled'):
            fiber.throw(ValueError('unhandled'))
        self.assertTrue(fiber.is_terminated())

    def test_throw_requires_suspended(self):
        fiber = Fiber(lambda: None)
        with self.assertRaises(FiberError):
            fiber.throw(ValueError())


class TestNestedFibers(unittest.TestCase):
    """Tests for fibers driven from inside other fibers."""

    def test_inner_suspend_returns_to_outer(self):
        """Suspending an inner fiber hands control to the outer body."""
        events = []

        def inner_body():
            events.append('inner-start')
            Fiber.suspend('inner-paused')
            events.append('inner-end')
            return 'inner-value'

        def outer_body():
            inner = Fiber(inner_body)
            events.append(('outer-got', inner.start()))
            Fiber.suspend('outer-paused')
            events.append(('outer-got', inner.resume()))
            return 'outer-value'

        outer = Fiber(outer_body)
        self.assertEqual(outer.start(), 'outer-paused')
        self.assertEqual(outer.resume(), 'outer-value')

        self.assertEqual(events, [
            'inner-start',
            ('outer-got', 'inner-paused'),
            'inner-end',
            ('outer-got', 'inner-value'),
        ])

    def test_inner_resumed_from_outside(self):
        """A fiber started by another fiber can be resumed from anywhere."""
        holder = {}

        def inner_body():
            return Fiber.suspend('waiting') * 2

        def outer_body():
            holder['inner'] = Fiber(inner_body)
            holder['inner'].start()
            return 'outer-done'

        outer = Fiber(outer_body)
        self.assertEqual(outer.start(), 'outer-done')

        inner = holder['inner']
        self.assertTrue(inner.is_suspended())
        self.assertEqual(inner.resume(21), 42)

    def test_inner_failure_reaches_outer(self):
        """An inner failure propagates to the outer body driving it."""
        def inner_body():
            raise ValueError('inner failed')

        def outer_body():
            try:
                Fiber(inner_body).start()
            except ValueError as e:
                return str(e)

        self.assertEqual(Fiber(outer_body).start(), 'inner failed')

    def test_get_current_in_nested_fibers(self):
        seen = []

        def inner_body():
            seen.append(Fiber.get_current())

        def outer_body():
            seen.append(Fiber.get_current())
            inner = Fiber(inner_body)
            inner.start()
            seen.append(Fiber.get_current())
            return inner

        outer = Fiber(outer_body)
        inner = outer.start()

        self.assertEqual(seen, [outer, inner, outer])


if __name__ == '__main__':
    unittest.main()
