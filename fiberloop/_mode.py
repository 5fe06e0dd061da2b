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
Poll backend and debug mode detection.

This module decides which selector the I/O reactor polls with and whether
new loops start in debug mode:

- epoll: Linux
- kqueue: BSD and macOS
- devpoll: Solaris
- poll: most POSIX systems
- select: everywhere, including Windows

The backend can be forced with the FIBERLOOP_BACKEND environment variable
and debug mode enabled with FIBERLOOP_DEBUG or ``python -X dev``.
"""

import os
import selectors
import sys
from enum import Enum
from typing import Optional

__all__ = [
    'PollBackend',
    'detect_backend',
    'default_backend',
    'available_backends',
    'new_selector',
    'is_debug_mode',
]

BACKEND_ENV = 'FIBERLOOP_BACKEND'
DEBUG_ENV = 'FIBERLOOP_DEBUG'


class PollBackend(Enum):
    """Readiness notification mechanism used by the reactor."""
    EPOLL = 'epoll'
    KQUEUE = 'kqueue'
    DEVPOLL = 'devpoll'
    POLL = 'poll'
    SELECT = 'select'


# Selector class name in the selectors module for each backend
_SELECTOR_NAMES = {
    PollBackend.EPOLL: 'EpollSelector',
    PollBackend.KQUEUE: 'KqueueSelector',
    PollBackend.DEVPOLL: 'DevpollSelector',
    PollBackend.POLL: 'PollSelector',
    PollBackend.SELECT: 'SelectSelector',
}

# Cache the detected backend
_cached_backend: Optional[PollBackend] = None


def detect_backend() -> PollBackend:
    """Detect the platform's preferred poll backend.

    Returns:
        PollBackend: The backend behind selectors.DefaultSelector.
    """
    global _cached_backend
    if _cached_backend is not None:
        return _cached_backend

    for backend, name in _SELECTOR_NAMES.items():
        if getattr(selectors, name, None) is selectors.DefaultSelector:
            _cached_backend = backend
            return backend
    raise ValueError(
        f'Unsupported default selector: {selectors.DefaultSelector.__name__}'
    )


def default_backend() -> PollBackend:
    """Return the backend new loops use when none is given.

    Honours FIBERLOOP_BACKEND, falling back to detect_backend().

    Raises:
        ValueError: If FIBERLOOP_BACKEND names an unknown or unavailable
            backend.
    """
    name = os.environ.get(BACKEND_ENV, '').strip().lower()
    if not name:
        return detect_backend()
    return _check_available(_parse_backend(name))


def available_backends():
    """List the backends this platform supports, preferred first."""
    return [backend for backend in PollBackend
            if hasattr(selectors, _SELECTOR_NAMES[backend])]


def new_selector(backend=None) -> selectors.BaseSelector:
    """Create a selector for a backend.

    Args:
        backend: A PollBackend, its string value, or None for
            default_backend().

    Raises:
        ValueError: If the backend is unknown or unavailable here.
    """
    if backend is None:
        backend = default_backend()
    elif not isinstance(backend, PollBackend):
        backend = _parse_backend(backend)
    _check_available(backend)
    return getattr(selectors, _SELECTOR_NAMES[backend])()


def is_debug_mode() -> bool:
    """Check whether new loops should start in debug mode."""
    if sys.flags.dev_mode:
        return True
    if sys.flags.ignore_environment:
        return False
    return bool(os.environ.get(DEBUG_ENV))


def _parse_backend(name) -> PollBackend:
    try:
        return PollBackend(str(name).lower())
    except ValueError:
        raise ValueError(f'Unknown poll backend: {name!r}') from None


def _check_available(backend: PollBackend) -> PollBackend:
    if not hasattr(selectors, _SELECTOR_NAMES[backend]):
        raise ValueError(
            f'Poll backend {backend.value!r} is not available on {sys.platform}'
        )
    return backend
