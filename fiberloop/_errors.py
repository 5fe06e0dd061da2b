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

"""Exception types raised by the event loop and the fiber bridge."""

__all__ = ['FiberLoopError', 'InvalidCallbackError', 'FiberError']


class FiberLoopError(Exception):
    """Base class for fiberloop errors."""


class InvalidCallbackError(FiberLoopError, LookupError):
    """Raised when a callback id is unknown or was already canceled."""

    def __init__(self, callback_id, reason=None):
        self.callback_id = callback_id
        if reason is None:
            reason = f'Invalid callback identifier {callback_id!r}'
        super().__init__(reason)


class FiberError(FiberLoopError, RuntimeError):
    """Raised on an illegal fiber state transition."""
