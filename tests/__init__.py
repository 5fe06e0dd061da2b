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
Test suite for fiberloop.

Test Architecture:
- Uses a mixin pattern for test reuse across poll backends
- Unit tests for the registry, timer queue and reactor run without a loop
- Supports pytest for test discovery and execution

Run tests:
    python -m pytest tests/ -v

Run against the select() backend only:
    python -m pytest tests/ -v -k "Select"
"""

from ._testbase import (
    BaseTestCase,
    LoopTestCase,
    SelectLoopTestCase,
    PollLoopTestCase,
    FakeClock,
    HAVE_POLL,
)

__all__ = [
    'BaseTestCase',
    'LoopTestCase',
    'SelectLoopTestCase',
    'PollLoopTestCase',
    'FakeClock',
    'HAVE_POLL',
]
