"""Test helpers for learnprogress tests.

This module re-exports all helpers for convenient imports:

    from tests.helpers import (
        # Time
        utc, day,

        # Builders
        make_session, make_state, make_mission,
    )

See individual modules for full documentation:
- builders.py: Sessions, states and missions with sensible defaults
"""

from tests.helpers.builders import (
    BASE_DAY,
    day,
    make_mission,
    make_session,
    make_state,
    utc,
)

__all__ = [
    "BASE_DAY",
    "day",
    "make_mission",
    "make_session",
    "make_state",
    "utc",
]
