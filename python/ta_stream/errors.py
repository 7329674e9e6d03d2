"""Exception types raised on structural misuse.

Numeric degeneracy is never an exception (it yields NaN) and insufficient
history is reported through ``Indicator.is_stable``. The classes below cover
the cases where the caller broke an invariant and must be told immediately.
"""

from __future__ import annotations


class NumMismatchError(TypeError):
    """Values from two different numeric factories met in one expression."""


class TimeRewindError(ValueError):
    """A bar or trade arrived with a timestamp earlier than one already processed.

    Indicator graphs and trading records are not rewound in place; build a new
    graph for the replayed range instead.
    """


class PositionStateError(RuntimeError):
    """Illegal position transition (e.g. entering an already opened position)."""
