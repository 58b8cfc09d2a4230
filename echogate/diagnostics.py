"""Human readable per-block reports for the suppressor.

The suppressor returns plain numbers; the helpers here turn them into the
one-line reports printed by the offline comparator and the echoback loop::

    [block 12] mute=65.1% (gain=0.349 **  , lag=48 samples)
    [block 40] mute=0.0% (gain=1.000 ****, lag=--)
"""

from __future__ import annotations

from collections import deque
from typing import Optional

from .constants import LAG_HISTORY_LIMIT, NO_LAG

# Upper gain bound of each meter level, checked in order.
_METER_LEVELS: tuple[tuple[float, str], ...] = (
    (0.05, "    "),
    (0.25, "*   "),
    (0.50, "**  "),
    (0.75, "*** "),
)


def gain_meter(gain: float) -> str:
    """Return a four character bar visualising ``gain``."""
    g = min(max(gain, 0.0), 1.0)
    for bound, bar in _METER_LEVELS:
        if g <= bound:
            return bar
    return "****"


def mute_percent(gain: float) -> float:
    """Return how much of the signal is muted, as a percentage."""
    return max(0.0, 1.0 - gain) * 100.0


def format_block_report(block_index: int, gain: float, lag: int) -> str:
    """Return the diagnostic line for one processed block."""
    head = f"[block {block_index}] mute={mute_percent(gain):.1f}% (gain={gain:.3f} {gain_meter(gain)}"
    if lag != NO_LAG:
        return f"{head}, lag={lag} samples)"
    return f"{head}, lag=--)"


class LagTracker:
    """Rolling statistics over the most recently detected lags.

    Parameters
    ----------
    limit:
        Number of detected lags kept in the window.
    """

    def __init__(self, limit: int = LAG_HISTORY_LIMIT) -> None:
        self.limit: int = max(int(limit), 1)
        self.lags: deque[int] = deque(maxlen=self.limit)
        self.last: Optional[int] = None

    @property
    def ready(self) -> bool:
        """``True`` once at least one lag has been recorded."""
        return self.last is not None

    def update(self, lag: int) -> None:
        """Record ``lag`` unless it is the no-echo sentinel."""
        if lag == NO_LAG:
            return
        self.lags.append(lag)
        self.last = lag

    @property
    def average(self) -> float:
        return sum(self.lags) / len(self.lags) if self.lags else 0.0

    @property
    def minimum(self) -> int:
        return min(self.lags) if self.lags else 0

    @property
    def maximum(self) -> int:
        return max(self.lags) if self.lags else 0

    def format_report(self, block_index: int, gain: float, lag: int) -> str:
        """Return a block report extended with the rolling lag statistics."""
        if not self.ready:
            return format_block_report(block_index, gain, lag)
        current = str(lag) if lag != NO_LAG else "--"
        window = len(self.lags) or self.limit
        return (
            f"[block {block_index}] mute={mute_percent(gain):.1f}% "
            f"(gain={gain:.3f} {gain_meter(gain)}, lag={current} samples; "
            f"avg{window}={self.average:.1f}, min={self.minimum}, "
            f"max={self.maximum}, last={self.last})"
        )


__all__ = ["gain_meter", "mute_percent", "format_block_report", "LagTracker"]
