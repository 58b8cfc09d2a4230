"""Detection rule, hangover and gain smoothing for the echo gate."""

from __future__ import annotations

from .constants import ATTACK, EPSILON, HANGOVER_BLOCKS, MUTED_GAIN_DB, RELEASE


def db_to_linear(gain_db: float) -> float:
    """Convert a gain in decibels to a linear factor, never below zero."""
    return max(10.0 ** (gain_db / 20.0), 0.0)


def detect_echo(
    score: float,
    mic_power: float,
    reference_power: float,
    *,
    similarity_threshold: float,
    power_ratio_ceiling: float,
) -> bool:
    """Return ``True`` when a block looks like an echo of the reference.

    The best similarity score must exceed ``similarity_threshold`` and the
    microphone must carry less energy than ``power_ratio_ceiling`` times the
    reference power at the winning lag.  The second test rejects blocks
    where local speech is louder than any plausible leakage.
    """

    reference_power = max(reference_power, EPSILON)
    return score > similarity_threshold and mic_power < power_ratio_ceiling * reference_power


class HangoverState:
    """Hold suppression for a number of blocks after the last detection.

    A detected block arms the counter with ``length`` and makes the state
    active.  Each following block without detection decrements the counter
    and the state stays active while it is still positive, so a single
    detection followed by ``length - 1`` misses keeps suppressing for those
    misses and releases on the ``length``-th.
    """

    def __init__(self, length: int = HANGOVER_BLOCKS) -> None:
        self.length: int = max(int(length), 0)
        self.remaining: int = 0
        self.active: bool = False

    def reset(self) -> None:
        self.remaining = 0
        self.active = False

    def update(self, detected: bool) -> bool:
        """Advance one block and return whether suppression is active."""
        if detected:
            self.remaining = self.length
            self.active = True
        elif self.remaining > 0:
            self.remaining -= 1
            self.active = self.remaining > 0
        else:
            self.active = False
        return self.active


class GainSmoother:
    """Asymmetric one-pole filter tracking a muted or unity target gain.

    Parameters
    ----------
    muted_gain:
        Linear gain targeted while suppressing.
    attack:
        Smoothing coefficient used while the gain falls.
    release:
        Smoothing coefficient used while the gain rises.
    """

    def __init__(
        self,
        muted_gain: float = db_to_linear(MUTED_GAIN_DB),
        attack: float = ATTACK,
        release: float = RELEASE,
    ) -> None:
        self.muted_gain: float = max(float(muted_gain), 0.0)
        self.attack: float = attack
        self.release: float = release
        self.gain: float = 1.0

    def reset(self) -> None:
        self.gain = 1.0

    def update(self, suppress: bool) -> float:
        """Move the gain one step toward its target and return it."""
        target = self.muted_gain if suppress else 1.0
        coeff = self.attack if target < self.gain else self.release
        self.gain = (1.0 - coeff) * self.gain + coeff * target
        return self.gain


__all__ = ["db_to_linear", "detect_echo", "HangoverState", "GainSmoother"]
