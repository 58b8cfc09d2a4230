"""Switch-style acoustic echo suppressor.

:class:`EchoSuppressor` decides once per 10 ms block whether the microphone
block is dominated by an echo of the far-end reference.  Detected echo drives
the output gain toward a muted floor; otherwise the microphone passes through
at unity gain.  Nothing is subtracted from the signal: this is a gate, not a
canceller.

Each call runs the same pipeline:

1. the far-end block is appended to a :class:`~echogate.history.ReferenceHistory`;
2. :class:`~echogate.lag_search.LagSearch` finds the delay at which the
   reference best explains the microphone block;
3. :func:`~echogate.gate.detect_echo` combines score and power ratio;
4. :class:`~echogate.gate.HangoverState` may extend suppression;
5. :class:`~echogate.gate.GainSmoother` moves the gain toward its target;
6. the microphone block is scaled by the smoothed gain.

Instances are not thread safe.  Blocks must be fed in chronological order
and each audio stream needs its own instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np

from .constants import (
    ATTACK,
    BLOCKS_PER_SECOND,
    HANGOVER_BLOCKS,
    HISTORY_EXTRA_BLOCKS,
    LAG_STEP_MS,
    MAX_LAG_MS,
    MUTED_GAIN_DB,
    NO_LAG,
    POWER_RATIO_CEILING,
    RELEASE,
    SAMPLE_RATE,
    SIMILARITY_THRESHOLD,
)
from .gate import GainSmoother, HangoverState, db_to_linear, detect_echo
from .history import ReferenceHistory
from .lag_search import LagMetric, LagSearch
from .utils import float_to_pcm16, ms_to_samples, pcm16_to_float


@dataclass(frozen=True)
class SuppressorConfig:
    """Tunable parameters of the echo gate.

    Attributes:
        similarity_threshold: Score a block must exceed to count as echo.
        power_ratio_ceiling: Largest accepted mic/reference power ratio.
        muted_gain_db: Gain applied while suppressing, in decibels.
        hangover_blocks: Blocks suppression is held after a detection.
        attack: Smoothing coefficient while the gain falls.
        release: Smoothing coefficient while the gain rises.
        max_lag_ms: Longest echo delay searched, in milliseconds.
        lag_step_ms: Spacing of candidate delays, in milliseconds.
        metric: Similarity metric used by the lag search.
    """

    similarity_threshold: float = SIMILARITY_THRESHOLD
    power_ratio_ceiling: float = POWER_RATIO_CEILING
    muted_gain_db: float = MUTED_GAIN_DB
    hangover_blocks: int = HANGOVER_BLOCKS
    attack: float = ATTACK
    release: float = RELEASE
    max_lag_ms: float = MAX_LAG_MS
    lag_step_ms: float = LAG_STEP_MS
    metric: LagMetric = LagMetric.NCC

    @property
    def muted_linear_gain(self) -> float:
        return db_to_linear(self.muted_gain_db)

    def describe(self) -> str:
        """Return the one-line configuration banner."""
        return (
            f"config: atten={self.muted_gain_db:.1f} dB, "
            f"rho={self.similarity_threshold:.2f}, "
            f"ratio={self.power_ratio_ceiling:.2f}, "
            f"hang={self.hangover_blocks}, "
            f"attack={self.attack:.3f}, "
            f"release={self.release:.3f}, "
            f"metric={LagMetric(self.metric).value}"
        )


class BlockResult(NamedTuple):
    """Output of :meth:`EchoSuppressor.process_block`.

    ``lag`` is :data:`~echogate.constants.NO_LAG` when no echo was detected
    in the block, even while hangover keeps ``suppressing`` true.
    """

    output: np.ndarray
    gain: float
    lag: int
    suppressing: bool
    score: float


class EchoSuppressor:
    """Block-based echo gate.

    Parameters
    ----------
    sample_rate:
        Sampling frequency shared by the far-end and microphone streams.
    config:
        Detection and smoothing parameters.  Defaults to
        :class:`SuppressorConfig` with its default values.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        config: Optional[SuppressorConfig] = None,
    ) -> None:
        self.sample_rate: int = int(sample_rate)
        self.block_size: int = max(1, self.sample_rate // BLOCKS_PER_SECOND)
        self.config: SuppressorConfig = config or SuppressorConfig()
        self.history: Optional[ReferenceHistory] = None
        self.search: Optional[LagSearch] = None
        self.hangover = HangoverState()
        self.smoother = GainSmoother()
        self.set_config(self.config)
        self.reset()

    # --------------------------------------------------------------
    @property
    def max_lag(self) -> int:
        return self.search.max_lag

    @property
    def lag_step(self) -> int:
        return max(1, ms_to_samples(self.config.lag_step_ms, self.sample_rate))

    @property
    def history_size(self) -> int:
        return self.history.capacity

    @property
    def gain(self) -> float:
        return self.smoother.gain

    @property
    def hangover_remaining(self) -> int:
        return self.hangover.remaining

    # --------------------------------------------------------------
    def set_config(self, config: SuppressorConfig) -> None:
        """Apply ``config``.

        Gate parameters take effect on the next block without disturbing the
        current gain or hangover.  A change of the lag window reallocates the
        history, which starts again from silence.
        """

        self.config = config
        max_lag = max(self.block_size, ms_to_samples(config.max_lag_ms, self.sample_rate))
        capacity = max_lag + self.block_size * HISTORY_EXTRA_BLOCKS
        if self.history is None or self.history.capacity != capacity:
            self.history = ReferenceHistory(capacity)
        self.search = LagSearch(self.block_size, max_lag, self.lag_step, config.metric)

        self.hangover.length = max(int(config.hangover_blocks), 0)
        self.hangover.remaining = min(self.hangover.remaining, self.hangover.length)
        self.smoother.muted_gain = config.muted_linear_gain
        self.smoother.attack = config.attack
        self.smoother.release = config.release

    def reset(self) -> None:
        """Clear the history, hangover and gain without reallocating."""
        self.history.clear()
        self.hangover.reset()
        self.smoother.reset()

    # --------------------------------------------------------------
    def process_block(
        self,
        far: np.ndarray,
        mic: np.ndarray,
        out: Optional[np.ndarray] = None,
    ) -> BlockResult:
        """Process one block of float samples.

        Args:
            far: ``block_size`` far-end (reference) samples.
            mic: ``block_size`` microphone samples, time aligned with ``far``.
            out: Optional float array receiving the gated block.  A new array
                is allocated when omitted.

        Returns:
            The gated block, the applied gain, the estimated echo lag in
            samples (or ``NO_LAG``), whether suppression is active and the
            best similarity score.
        """

        mic = np.asarray(mic, dtype=np.float64)
        self.history.push(np.asarray(far, dtype=np.float64))

        found = self.search.search(self.history, mic)
        detected = detect_echo(
            found.score,
            found.mic_power,
            found.reference_power,
            similarity_threshold=self.config.similarity_threshold,
            power_ratio_ceiling=self.config.power_ratio_ceiling,
        )
        suppressing = self.hangover.update(detected)
        gain = self.smoother.update(suppressing)

        if out is None:
            out = np.empty_like(mic)
        np.multiply(mic, gain, out=out)
        return BlockResult(
            output=out,
            gain=gain,
            lag=found.lag if detected else NO_LAG,
            suppressing=suppressing,
            score=found.score,
        )

    def process_int16(self, far: np.ndarray, mic: np.ndarray) -> BlockResult:
        """Process one block of int16 PCM samples.

        Input is scaled by ``1 / 32768``; the gated output is clipped to
        ``[-1, 1]`` and re-encoded with a scale of ``32767``.
        """

        result = self.process_block(pcm16_to_float(far), pcm16_to_float(mic))
        return result._replace(output=float_to_pcm16(result.output))


__all__ = ["SuppressorConfig", "BlockResult", "EchoSuppressor"]
