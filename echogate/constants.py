"""Application-wide constants used by the echo suppressor.

The values in this module configure the block size, the lag search window
and the detection and gain-smoothing behaviour of
:class:`~echogate.suppressor.EchoSuppressor`.  Centralising the defaults
avoids magic numbers spread throughout the code base and makes it easy to
tune the gate in one place.
"""

from __future__ import annotations

# ─── Audio configuration ────────────────────────────────────────────────────

# Reference operating point.  Every sample-count based quantity (block
# length, lag window, history size) is derived from the sample rate, so
# other rates work as long as both streams share it.
SAMPLE_RATE: int = 16_000

# The suppressor works on 10 ms blocks: ``sample_rate // BLOCKS_PER_SECOND``.
BLOCKS_PER_SECOND: int = 100

# Extra blocks of far-end history kept beyond the maximum lag.
HISTORY_EXTRA_BLOCKS: int = 4

# ─── Detection defaults ─────────────────────────────────────────────────────

# Best similarity score a block must exceed before it is considered an
# echo of the far-end signal.
SIMILARITY_THRESHOLD: float = 0.6

# Upper bound on the microphone/reference power ratio.  A microphone block
# carrying more energy than this multiple of the reference at the winning
# lag is treated as local speech rather than leakage.
POWER_RATIO_CEILING: float = 1.3

# Lower bound applied to every power and absolute-value sum before it is
# used as a denominator.
EPSILON: float = 1e-9

# Lag search window and resolution, in milliseconds.  The window is never
# shorter than one block and the step never shorter than one sample.
MAX_LAG_MS: float = 80.0
LAG_STEP_MS: float = 1.0

# Value reported as the lag estimate when no echo was detected.
NO_LAG: int = -1

# ─── Gate defaults ──────────────────────────────────────────────────────────

# Gain applied while suppressing, in decibels.  -80 dB is effectively
# silence for 16-bit output.
MUTED_GAIN_DB: float = -80.0

# Number of blocks suppression is held after the last detection (200 ms
# at 10 ms blocks).  Bridges short gaps where the search loses the echo.
HANGOVER_BLOCKS: int = 20

# One-pole smoothing coefficients.  Muting must engage quickly to stop
# audible feedback while recovery is slow to avoid gain pumping.
ATTACK: float = 0.1
RELEASE: float = 0.01

# ─── PCM conversion ─────────────────────────────────────────────────────────

# int16 samples are divided by ``PCM_INPUT_SCALE`` on the way in and float
# samples multiplied by ``PCM_OUTPUT_SCALE`` on the way out.
PCM_INPUT_SCALE: float = 32768.0
PCM_OUTPUT_SCALE: float = 32767.0

# ─── Diagnostics ────────────────────────────────────────────────────────────

# Number of detected lags kept for the rolling statistics printed by the
# echoback loop.
LAG_HISTORY_LIMIT: int = 10

# Name of the file written by the offline comparator.
PROCESSED_WAV: str = "processed.wav"

__all__ = [
    "SAMPLE_RATE",
    "BLOCKS_PER_SECOND",
    "HISTORY_EXTRA_BLOCKS",
    "SIMILARITY_THRESHOLD",
    "POWER_RATIO_CEILING",
    "EPSILON",
    "MAX_LAG_MS",
    "LAG_STEP_MS",
    "NO_LAG",
    "MUTED_GAIN_DB",
    "HANGOVER_BLOCKS",
    "ATTACK",
    "RELEASE",
    "PCM_INPUT_SCALE",
    "PCM_OUTPUT_SCALE",
    "LAG_HISTORY_LIMIT",
    "PROCESSED_WAV",
]
