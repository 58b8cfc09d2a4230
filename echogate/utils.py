import logging
import sys

import numpy as np

from .constants import PCM_INPUT_SCALE, PCM_OUTPUT_SCALE


def setup_logger(name: str = "echogate", log_level: str = "INFO") -> logging.Logger:
    """Return a logger that writes bare messages to standard error.

    Diagnostic lines are emitted verbatim, so the formatter carries no
    timestamp or level prefix.  Calling this repeatedly never stacks
    handlers.
    """

    logger = logging.getLogger(name)
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    else:
        for handler in logger.handlers:
            handler.setLevel(level)

    return logger


def ms_to_samples(ms: float, sample_rate: int) -> int:
    """Return the whole number of samples in ``ms`` milliseconds, rounding down."""
    return int(ms * sample_rate / 1000.0)


def ms_to_samples_ceil(ms: int, sample_rate: int) -> int:
    """Return the number of samples in ``ms`` milliseconds, rounding up.

    Negative durations are treated as zero.
    """

    ms = max(int(ms), 0)
    return (ms * sample_rate + 999) // 1000


def pcm16_to_float(samples: np.ndarray) -> np.ndarray:
    """Convert int16 PCM samples to floats in ``[-1, 1)``."""
    return np.asarray(samples, dtype=np.float64) / PCM_INPUT_SCALE


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Clip float samples to ``[-1, 1]`` and encode them as int16 PCM.

    Values are rounded to the nearest integer, ties to even.
    """

    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    return np.rint(clipped * PCM_OUTPUT_SCALE).astype(np.int16)


__all__ = [
    "setup_logger",
    "ms_to_samples",
    "ms_to_samples_ceil",
    "pcm16_to_float",
    "float_to_pcm16",
]
