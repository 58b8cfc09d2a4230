"""Offline comparator: run the suppressor over a render/capture WAV pair.

The render file holds the far-end signal that was played through the
loudspeaker and the capture file the microphone recording.  Both must be
16-bit PCM mono at the suppressor's sample rate.  The files are processed in
whole blocks (a trailing partial block is dropped), one diagnostic line is
logged per block and the gated capture is written as a new WAV file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np
from scipy.io import wavfile

from .constants import PROCESSED_WAV, SAMPLE_RATE
from .diagnostics import format_block_report
from .suppressor import BlockResult, EchoSuppressor, SuppressorConfig

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class WavFormatError(ValueError):
    """Raised when a WAV file is not 16-bit PCM mono at the expected rate."""


def read_pcm16_mono(path: PathLike, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Return the samples of a 16-bit PCM mono WAV file.

    Raises:
        WavFormatError: If the file cannot be parsed or has the wrong
            encoding, channel count or sample rate.
    """

    try:
        rate, data = wavfile.read(path)
    except (ValueError, EOFError) as exc:
        raise WavFormatError(f"{path}: not a readable RIFF/WAVE file ({exc})") from exc
    if data.dtype != np.int16:
        raise WavFormatError(f"{path}: expecting 16-bit PCM, got {data.dtype}")
    if data.ndim != 1:
        raise WavFormatError(f"{path}: expecting mono, got {data.shape[1]} channels")
    if rate != sample_rate:
        raise WavFormatError(f"{path}: expecting {sample_rate} Hz, got {rate} Hz")
    return data


def write_pcm16_mono(path: PathLike, samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> None:
    """Write ``samples`` as a 16-bit PCM mono WAV file."""
    wavfile.write(path, sample_rate, np.asarray(samples, dtype=np.int16))


def process_arrays(
    render: np.ndarray,
    capture: np.ndarray,
    suppressor: EchoSuppressor,
    on_block: Optional[Callable[[int, BlockResult], None]] = None,
) -> np.ndarray:
    """Gate ``capture`` against ``render`` and return the int16 result.

    Args:
        render: Far-end int16 samples.
        capture: Microphone int16 samples.
        suppressor: Suppressor used for processing; its state carries over.
        on_block: Optional callback invoked with the block index and result
            after every block.

    Returns:
        Processed int16 samples covering every whole block present in both
        inputs.

    Raises:
        ValueError: If the inputs do not hold at least one whole block.
    """

    block = suppressor.block_size
    blocks = min(len(render), len(capture)) // block
    if blocks == 0:
        raise ValueError("Not enough samples to process.")

    processed = np.empty(blocks * block, dtype=np.int16)
    for n in range(blocks):
        start = n * block
        result = suppressor.process_int16(
            render[start : start + block], capture[start : start + block]
        )
        processed[start : start + block] = result.output
        if on_block is not None:
            on_block(n, result)
    return processed


def cancel_file(
    render_path: PathLike,
    capture_path: PathLike,
    output_path: PathLike = PROCESSED_WAV,
    *,
    config: Optional[SuppressorConfig] = None,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Process a render/capture WAV pair and write the gated capture.

    Returns the processed samples that were written to ``output_path``.
    """

    render = read_pcm16_mono(render_path, sample_rate)
    capture = read_pcm16_mono(capture_path, sample_rate)
    suppressor = EchoSuppressor(sample_rate, config)
    logger.info(suppressor.config.describe())

    def report(index: int, result: BlockResult) -> None:
        logger.info(format_block_report(index, result.gain, result.lag))

    processed = process_arrays(render, capture, suppressor, on_block=report)
    write_pcm16_mono(output_path, processed, sample_rate)
    return processed


__all__ = [
    "WavFormatError",
    "read_pcm16_mono",
    "write_pcm16_mono",
    "process_arrays",
    "cancel_file",
]
