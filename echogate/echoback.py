"""
Echoback: local loopback demo for the echo suppressor.

The microphone signal is gated by :class:`~echogate.suppressor.EchoSuppressor`
and then played back through the loudspeaker after passing a jitter FIFO.
Whatever the loudspeaker emits leaks into the microphone again, giving the
suppressor a real acoustic echo path to detect.  The block that is sent to
the speaker is also the far-end reference for the suppressor.

Two artificial delays help explore the lag search:

* the *input delay* holds back the captured signal at start-up, rounded to
  whole blocks;
* the *loopback delay* delays only the speaker signal, so the acoustic echo
  arrives later than the reference the suppressor sees.

:class:`EchobackLoop` holds all of the FIFO state and can be driven directly
with sample arrays; :func:`run` wires it to a full-duplex ``sounddevice``
stream.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Optional, Union

import numpy as np

from .constants import SAMPLE_RATE
from .diagnostics import LagTracker
from .suppressor import EchoSuppressor, SuppressorConfig
from .utils import ms_to_samples_ceil

logger = logging.getLogger(__name__)


def _pop_samples(queue: deque[int], n: int) -> np.ndarray:
    """Pop up to ``n`` samples from ``queue``; missing samples are zero."""
    out = np.zeros(n, dtype=np.int16)
    for i in range(min(n, len(queue))):
        out[i] = queue.popleft()
    return out


class EchobackLoop:
    """FIFO bookkeeping and per-block processing for the echoback demo.

    Args:
        sample_rate: Device sample rate in hertz.
        config: Suppressor configuration.
        passthrough: When ``True`` the microphone is played back untouched
            and no diagnostics are logged.
        input_delay_ms: Capture start-up delay, rounded to whole blocks.
        loopback_delay_ms: Extra delay applied to the speaker signal only.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        config: Optional[SuppressorConfig] = None,
        *,
        passthrough: bool = False,
        input_delay_ms: int = 0,
        loopback_delay_ms: int = 0,
    ) -> None:
        self.sample_rate = sample_rate
        self.suppressor = EchoSuppressor(sample_rate, config)
        self.block_size = self.suppressor.block_size
        self.passthrough = passthrough
        self.block_counter = 0
        self.lag_tracker = LagTracker()

        # Captured samples waiting for processing and samples for the speaker.
        self.capture: deque[int] = deque()
        self.speaker: deque[int] = deque()
        # Processed output waiting to become the far-end reference.
        self.jitter: deque[int] = deque()
        self.delay_line: deque[int] = deque()
        self.far_delay_line: deque[int] = deque()

        self.input_delay_samples = 0
        self.loopback_delay_samples = 0
        self.set_input_delay(input_delay_ms)
        self.set_loopback_delay(loopback_delay_ms)

    # --------------------------------------------------------------
    def set_input_delay(self, delay_ms: int) -> None:
        """Set the capture delay, rounded to the nearest whole block."""
        raw = ms_to_samples_ceil(delay_ms, self.sample_rate)
        blocks = (raw + self.block_size // 2) // self.block_size
        self.input_delay_samples = blocks * self.block_size

    def set_loopback_delay(self, delay_ms: int) -> None:
        """Set the speaker-only delay and flush its delay line."""
        self.loopback_delay_samples = ms_to_samples_ceil(delay_ms, self.sample_rate)
        self.far_delay_line.clear()

    def describe_delays(self) -> list[str]:
        input_ms = self.input_delay_samples * 1000.0 / self.sample_rate
        input_blocks = self.input_delay_samples / self.block_size
        loopback_ms = self.loopback_delay_samples * 1000.0 / self.sample_rate
        return [
            f"input-delay-ms(final): {input_ms:.1f} ms "
            f"({self.input_delay_samples} samples, {input_blocks:.1f} blocks)",
            f"loopback-delay-ms(final): {loopback_ms:.1f} ms "
            f"({self.loopback_delay_samples} samples)",
        ]

    # --------------------------------------------------------------
    def enqueue_capture(self, samples: np.ndarray) -> None:
        """Queue captured samples, holding them back by the input delay."""
        for sample in np.asarray(samples, dtype=np.int16).tolist():
            self.delay_line.append(sample)
            if len(self.delay_line) <= self.input_delay_samples:
                self.capture.append(0)
            else:
                self.capture.append(self.delay_line.popleft())

    def _apply_loopback_delay(self, block: np.ndarray) -> np.ndarray:
        if self.loopback_delay_samples == 0:
            return block
        delayed = np.zeros_like(block)
        for i, sample in enumerate(block.tolist()):
            self.far_delay_line.append(sample)
            if len(self.far_delay_line) > self.loopback_delay_samples:
                delayed[i] = self.far_delay_line.popleft()
        return delayed

    def process_available_blocks(self) -> int:
        """Run every complete captured block and return how many ran."""
        processed = 0
        while len(self.capture) >= self.block_size:
            near = _pop_samples(self.capture, self.block_size)
            if len(self.jitter) >= self.block_size:
                far = _pop_samples(self.jitter, self.block_size)
            else:
                far = np.zeros(self.block_size, dtype=np.int16)
            speaker = self._apply_loopback_delay(far.copy())

            if self.passthrough:
                out = near
            else:
                result = self.suppressor.process_int16(far, near)
                out = result.output
                self.lag_tracker.update(result.lag)
                logger.info(
                    self.lag_tracker.format_report(self.block_counter, result.gain, result.lag)
                )
            self.block_counter += 1
            processed += 1

            self.jitter.extend(out.tolist())
            self.speaker.extend(speaker.tolist())
        return processed

    def emit(self, frames: int) -> np.ndarray:
        """Return ``frames`` speaker samples, zero padded when starved."""
        return _pop_samples(self.speaker, frames)

    def callback(self, indata, outdata, frames, _time, status) -> None:  # noqa: D401
        if status:
            logger.warning("⚠️  %s", status)
        self.enqueue_capture(indata[:, 0] if indata.ndim == 2 else indata)
        self.process_available_blocks()
        outdata[:, 0] = self.emit(frames)


def run(
    loop: EchobackLoop,
    *,
    input_device: Optional[Union[int, str]] = None,
    output_device: Optional[Union[int, str]] = None,
) -> None:
    """Drive ``loop`` from the default (or given) duplex audio device.

    Blocks until the stream stops or the caller interrupts it.
    """

    import sounddevice as sd

    mode = "passthrough" if loop.passthrough else "suppressor"
    logger.info(f"echoback ({loop.sample_rate // 1000}k mono): mode={mode}")
    if not loop.passthrough:
        logger.info(f"  {loop.suppressor.config.describe()}")
    for line in loop.describe_delays():
        logger.info(line)

    with sd.Stream(
        device=(input_device, output_device),
        samplerate=loop.sample_rate,
        blocksize=loop.block_size,
        channels=1,
        dtype="int16",
        callback=loop.callback,
    ) as stream:
        logger.info("Running... Ctrl-C to stop.")
        while stream.active:
            sd.sleep(100)
    logger.info("stopped.")


__all__ = ["EchobackLoop", "run"]
