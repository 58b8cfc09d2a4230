"""Tests for :class:`echogate.echoback.EchobackLoop`."""

from __future__ import annotations

import sys
import types

import numpy as np
import pytest

from echogate import echoback
from echogate.echoback import EchobackLoop


@pytest.mark.parametrize(
    "delay_ms, samples",
    [(0, 0), (4, 0), (5, 160), (25, 480), (-30, 0)],
)
def test_input_delay_rounds_to_whole_blocks(delay_ms: int, samples: int) -> None:
    assert EchobackLoop(input_delay_ms=delay_ms).input_delay_samples == samples


def test_loopback_delay_in_samples() -> None:
    loop = EchobackLoop(loopback_delay_ms=10)
    assert loop.loopback_delay_samples == 160
    assert EchobackLoop(loopback_delay_ms=-5).loopback_delay_samples == 0


def test_describe_delays() -> None:
    loop = EchobackLoop(input_delay_ms=20, loopback_delay_ms=3)
    assert loop.describe_delays() == [
        "input-delay-ms(final): 20.0 ms (320 samples, 2.0 blocks)",
        "loopback-delay-ms(final): 3.0 ms (48 samples)",
    ]


def test_input_delay_holds_back_capture() -> None:
    loop = EchobackLoop(input_delay_ms=10)
    loop.enqueue_capture(np.arange(1, 321, dtype=np.int16))
    captured = list(loop.capture)
    assert captured[:160] == [0] * 160
    assert captured[160:] == list(range(1, 161))


def test_passthrough_loops_output_back_as_reference() -> None:
    loop = EchobackLoop(passthrough=True)
    ramp = np.arange(1, 321, dtype=np.int16)
    loop.enqueue_capture(ramp)
    assert loop.process_available_blocks() == 2
    assert loop.block_counter == 2

    speaker = loop.emit(320)
    # first block has no reference yet; the second plays back block one
    assert not np.any(speaker[:160])
    assert np.array_equal(speaker[160:], ramp[:160])
    # starved output is padded with silence
    assert not np.any(loop.emit(160))


def test_loopback_delay_shifts_speaker_signal() -> None:
    loop = EchobackLoop(passthrough=True, loopback_delay_ms=2)
    ramp = np.arange(1, 481, dtype=np.int16)
    loop.enqueue_capture(ramp)
    loop.process_available_blocks()
    speaker = loop.emit(480)
    # block one reaches the speaker during block two, 32 samples late
    assert not np.any(speaker[:192])
    assert np.array_equal(speaker[192:320], ramp[:128])


def test_suppressor_mode_gates_and_tracks_lag() -> None:
    loop = EchobackLoop()
    rng = np.random.default_rng(11)
    loop.enqueue_capture(rng.normal(scale=2000, size=160).astype(np.int16))
    loop.process_available_blocks()
    # feed the captured loop output back as a perfect echo
    for _ in range(10):
        echo = np.array(list(loop.jitter)[:160], dtype=np.int16)
        loop.enqueue_capture(echo)
        loop.process_available_blocks()
    assert loop.suppressor.gain < 1.0
    assert loop.lag_tracker.ready
    assert loop.lag_tracker.last == 0


def test_callback_fills_output() -> None:
    loop = EchobackLoop(passthrough=True)
    indata = np.arange(160, dtype=np.int16).reshape(-1, 1)
    outdata = np.full((160, 1), 7, dtype=np.int16)
    loop.callback(indata, outdata, 160, None, "input overflow")
    assert not np.any(outdata)
    loop.callback(indata, outdata, 160, None, None)
    assert np.array_equal(outdata[:, 0], indata[:, 0])


def test_run_opens_duplex_stream(monkeypatch: pytest.MonkeyPatch) -> None:
    opened: dict[str, object] = {}

    class DummyStream:
        active = False

        def __init__(self, **kwargs) -> None:
            opened.update(kwargs)

        def __enter__(self) -> "DummyStream":
            return self

        def __exit__(self, *_) -> None:
            return None

    dummy_sd = types.SimpleNamespace(Stream=DummyStream, sleep=lambda _ms: None)
    monkeypatch.setitem(sys.modules, "sounddevice", dummy_sd)

    loop = EchobackLoop()
    echoback.run(loop, input_device=1, output_device="speakers")
    assert opened["samplerate"] == 16000
    assert opened["blocksize"] == 160
    assert opened["channels"] == 1
    assert opened["dtype"] == "int16"
    assert opened["device"] == (1, "speakers")
    assert opened["callback"] == loop.callback
