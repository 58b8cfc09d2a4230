#!/usr/bin/env python3
"""Command line entry point: ``echogate cancel-file`` and ``echogate echoback``."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from .constants import (
    ATTACK,
    HANGOVER_BLOCKS,
    LAG_STEP_MS,
    MAX_LAG_MS,
    MUTED_GAIN_DB,
    POWER_RATIO_CEILING,
    PROCESSED_WAV,
    RELEASE,
    SAMPLE_RATE,
    SIMILARITY_THRESHOLD,
)
from .lag_search import LagMetric
from .suppressor import SuppressorConfig
from .utils import setup_logger


def _add_config_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("suppressor")
    group.add_argument("--sample-rate", type=int, default=SAMPLE_RATE)
    group.add_argument("--rho", type=float, default=SIMILARITY_THRESHOLD, help="similarity threshold")
    group.add_argument("--ratio", type=float, default=POWER_RATIO_CEILING, help="power ratio ceiling")
    group.add_argument("--atten-db", type=float, default=MUTED_GAIN_DB, help="muted gain in dB")
    group.add_argument("--hangover", type=int, default=HANGOVER_BLOCKS, help="hangover in blocks")
    group.add_argument("--attack", type=float, default=ATTACK)
    group.add_argument("--release", type=float, default=RELEASE)
    group.add_argument("--max-lag-ms", type=float, default=MAX_LAG_MS)
    group.add_argument("--lag-step-ms", type=float, default=LAG_STEP_MS)
    group.add_argument(
        "--metric",
        choices=[m.value for m in LagMetric],
        default=LagMetric.NCC.value,
        help="similarity metric for the lag search",
    )


def config_from_args(args: argparse.Namespace) -> SuppressorConfig:
    """Build a :class:`SuppressorConfig` from parsed options."""
    return SuppressorConfig(
        similarity_threshold=args.rho,
        power_ratio_ceiling=args.ratio,
        muted_gain_db=args.atten_db,
        hangover_blocks=args.hangover,
        attack=args.attack,
        release=args.release,
        max_lag_ms=args.max_lag_ms,
        lag_step_ms=args.lag_step_ms,
        metric=LagMetric(args.metric),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="echogate", description="Switch-style acoustic echo suppressor."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    cancel = sub.add_parser("cancel-file", help="process a render/capture WAV pair")
    cancel.add_argument("render", help="far-end WAV (16-bit PCM mono)")
    cancel.add_argument("capture", help="microphone WAV (16-bit PCM mono)")
    cancel.add_argument("-o", "--output", default=PROCESSED_WAV)
    _add_config_options(cancel)

    echo = sub.add_parser("echoback", help="live loopback through the default devices")
    echo.add_argument("-p", "--passthrough", action="store_true", help="disable suppression")
    echo.add_argument("--input-delay-ms", type=int, default=0)
    echo.add_argument("--loopback-delay-ms", type=int, default=0)
    echo.add_argument("--input-device", default=None)
    echo.add_argument("--output-device", default=None)
    _add_config_options(echo)
    return parser


def _device(value: Optional[str]):
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logger("echogate", "DEBUG" if args.verbose else "INFO")
    config = config_from_args(args)

    if args.command == "cancel-file":
        from .offline import cancel_file

        try:
            cancel_file(
                args.render,
                args.capture,
                args.output,
                config=config,
                sample_rate=args.sample_rate,
            )
        except (OSError, ValueError) as exc:
            logger.error(f"Failed to process files: {exc}")
            return 1
        return 0

    from .echoback import EchobackLoop, run

    loop = EchobackLoop(
        args.sample_rate,
        config,
        passthrough=args.passthrough,
        input_delay_ms=args.input_delay_ms,
        loopback_delay_ms=args.loopback_delay_ms,
    )
    try:
        run(
            loop,
            input_device=_device(args.input_device),
            output_device=_device(args.output_device),
        )
    except KeyboardInterrupt:
        logger.info("\nExiting.")
    except Exception as exc:
        logger.error(f"Stream error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
