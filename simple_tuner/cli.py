from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import replace
from typing import Callable

from simple_tuner.analyzer import AnalysisResult
from simple_tuner.config import DEFAULT_CONFIG
from simple_tuner.display import DisplayFrame, Emphasis, TunerDisplay
from simple_tuner.errors import ConfigurationError, DeviceInitFailure, PermissionDenied
from simple_tuner.notes import PitchObservation
from simple_tuner.offline import analyze_file, summarize
from simple_tuner.session import LatestValue, TunerSession

_METER_WIDTH = 41


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="simple-tuner", description="Monophonic instrument tuner")
    parser.add_argument("--log-level", default="WARNING", help="logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    listen = sub.add_parser("listen", help="tune from the default microphone")
    listen.add_argument("--sample-rate", type=int, default=DEFAULT_CONFIG.sample_rate)
    listen.add_argument("--device", default=None, help="input device index or name")
    listen.add_argument("--gate-open-db", type=float, default=DEFAULT_CONFIG.gate_open_db)
    listen.add_argument("--gate-close-db", type=float, default=DEFAULT_CONFIG.gate_close_db)

    analyze = sub.add_parser("analyze", help="analyze a recorded file")
    analyze.add_argument("path")
    analyze.add_argument("--timeline", action="store_true", help="print every observation")

    serve = sub.add_parser("serve", help="run the websocket server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def render_meter(frame: DisplayFrame, range_cents: int = DEFAULT_CONFIG.meter_range_cents) -> str:
    obs = frame.observation
    if obs is None or frame.emphasis == Emphasis.NONE:
        return "  --   " + " " * _METER_WIDTH + "  waiting for signal"

    half = _METER_WIDTH // 2
    pos = half + int(round(frame.smoothed_cents / float(range_cents) * half))
    pos = max(0, min(_METER_WIDTH - 1, pos))
    bar = ["-"] * _METER_WIDTH
    bar[half] = "|"
    bar[pos] = "#" if frame.emphasis == Emphasis.LIVE else "o"
    tag = "IN TUNE" if frame.in_tune else ("hold" if frame.emphasis == Emphasis.HELD else "")
    return f"{obs.note_name:>4}  [{''.join(bar)}] {frame.smoothed_cents:+4d}c {obs.frequency_hz:7.2f} Hz {tag}"


def poll_frame(
    latest: LatestValue[AnalysisResult],
    display: TunerDisplay,
    version: int,
    clock: Callable[[], float] = time.monotonic,
    timeout: float = 0.1,
) -> tuple[int, DisplayFrame]:
    """Wait for the next analysis result and turn it into a display frame.

    A timeout with nothing newer published feeds the display `None`, so a
    reading from a stalled producer ages through the hold stages instead of
    being shown as live.
    """
    newest, result = latest.wait_newer(version, timeout=timeout)
    if newest == version:
        result = None
    return newest, display.update(result, clock())


def _listen(args: argparse.Namespace) -> int:
    # sounddevice loads PortAudio at import time.
    from simple_tuner.audio import AudioInput, AudioInputConfig

    device = args.device
    if device is not None and device.isdigit():
        device = int(device)
    config = replace(
        DEFAULT_CONFIG,
        sample_rate=args.sample_rate,
        gate_open_db=args.gate_open_db,
        gate_close_db=args.gate_close_db,
    )
    source = AudioInput(
        AudioInputConfig(sample_rate=config.sample_rate, block_size=config.chunk_size, device=device)
    )
    session = TunerSession(source, config)
    display = TunerDisplay(config)

    try:
        session.start()
    except PermissionDenied as exc:
        print(f"Microphone permission is required: {exc}", file=sys.stderr)
        return 2
    except DeviceInitFailure as exc:
        print(f"Could not open the microphone: {exc}", file=sys.stderr)
        return 2

    version = 0
    try:
        while session.is_running:
            version, frame = poll_frame(session.latest, display, version)
            sys.stdout.write("\r" + render_meter(frame, config.meter_range_cents))
            sys.stdout.flush()
    except KeyboardInterrupt:
        pass
    finally:
        session.stop()
        sys.stdout.write("\n")

    if session.error is not None:
        print(f"Capture stopped: {session.error}", file=sys.stderr)
        return 1
    return 0


def _analyze(args: argparse.Namespace) -> int:
    try:
        results = analyze_file(args.path)
    except (OSError, RuntimeError, ValueError) as exc:
        print(f"Unable to analyze {args.path}: {exc}", file=sys.stderr)
        return 1

    if args.timeline:
        for item in results:
            if isinstance(item.result, PitchObservation):
                obs = item.result
                print(f"{item.t:8.3f}s  {obs.note_name:>4} {obs.cents:+4d}c {obs.frequency_hz:8.2f} Hz")

    summary = summarize(results)
    if summary.note is None:
        print("No stable pitch found.")
        return 0
    print(
        f"{summary.note}  {summary.median_cents:+d} cents  ({summary.median_hz:.2f} Hz, "
        f"{summary.voiced_ratio:.0%} voiced)"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "listen":
            return _listen(args)
        if args.command == "analyze":
            return _analyze(args)
        if args.command == "serve":
            from simple_tuner.web.server import main as serve

            serve(host=args.host, port=args.port)
            return 0
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    return 1


if __name__ == "__main__":
    sys.exit(main())
