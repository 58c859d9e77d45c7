"""Robo entrypoint module exposing the public API and CLI."""

import argparse
import logging
import sys
import time
from typing import Dict, List, Tuple

from robo_lang import (
    ConsoleIO,
    HardwareBus,
    IOHandler,
    RoboError,
    RoboInterpreter,
    RuntimeConfig,
    parse,
    tokenize,
)

__all__ = [
    "ConsoleIO",
    "HardwareBus",
    "IOHandler",
    "RoboError",
    "RoboInterpreter",
    "RuntimeConfig",
    "parse",
    "tokenize",
    "parse_sensor",
    "watch_pins",
    "main",
]

POLL_INTERVAL = 0.05


def parse_sensor(text: str) -> Tuple[int, float]:
    """Parse a `CHANNEL=DISTANCE` pair given on the command line."""
    channel, sep, distance = text.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected CHANNEL=DISTANCE, got {text!r}")
    try:
        return int(channel), float(distance)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid sensor value {text!r}") from e


def watch_pins(interpreter: RoboInterpreter, duration: float) -> Dict[int, int]:
    """Poll the pin table while the script runs, emitting each change."""
    seen: Dict[int, int] = {}
    deadline = time.monotonic() + max(duration, 0.0)
    while True:
        current = interpreter.pins()
        for pin in sorted(current):
            if seen.get(pin) != current[pin]:
                interpreter.io.emit("~", f"pin {pin} = {current[pin]}")
        seen = current
        if time.monotonic() >= deadline or not interpreter.is_running():
            return seen
        time.sleep(POLL_INTERVAL)


def main(argv: List[str] = None):
    parser = argparse.ArgumentParser(description="Robot script interpreter")
    parser.add_argument("script", help="Path to the robot script")
    parser.add_argument(
        "--duration", type=float, default=5.0, help="Seconds to run before stopping"
    )
    parser.add_argument(
        "--sensor",
        type=parse_sensor,
        action="append",
        default=[],
        metavar="CH=CM",
        help="Inject a sonar distance (cm) for an echo channel",
    )
    parser.add_argument(
        "--check", action="store_true", help="Parse only and report diagnostics"
    )
    parser.add_argument("--config", help="TOML file with a [runtime] table")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = RuntimeConfig.from_toml(args.config) if args.config else RuntimeConfig.from_env()
        with open(args.script, "r", encoding="utf-8") as f:
            source = f.read()
    except (OSError, RoboError, ValueError) as e:
        try:
            print(f"☨ FATAL ERROR ☨\n{e}")
        except UnicodeEncodeError:
            print(f"FATAL ERROR\n{e}")
        sys.exit(1)

    interpreter = RoboInterpreter(config=config, io_handler=ConsoleIO())
    diagnostics = interpreter.load(source)
    for diagnostic in diagnostics:
        interpreter.io.emit("!", str(diagnostic))
    if args.check:
        if diagnostics:
            sys.exit(1)
        interpreter.io.emit("✓", f"{args.script}: no diagnostics")
        return

    for channel, distance in args.sensor:
        interpreter.set_sensor_value(channel, distance)

    interpreter.start()
    try:
        watch_pins(interpreter, args.duration)
    except KeyboardInterrupt:  # pragma: no cover
        pass
    finally:
        interpreter.stop()

    for diagnostic in interpreter.diagnostics[len(diagnostics):]:
        interpreter.io.emit("!", str(diagnostic))
    pins = interpreter.pins()
    for pin in sorted(pins):
        interpreter.io.emit("=", f"pin {pin} = {pins[pin]}")


if __name__ == "__main__":
    main()
