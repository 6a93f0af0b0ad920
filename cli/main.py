# main.py
"""
Entry-point for the color-seeking Roomba.

Connects to the Roomba on the given serial port, puts it in safe mode and
chases the requested color until Ctrl+C. Without a port the available serial
ports are listed instead.
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import List, Optional

from serial.tools import list_ports

from color_servo.config import COLOR_PRESETS, RoombaConfig
from color_servo.errors import ColorServoError
from color_servo.roomba import Roomba
from color_servo.session import Session

log = logging.getLogger("color_servo.cli")


def _print_ports() -> None:
    ports = [p.device for p in list_ports.comports()]
    if not ports:
        print("No serial ports found!")
        return
    print("Available serial ports:")
    for port in ports:
        print(f"  {port}")


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Drive a Roomba toward a colored marker.")
    parser.add_argument("port", nargs="?", help="serial port, e.g. /dev/ttyUSB0")
    parser.add_argument("--baudrate", type=int, default=115_200)
    parser.add_argument("--color", default="lime", choices=sorted(COLOR_PRESETS))
    parser.add_argument("--mode", default="track", choices=("track", "seek", "line"))
    parser.add_argument("--report-every", type=float, default=0.5, help="seconds between status lines")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] [%(levelname)-8s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.port:
        print("Usage: color-servo <serial_port>")
        _print_ports()
        return 1

    session = Session(Roomba(RoombaConfig(port=args.port, baudrate=args.baudrate)))
    try:
        session.connect()
        session.seek_color(args.color, mode=args.mode)
        while True:
            time.sleep(args.report_every)
            state = session.state()
            log.info(
                "Position: %s, state: %s",
                session.position().value,
                state.value if state is not None else "-",
            )
    except KeyboardInterrupt:
        log.info("Stopped by user")
    except ColorServoError as exc:
        log.error("%s", exc)
        return 1
    finally:
        try:
            session.stop()
        except ColorServoError as exc:
            log.warning("Final stop failed: %s", exc)
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
