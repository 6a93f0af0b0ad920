# roomba.py
"""Serial driver for the Roomba Open Interface command set."""
from __future__ import annotations

import logging
import struct
import time
from enum import IntEnum
from typing import Optional

import serial

from color_servo.common import STRAIGHT_RADIUS, DriveCommand
from color_servo.config import RoombaConfig
from color_servo.errors import MotorError

log = logging.getLogger(__name__)

MAX_VELOCITY = 500
MAX_RADIUS = 2000

_DRIVE_FRAME = struct.Struct(">Bhh")


class Opcode(IntEnum):
    START = 128
    CONTROL = 130
    SAFE = 131
    FULL = 132
    POWER = 133
    SPOT = 134
    CLEAN = 135
    MAX = 136
    DRIVE = 137
    MOTORS = 138
    LEDS = 139
    DOCK = 143


def encode_drive(velocity: int, radius: int) -> bytes:
    """
    Build the 5-byte DRIVE frame: opcode, velocity, radius (big-endian int16).

    velocity: -500..500 mm/s
    radius:   -2000..2000 mm, or STRAIGHT_RADIUS (32767) / -32768 for straight,
              1 for counter-clockwise and -1 for clockwise spin in place.
    """
    if not -MAX_VELOCITY <= velocity <= MAX_VELOCITY:
        raise ValueError(f"velocity {velocity} outside ±{MAX_VELOCITY} mm/s")
    if not (-MAX_RADIUS <= radius <= MAX_RADIUS or radius in (STRAIGHT_RADIUS, -32768)):
        raise ValueError(f"radius {radius} outside ±{MAX_RADIUS} mm")
    return _DRIVE_FRAME.pack(Opcode.DRIVE, velocity, radius)


class Roomba:
    """
    High-level wrapper around the Roomba's binary serial protocol.

    ``transport`` may be supplied pre-built (anything with ``write``, ``rts``
    and ``close``); otherwise :meth:`connect` opens a pyserial port.
    Writers are not serialized here; callers must not drive concurrently.
    """

    def __init__(self, config: RoombaConfig, transport=None):
        self.config = config
        self._ser: Optional[serial.Serial] = transport

    # ---------------- Serial plumbing ----------------
    def connect(self) -> None:
        """Open the port and pulse RTS to reset the robot."""
        if self._ser is None:
            try:
                self._ser = serial.Serial(
                    port=self.config.port,
                    baudrate=self.config.baudrate,
                    timeout=self.config.timeout,
                    write_timeout=self.config.write_timeout,
                    bytesize=serial.EIGHTBITS,
                    parity=serial.PARITY_NONE,
                    stopbits=serial.STOPBITS_ONE,
                )
            except (serial.SerialException, OSError) as exc:
                raise MotorError(f"Failed to open serial port {self.config.port}: {exc}") from exc

        # RTS reset is not supported by every adapter
        self._ser.rts = False
        time.sleep(self.config.reset_hold_s)
        self._ser.rts = True
        time.sleep(self.config.boot_wait_s)
        log.info("Connected to Roomba on %s @ %d baud", self.config.port, self.config.baudrate)

    def close(self) -> None:
        if self._ser is not None:
            self._ser.close()
        self._ser = None

    def is_open(self) -> bool:
        return bool(self._ser is not None and getattr(self._ser, "is_open", True))

    # ------------------ Public API -------------------
    def start(self) -> None:
        self._send_command(Opcode.START)

    def control(self) -> None:
        self._send_command(Opcode.CONTROL)

    def safe_mode(self) -> None:
        self._send_command(Opcode.SAFE)

    def full_mode(self) -> None:
        self._send_command(Opcode.FULL)

    def clean(self) -> None:
        self._send_command(Opcode.CLEAN)

    def spot_clean(self) -> None:
        self._send_command(Opcode.SPOT)

    def max_clean(self) -> None:
        self._send_command(Opcode.MAX)

    def dock(self) -> None:
        self._send_command(Opcode.DOCK)

    def power_off(self) -> None:
        self._send_command(Opcode.POWER)

    def drive(self, velocity: int, radius: int) -> None:
        self._write(encode_drive(velocity, radius))

    def send(self, command: DriveCommand) -> None:
        self.drive(command.velocity, command.radius)

    def stop(self) -> None:
        self.drive(0, 0)

    # ----------------- Internal core -----------------
    def _send_command(self, opcode: Opcode) -> None:
        self._write(bytes([opcode]))
        time.sleep(self.config.settle_delay_s)  # Give the Roomba time to process

    def _write(self, data: bytes) -> None:
        if not self.is_open():
            raise MotorError("Serial port is not open")
        try:
            self._ser.write(data)
        except (serial.SerialException, OSError) as exc:
            raise MotorError(f"Serial write failed: {exc}") from exc

    # ---------------- Context / repr ---------------
    def __enter__(self) -> "Roomba":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"<Roomba port={self.config.port!r} ({state})>"
