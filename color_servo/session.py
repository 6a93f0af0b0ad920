# session.py
"""Owner of the Roomba and of at most one autonomous controller."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import numpy as np

from color_servo.common import SPIN_CCW, SPIN_CW, STRAIGHT_RADIUS, Position
from color_servo.config import (
    DetectionConfig,
    LineFollowConfig,
    SeekConfig,
    TrackConfig,
    detection_config_for,
)
from color_servo.controller import ColorTracker, Controller, LineFollower, SeekController
from color_servo.detector import ColorDetector
from color_servo.roomba import Roomba

log = logging.getLogger(__name__)

MIN_MANUAL_SPEED = 50
MAX_MANUAL_SPEED = 300
DEFAULT_MANUAL_SPEED = 150

_MODES = {
    "track": (ColorTracker, TrackConfig),
    "seek": (SeekController, SeekConfig),
    "line": (LineFollower, LineFollowConfig),
}


class Session:
    """
    Every command that reaches the Roomba goes through here. Activating a
    controller or issuing a manual command first fully stops the current
    controller, so the serial port never has two writers.
    """

    def __init__(
        self,
        roomba: Roomba,
        detector_factory: Callable[[DetectionConfig], ColorDetector] = ColorDetector,
    ):
        self.roomba = roomba
        self.detector_factory = detector_factory
        self._controller: Optional[Controller] = None
        self._lock = threading.Lock()

    # ------------------ Setup / teardown -------------
    def connect(self) -> None:
        self.roomba.connect()
        self.roomba.start()
        log.info("Roomba started")
        self.roomba.safe_mode()
        log.info("Roomba in safe mode")

    def close(self) -> None:
        self.release()
        self.roomba.close()

    # ------------------ Controllers ------------------
    @property
    def controller(self) -> Optional[Controller]:
        return self._controller

    def activate(self, controller: Controller) -> Controller:
        """Stop and close the current controller (if any), then start ``controller``."""
        with self._lock:
            self._release_locked()
            self._controller = controller
            controller.start()
        return controller

    def release(self) -> None:
        with self._lock:
            self._release_locked()

    def _release_locked(self) -> None:
        if self._controller is not None:
            self._controller.close()
            self._controller = None

    def seek_color(self, color: str, mode: str = "track") -> Controller:
        try:
            controller_cls, config_cls = _MODES[mode]
        except KeyError:
            raise ValueError(f"Unknown mode {mode!r}; expected one of {sorted(_MODES)}") from None

        config = config_cls(detection=detection_config_for(color))
        log.info("Seeking color %s (%s)", color, mode)
        # Release first: the old detector must let go of the camera
        self.release()
        detector = self.detector_factory(config.detection)
        return self.activate(controller_cls(detector, self.roomba, config))

    # ------------------ Manual commands --------------
    def stop(self) -> None:
        self.release()
        self.roomba.stop()

    def drive(self, velocity: int, radius: int) -> None:
        self.release()
        self.roomba.drive(velocity, radius)

    def move(self, command: str, speed: Optional[int] = None) -> str:
        """Manual move; ``speed`` is clamped to 50..300 mm/s."""
        speed = DEFAULT_MANUAL_SPEED if speed is None else speed
        speed = max(MIN_MANUAL_SPEED, min(MAX_MANUAL_SPEED, int(speed)))

        moves = {
            "forward": (speed, STRAIGHT_RADIUS, f"Moving forward at speed {speed}"),
            "backward": (-speed, STRAIGHT_RADIUS, f"Moving backward at speed {speed}"),
            "left": (speed, SPIN_CCW, f"Turning left at speed {speed}"),
            "right": (speed, SPIN_CW, f"Turning right at speed {speed}"),
            "stop": (0, 0, "Stopped"),
        }
        if command not in moves:
            raise ValueError(f"Unknown command {command!r}")

        velocity, radius, response = moves[command]
        self.drive(velocity, radius)
        log.info(response)
        return response

    def command(self, name: str) -> None:
        """Run a named single-opcode macro (clean, dock, ...)."""
        macros = {
            "start": self.roomba.start,
            "control": self.roomba.control,
            "safe": self.roomba.safe_mode,
            "full": self.roomba.full_mode,
            "clean": self.roomba.clean,
            "spot": self.roomba.spot_clean,
            "max": self.roomba.max_clean,
            "dock": self.roomba.dock,
            "power": self.roomba.power_off,
        }
        if name not in macros:
            raise ValueError(f"Unknown macro {name!r}")
        self.release()
        macros[name]()

    # ------------------ Queries ----------------------
    def position(self) -> Position:
        controller = self._controller
        return controller.get_position() if controller else Position.NOT_FOUND

    def state(self):
        controller = self._controller
        return controller.get_state() if controller else None

    def display_frame(self) -> Optional[np.ndarray]:
        controller = self._controller
        return controller.get_display_frame() if controller else None
