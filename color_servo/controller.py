# controller.py
"""Fixed-tick sampling loop that turns detector Positions into drive commands."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import numpy as np

from color_servo.common import STOP, Direction, DriveCommand, Position, SeekState
from color_servo.config import HSV, LineFollowConfig, SeekConfig, TrackConfig
from color_servo.detector import ColorDetector
from color_servo.errors import MotorError
from color_servo.policies import LineFollowPolicy, Policy, SeekPolicy, TrackPolicy
from color_servo.roomba import Roomba

log = logging.getLogger(__name__)


class Controller:
    """
    Shared scaffold: sample ``detector`` every ``update_interval_s`` and feed
    the Position to ``policy``; whatever command comes back goes to ``roomba``.

    ``stop()`` is cooperative: the loop notices its stop Event before the next
    tick, so it returns within roughly one tick period.
    """

    def __init__(
        self,
        detector: ColorDetector,
        roomba: Roomba,
        policy: Policy,
        update_interval_s: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.detector = detector
        self.roomba = roomba
        self.policy = policy
        self.update_interval_s = update_interval_s
        self._clock = clock

        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------ Lifecycle --------------------
    def start(self) -> None:
        with self._state_lock:
            if self._thread is not None:
                return
            self.detector.start()
            self._issue(self.policy.initial_command())
            # Fresh Event per run; a stale stop() signal never reaches it
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._loop,
                args=(self._stop_event,),
                name=f"{type(self).__name__}-{id(self):x}",
                daemon=True,
            )
            self._thread.start()
        log.info("%s started", type(self).__name__)

    def stop(self) -> None:
        """
        Stop sampling, wait for the loop to exit, stop the detector and motors.
        The lifecycle lock is held throughout, so a concurrent ``start()``
        waits for the stop to finish.
        """
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            if thread is not threading.current_thread():
                thread.join()
            self._thread = None
            self.detector.stop()
            self.policy.halt()
            self._issue(STOP)
        log.info("%s stopped", type(self).__name__)

    def close(self) -> None:
        self.stop()
        self.detector.close()

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    # ------------------ Control ----------------------
    def tick(self) -> Optional[DriveCommand]:
        """Sample the detector once and act on it."""
        position = self.detector.get_position()
        command = self.policy.decide(position, self._clock())
        self._issue(command)
        return command

    def _issue(self, command: Optional[DriveCommand]) -> None:
        if command is None:
            return
        try:
            self.roomba.send(command)
        except MotorError as exc:
            log.warning("Error controlling Roomba: %s", exc)

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.update_interval_s):
            self.tick()

    # ------------------ Queries ----------------------
    def get_position(self) -> Position:
        return self.detector.get_position()

    def get_state(self):
        return self.policy.state

    def get_display_frame(self) -> Optional[np.ndarray]:
        return self.detector.get_display_frame()

    def set_color_range(self, lower: HSV, upper: HSV) -> None:
        self.detector.set_color_range(lower, upper)


class SeekController(Controller):
    """Spin to find the color, center it, then drive at it."""

    def __init__(self, detector: ColorDetector, roomba: Roomba, config: SeekConfig, **kwargs):
        super().__init__(
            detector, roomba, SeekPolicy(config), config.update_interval_s, **kwargs
        )

    def get_current_state(self) -> SeekState:
        return self.policy.state


class LineFollower(Controller):
    """Reflexive line following with flip damping and no search phase."""

    def __init__(self, detector: ColorDetector, roomba: Roomba, config: LineFollowConfig, **kwargs):
        super().__init__(
            detector, roomba, LineFollowPolicy(config), config.update_interval_s, **kwargs
        )

    def get_current_direction(self) -> Direction:
        return self.policy.state


class ColorTracker(Controller):
    """Slow search rotation, turn toward the color, stop shortly after losing it."""

    def __init__(self, detector: ColorDetector, roomba: Roomba, config: TrackConfig, **kwargs):
        super().__init__(
            detector, roomba, TrackPolicy(config), config.update_interval_s, **kwargs
        )

    def get_current_direction(self) -> Direction:
        return self.policy.state
