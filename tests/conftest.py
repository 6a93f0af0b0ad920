"""Shared fakes: no camera or serial hardware is touched by the tests."""
import threading
from typing import List, Optional

import numpy as np
import pytest

from color_servo.common import Position
from color_servo.config import RoombaConfig
from color_servo.roomba import Roomba

GREEN_BGR = (0, 255, 0)     # HSV (60, 255, 255): inside the lime preset
LIME_RANGE = ((45, 100, 100), (65, 255, 255))


def blank_frame(width: int = 240, height: int = 120) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


def paint(frame: np.ndarray, x: int, y: int, w: int, h: int, color=GREEN_BGR) -> np.ndarray:
    frame[y:y + h, x:x + w] = color
    return frame


class FakeCamera:
    """Replays a fixed list of frames, then keeps returning the last one."""

    def __init__(self, frames: Optional[List[Optional[np.ndarray]]] = None):
        self.frames = list(frames or [])
        self.reads = 0
        self.released = False

    def read(self):
        self.reads += 1
        if not self.frames:
            return None
        return self.frames.pop(0) if len(self.frames) > 1 else self.frames[0]

    def release(self) -> None:
        self.released = True


class FakeTransport:
    """Records writes; optionally fails them."""

    def __init__(self):
        self.writes: List[bytes] = []
        self.rts_history: List[bool] = []
        self.is_open = True
        self.fail = False
        self.closed = False
        self._lock = threading.Lock()

    @property
    def rts(self):
        return self.rts_history[-1] if self.rts_history else None

    @rts.setter
    def rts(self, value: bool) -> None:
        self.rts_history.append(value)

    def write(self, data: bytes) -> int:
        if self.fail:
            raise OSError("device unplugged")
        with self._lock:
            self.writes.append(bytes(data))
        return len(data)

    def close(self) -> None:
        self.closed = True
        self.is_open = False


class FakeDetector:
    """Stands in for ColorDetector; the test sets ``position`` directly."""

    def __init__(self, config=None):
        self.config = config
        self.position = Position.NOT_FOUND
        self.started = 0
        self.stopped = 0
        self.closed = False
        self.color_range = None

    def start(self) -> None:
        self.started += 1

    def stop(self) -> None:
        self.stopped += 1

    def close(self) -> None:
        self.closed = True

    def get_position(self) -> Position:
        return self.position

    def get_display_frame(self):
        return None

    def set_color_range(self, lower, upper) -> None:
        self.color_range = (lower, upper)


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def roomba(transport) -> Roomba:
    config = RoombaConfig(port="fake", settle_delay_s=0.0, reset_hold_s=0.0, boot_wait_s=0.0)
    return Roomba(config, transport=transport)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
