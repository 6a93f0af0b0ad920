# common.py
"""Objects that are shared across multiple modules."""
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Reserved Roomba turn radii
STRAIGHT_RADIUS = 32767
SPIN_CCW = 1
SPIN_CW = -1


class Position(str, Enum):
    """Horizontal position of the largest color blob in the frame."""
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    CENTERED = "CENTERED"
    NOT_FOUND = "NOT FOUND"


class SeekState(str, Enum):
    SPINNING = "SPINNING"
    CENTERING = "CENTERING"
    FOLLOWING = "FOLLOWING"
    STOPPED = "STOPPED"


class Direction(str, Enum):
    STOP = "STOP"
    FORWARD = "FORWARD"
    LEFT = "LEFT"
    RIGHT = "RIGHT"


@dataclass(frozen=True)
class DriveCommand:
    """
    A single Roomba drive instruction.
    ``velocity`` is in mm/s (negative = reverse); ``radius`` in mm or one of
    STRAIGHT_RADIUS / SPIN_CCW / SPIN_CW.
    """
    velocity: int
    radius: int


STOP = DriveCommand(0, 0)


class LatestValue(Generic[T]):
    """
    Single-slot, overwrite-on-write cell.
    Writers replace the value, readers get whatever was written last; nothing
    is queued.
    """

    def __init__(self, initial: Optional[T] = None):
        self._value = initial
        self._lock = threading.Lock()

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value

    def get(self) -> Optional[T]:
        with self._lock:
            return self._value
