# policies.py
"""Position -> drive-command policies plugged into the sampling Controller.

A policy is plain state: ``initial_command`` on start, ``decide`` once per tick
and ``halt`` on an explicit stop. Returning ``None`` from ``decide`` means
"leave the current motion alone".
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from color_servo.common import (
    SPIN_CCW,
    SPIN_CW,
    STOP,
    STRAIGHT_RADIUS,
    Direction,
    DriveCommand,
    Position,
    SeekState,
)
from color_servo.config import LineFollowConfig, SeekConfig, TrackConfig

log = logging.getLogger(__name__)


class Policy(ABC):
    """Base class; concrete policies implement the three hooks and ``state``."""

    @property
    @abstractmethod
    def state(self):
        ...

    @abstractmethod
    def initial_command(self) -> Optional[DriveCommand]:
        ...

    @abstractmethod
    def decide(self, position: Position, now: float) -> Optional[DriveCommand]:
        ...

    @abstractmethod
    def halt(self) -> None:
        ...


# ---------------------------------------------------------------------------
#                               Seek
# ---------------------------------------------------------------------------
class SeekPolicy(Policy):
    """
    SPINNING -> (CENTERING) -> FOLLOWING -> STOPPED.

    Spotting the color while spinning with it already centered goes straight
    to FOLLOWING. Losing it while CENTERING/FOLLOWING is tolerated for
    ``lost_color_timeout_s``; losing it while SPINNING just keeps spinning.
    """

    def __init__(self, config: SeekConfig):
        self.config = config
        self._state = SeekState.STOPPED
        self.last_seen: Optional[float] = None
        self.last_command: Optional[DriveCommand] = None

    @property
    def state(self) -> SeekState:
        return self._state

    def _forward(self) -> DriveCommand:
        return DriveCommand(self.config.forward_speed, STRAIGHT_RADIUS)

    def _spin(self) -> DriveCommand:
        return DriveCommand(self.config.spin_speed, SPIN_CW)

    def _turn(self, position: Position) -> DriveCommand:
        radius = SPIN_CCW if position is Position.LEFT else SPIN_CW
        return DriveCommand(self.config.adjustment_speed, radius)

    def _set_state(self, state: SeekState) -> None:
        if state is not self._state:
            log.info("Seek state %s -> %s", self._state.value, state.value)
            self._state = state

    def initial_command(self) -> DriveCommand:
        self._state = SeekState.SPINNING
        self.last_seen = None
        self.last_command = self._spin()
        return self.last_command

    def decide(self, position: Position, now: float) -> Optional[DriveCommand]:
        if self._state is SeekState.STOPPED:
            return None

        if position is Position.NOT_FOUND:
            if self._state is SeekState.SPINNING:
                command = self._spin()
            elif self.last_seen is None or now - self.last_seen > self.config.lost_color_timeout_s:
                log.info("Color lost for too long - stopping")
                self._set_state(SeekState.STOPPED)
                command = STOP
            else:
                # Grace window: keep doing what we were doing
                command = self.last_command
        else:
            self.last_seen = now
            if position is Position.CENTERED:
                self._set_state(SeekState.FOLLOWING)
                command = self._forward()
            else:
                self._set_state(SeekState.CENTERING)
                command = self._turn(position)
                log.debug("Color %s - turning to center", position.value)

        self.last_command = command
        return command

    def halt(self) -> None:
        self._set_state(SeekState.STOPPED)


# ---------------------------------------------------------------------------
#                           Line follow
# ---------------------------------------------------------------------------
class LineFollowPolicy(Policy):
    """
    Reflexive steering: every tick maps Position straight to a Direction.
    No search phase and no loss timeout; NOT_FOUND stops immediately.
    Turning speed is halved on the tick the line flips sides.
    """

    def __init__(self, config: LineFollowConfig):
        self.config = config
        self.direction = Direction.STOP
        self.last_position = Position.NOT_FOUND

    @property
    def state(self) -> Direction:
        return self.direction

    def _turn_speed(self, position: Position) -> int:
        flipped = {Position.LEFT: Position.RIGHT, Position.RIGHT: Position.LEFT}[position]
        if self.last_position is flipped:
            return self.config.turning_speed // 2
        return self.config.turning_speed

    def initial_command(self) -> DriveCommand:
        self.direction = Direction.STOP
        self.last_position = Position.NOT_FOUND
        return STOP

    def decide(self, position: Position, now: float) -> DriveCommand:
        if position is Position.CENTERED:
            direction = Direction.FORWARD
            command = DriveCommand(self.config.forward_speed, STRAIGHT_RADIUS)
        elif position is Position.LEFT:
            direction = Direction.LEFT
            command = DriveCommand(self._turn_speed(position), SPIN_CCW)
        elif position is Position.RIGHT:
            direction = Direction.RIGHT
            command = DriveCommand(self._turn_speed(position), SPIN_CW)
        else:
            direction = Direction.STOP
            command = STOP

        if direction is not self.direction:
            log.debug("Line %s - %s", position.value, direction.value)
        self.direction = direction
        self.last_position = position
        return command

    def halt(self) -> None:
        self.direction = Direction.STOP


# ---------------------------------------------------------------------------
#                           Color track
# ---------------------------------------------------------------------------
class TrackPolicy(Policy):
    """
    Slow clockwise search until the color shows up, then rotation toward it.
    The rotation is halved when the color jumps straight from one side to the
    other. Once it disappears the policy waits ``stop_delay_s`` before giving
    up; after that the next NOT_FOUND tick resumes the search.
    """

    def __init__(self, config: TrackConfig):
        self.config = config
        self.direction = Direction.STOP
        self.last_seen: Optional[float] = None
        self.last_side: Optional[Position] = None

    @property
    def state(self) -> Direction:
        return self.direction

    def _search(self) -> DriveCommand:
        return DriveCommand(self.config.rotation_speed, SPIN_CW)

    def initial_command(self) -> DriveCommand:
        self.last_seen = None
        self.last_side = None
        self.direction = Direction.RIGHT
        log.info("Starting color search - rotating clockwise")
        return self._search()

    def decide(self, position: Position, now: float) -> Optional[DriveCommand]:
        if position is Position.NOT_FOUND:
            if self.last_seen is None:
                self.direction = Direction.RIGHT
                return self._search()
            if now - self.last_seen > self.config.stop_delay_s:
                log.info("Color lost - stopping")
                self.last_seen = None
                self.direction = Direction.STOP
                return STOP
            return None

        self.last_seen = now
        if position is Position.CENTERED:
            self.last_side = None
            self.direction = Direction.FORWARD
            return DriveCommand(self.config.forward_speed, STRAIGHT_RADIUS)

        speed = self.config.rotation_speed
        if self.last_side is not None and self.last_side is not position:
            speed //= 2
        self.last_side = position
        if position is Position.LEFT:
            self.direction = Direction.LEFT
            return DriveCommand(speed, SPIN_CCW)
        self.direction = Direction.RIGHT
        return DriveCommand(speed, SPIN_CW)

    def halt(self) -> None:
        self.direction = Direction.STOP
