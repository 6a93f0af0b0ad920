# color_servo/__init__.py
"""Color-seeking visual servo for a Roomba – re-export high-level API."""
from .common import (                            # noqa: F401
    STOP, STRAIGHT_RADIUS, SPIN_CCW, SPIN_CW,
    Direction, DriveCommand, Position, SeekState,
)
from .config import (                            # noqa: F401
    CameraConfig, DetectionConfig, LineFollowConfig,
    RoombaConfig, SeekConfig, TrackConfig,
    COLOR_PRESETS, check_color_range, detection_config_for,
)
from .controller import (                        # noqa: F401
    ColorTracker, Controller, LineFollower, SeekController,
)
from .detector import ColorDetector, classify    # noqa: F401
from .errors import CameraError, ColorServoError, MotorError  # noqa: F401
from .roomba import Opcode, Roomba, encode_drive  # noqa: F401
from .session import Session                     # noqa: F401
