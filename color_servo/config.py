# config.py
"""Typed configuration blobs for the whole system."""
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

HSV = Tuple[int, int, int]

# OpenCV 8-bit HSV: hue is halved to fit a byte
HSV_MAX = (180, 255, 255)


def check_color_range(lower: HSV, upper: HSV) -> Tuple[HSV, HSV]:
    """Return the bounds as int tuples or raise ``ValueError`` if they are unusable."""
    lower, upper = tuple(int(v) for v in lower), tuple(int(v) for v in upper)
    if len(lower) != 3 or len(upper) != 3:
        raise ValueError(f"HSV bounds need three components, got {lower} - {upper}")
    for name, lo, hi, top in zip("HSV", lower, upper, HSV_MAX):
        if not 0 <= lo <= top or not 0 <= hi <= top:
            raise ValueError(f"{name} bound out of range 0..{top}: {lower} - {upper}")
        if lo > hi:
            raise ValueError(f"Lower {name} exceeds upper: {lower} - {upper}")
    return lower, upper


# ---------------------- Camera ----------------------
@dataclass
class CameraConfig:
    device_index: int = 0
    width: Optional[int] = None         # None keeps the driver default
    height: Optional[int] = None
    settle_time_s: float = 0.1


# ---------------------- Detection -------------------
@dataclass
class DetectionConfig:
    lower_hsv: HSV = (35, 100, 100)     # Green, OpenCV HSV scale (H 0-180)
    upper_hsv: HSV = (50, 255, 255)
    center_divisor: int = 12            # Center zone is 1/12 of the frame width
    min_contour_area: float = 300.0
    morph_kernel_size: int = 5
    blur_kernel_size: int = 5
    camera_id: int = 0
    read_retry_s: float = 0.01


# --------------------- Controllers ------------------
@dataclass
class SeekConfig:
    spin_speed: int = 100
    forward_speed: int = 150
    adjustment_speed: int = 80
    update_interval_s: float = 0.05
    lost_color_timeout_s: float = 2.0
    detection: DetectionConfig = field(default_factory=DetectionConfig)


@dataclass
class LineFollowConfig:
    forward_speed: int = 150
    turning_speed: int = 100
    update_interval_s: float = 0.05
    detection: DetectionConfig = field(default_factory=DetectionConfig)


@dataclass
class TrackConfig:
    rotation_speed: int = 35
    forward_speed: int = 130
    update_interval_s: float = 0.05
    stop_delay_s: float = 0.3
    detection: DetectionConfig = field(default_factory=DetectionConfig)


# ----------------------- Roomba ---------------------
@dataclass
class RoombaConfig:
    port: str = "/dev/ttyUSB0"
    baudrate: int = 115_200
    timeout: float = 1.0
    write_timeout: Optional[float] = 1.0
    settle_delay_s: float = 0.1         # After every single-opcode command
    reset_hold_s: float = 0.1           # RTS low time during reset
    boot_wait_s: float = 2.0


# ------------------- Color presets ------------------
# Red wraps around the hue circle; only the low side is used.
COLOR_PRESETS: Dict[str, Tuple[HSV, HSV]] = {
    "red": ((0, 100, 100), (10, 255, 255)),
    "blue": ((100, 100, 100), (130, 255, 255)),
    "yellow": ((20, 100, 100), (30, 255, 255)),
    "black": ((0, 0, 0), (180, 255, 50)),
    "lime": ((45, 100, 100), (65, 255, 255)),
    "green": ((35, 100, 100), (50, 255, 255)),
}
DEFAULT_COLOR = "green"


def detection_config_for(
    color: str, base: Optional[DetectionConfig] = None
) -> DetectionConfig:
    """Return ``base`` (or the defaults) with the HSV range of a named preset.

    Unknown names fall back to green.
    """
    lower, upper = COLOR_PRESETS.get(color.lower(), COLOR_PRESETS[DEFAULT_COLOR])
    return replace(base or DetectionConfig(), lower_hsv=lower, upper_hsv=upper)
