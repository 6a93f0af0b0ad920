# errors.py
"""Exception hierarchy shared by the camera, detector and Roomba driver."""


class ColorServoError(RuntimeError):
    """Base class for every error raised by this package."""


class CameraError(ColorServoError):
    """Raised when the capture device cannot be opened."""


class MotorError(ColorServoError):
    """Raised when the serial transport cannot be opened or written."""
