# detector.py
"""HSV color-segmentation detector that reduces frames to a Position."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import cv2
import numpy as np

from color_servo.camera import Camera
from color_servo.common import LatestValue, Position
from color_servo.config import HSV, CameraConfig, DetectionConfig, check_color_range
from color_servo.errors import CameraError

log = logging.getLogger(__name__)

Rect = Tuple[int, int, int, int]  # x0, y0, x1, y1

# Drawing colors (BGR)
_GREEN = (0, 255, 0)
_RED = (0, 0, 255)
_BLUE = (255, 0, 0)
_WHITE = (255, 255, 255)

STATUS_BAR_HEIGHT = 60


@dataclass(frozen=True)
class Detection:
    """Result of classifying a single frame."""
    position: Position
    bbox: Optional[Tuple[int, int, int, int]]  # x, y, w, h of the largest blob
    area: float
    zone: Rect
    mask: np.ndarray


# ---------------------------------------------------------------------------
#                              Pure pipeline
# ---------------------------------------------------------------------------
def center_zone(width: int, height: int, divisor: int) -> Rect:
    """Full-height band of ``width // divisor`` pixels around the midline."""
    zone_w = width // divisor if divisor > 0 else 0
    mid = width // 2
    return (mid - zone_w // 2, 0, mid + zone_w // 2, height)


def _overlaps(a: Rect, b: Rect) -> bool:
    # Empty rectangles never overlap anything
    if a[0] >= a[2] or a[1] >= a[3] or b[0] >= b[2] or b[1] >= b[3]:
        return False
    return a[0] < b[2] and b[0] < a[2] and a[1] < b[3] and b[1] < a[3]


def _to_bgr(frame: np.ndarray) -> np.ndarray:
    if frame.ndim == 2 or (frame.ndim == 3 and frame.shape[2] == 1):
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    if frame.ndim == 3 and frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
    return frame


def classify(frame: np.ndarray, config: DetectionConfig) -> Detection:
    """
    Run blur -> HSV -> inRange -> erode -> dilate -> contours on ``frame`` and
    classify the largest blob against the center zone.
    """
    bgr = _to_bgr(frame)
    height, width = bgr.shape[:2]
    zone = center_zone(width, height, config.center_divisor)

    k = config.blur_kernel_size
    blurred = cv2.GaussianBlur(bgr, (k, k), 0)
    hsv = cv2.cvtColor(blurred, cv2.COLOR_BGR2HSV)
    mask = cv2.inRange(
        hsv,
        np.array(config.lower_hsv, dtype=np.uint8),
        np.array(config.upper_hsv, dtype=np.uint8),
    )

    kernel = cv2.getStructuringElement(
        cv2.MORPH_RECT, (config.morph_kernel_size, config.morph_kernel_size)
    )
    mask = cv2.erode(mask, kernel)
    mask = cv2.dilate(mask, kernel)

    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    if not contours:
        return Detection(Position.NOT_FOUND, None, 0.0, zone, mask)

    largest = max(contours, key=cv2.contourArea)
    area = float(cv2.contourArea(largest))
    if area <= config.min_contour_area:
        return Detection(Position.NOT_FOUND, None, area, zone, mask)

    x, y, w, h = cv2.boundingRect(largest)
    if _overlaps((x, y, x + w, y + h), zone):
        position = Position.CENTERED
    elif x + w // 2 < zone[0]:
        position = Position.LEFT
    else:
        position = Position.RIGHT
    return Detection(position, (x, y, w, h), area, zone, mask)


def render_display(frame: np.ndarray, detection: Detection) -> np.ndarray:
    """Original on top, status bar in the middle, color mask at the bottom."""
    original = _to_bgr(frame).copy()
    colored_mask = cv2.cvtColor(detection.mask, cv2.COLOR_GRAY2BGR)
    height, width = original.shape[:2]

    x0, y0, x1, y1 = detection.zone
    for img in (original, colored_mask):
        if detection.bbox is not None:
            x, y, w, h = detection.bbox
            cv2.rectangle(img, (x, y), (x + w, y + h), _GREEN, 2)
        cv2.rectangle(img, (x0, y0), (x1, y1), _BLUE, 1)

    total_height = height * 2 + STATUS_BAR_HEIGHT
    combined = np.zeros((total_height, width, 3), dtype=np.uint8)
    combined[:height] = original
    combined[height + STATUS_BAR_HEIGHT:] = colored_mask

    cv2.putText(combined, "Original", (10, 25), cv2.FONT_HERSHEY_PLAIN, 1.2, _WHITE, 2)
    cv2.putText(
        combined, "Color Mask", (10, height + STATUS_BAR_HEIGHT + 25),
        cv2.FONT_HERSHEY_PLAIN, 1.2, _WHITE, 2,
    )

    text = detection.position.value
    color = _GREEN if detection.position is Position.CENTERED else _RED
    (text_w, _), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_DUPLEX, 1.5, 2)
    cv2.putText(
        combined, text, ((width - text_w) // 2, height + STATUS_BAR_HEIGHT // 2 + 10),
        cv2.FONT_HERSHEY_DUPLEX, 1.5, color, 2,
    )
    return combined


# ---------------------------------------------------------------------------
#                            Threaded detector
# ---------------------------------------------------------------------------
class ColorDetector:
    """
    Owns the camera and continuously publishes the latest Position.

    ``camera`` may be any object with ``read() -> frame | None`` and
    ``release()``; by default a :class:`Camera` is opened on
    ``config.camera_id`` and a :class:`CameraError` is raised if that fails.
    """

    def __init__(self, config: DetectionConfig, camera=None):
        check_color_range(config.lower_hsv, config.upper_hsv)
        self.config = config
        if camera is None:
            camera = Camera(CameraConfig(device_index=config.camera_id))
            if not camera.open():
                raise CameraError(f"Could not open camera {config.camera_id}")
        self.camera = camera

        self._position: LatestValue[Position] = LatestValue(Position.NOT_FOUND)
        self._last_frame: LatestValue[np.ndarray] = LatestValue()
        self._display_frame: LatestValue[np.ndarray] = LatestValue()

        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    # ------------------ Lifecycle --------------------
    def start(self) -> None:
        with self._state_lock:
            if self._closed:
                raise CameraError("Detector is closed")
            if self._thread is not None:
                return
            # Nothing from a previous run is current any more
            self._position.set(Position.NOT_FOUND)
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._loop, args=(self._stop_event,), name="color-detector", daemon=True
            )
            self._thread.start()
        log.info("Color detection started")

    def stop(self) -> None:
        """Signal the loop and wait for it to exit (at most one frame period)."""
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            if thread is not threading.current_thread():
                thread.join()
            self._thread = None
        log.info("Color detection stopped")

    def close(self) -> None:
        self.stop()
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
        self.camera.release()
        self._last_frame.set(None)
        self._display_frame.set(None)

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    # ------------------ Queries ----------------------
    def get_position(self) -> Position:
        return self._position.get()

    def get_last_frame(self) -> Optional[np.ndarray]:
        frame = self._last_frame.get()
        return None if frame is None else frame.copy()

    def get_display_frame(self) -> Optional[np.ndarray]:
        frame = self._display_frame.get()
        return None if frame is None else frame.copy()

    def set_color_range(self, lower: HSV, upper: HSV) -> None:
        """
        Swap the HSV bounds; the next cycle picks them up.
        Raises ``ValueError`` (and keeps the old range) if the bounds are invalid.
        """
        lower, upper = check_color_range(lower, upper)
        self.config = replace(self.config, lower_hsv=lower, upper_hsv=upper)
        log.info("Color range set to %s - %s", lower, upper)

    # ------------------ Processing -------------------
    def process_frame(self, frame: np.ndarray) -> Detection:
        """Classify one frame and publish the results."""
        detection = classify(frame, self.config)
        self._position.set(detection.position)
        self._last_frame.set(frame.copy())
        try:
            self._display_frame.set(render_display(frame, detection))
        except cv2.error as exc:
            log.debug("Display render failed: %s", exc)
        return detection

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            frame = self.camera.read()
            if frame is None or frame.size == 0:
                log.debug("Empty frame, retrying")
                time.sleep(self.config.read_retry_s)
                continue
            try:
                self.process_frame(frame)
            except (cv2.error, ValueError, OverflowError) as exc:
                log.warning("Frame processing failed: %s", exc)
                self._position.set(Position.NOT_FOUND)
                time.sleep(self.config.read_retry_s)
