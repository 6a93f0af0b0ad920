# camera.py
"""A thin wrapper around cv2.VideoCapture."""
import logging
import time
from typing import Optional

import cv2
import numpy as np

from color_servo.config import CameraConfig

log = logging.getLogger(__name__)


class Camera:
    def __init__(self, config: CameraConfig):
        self.config = config
        self.cap: Optional[cv2.VideoCapture] = None

        # Exposed runtime values
        self.actual_width = 0
        self.actual_height = 0
        self.actual_fps = 0.0

    # --------------- Public API ---------------------
    def open(self) -> bool:
        self.cap = cv2.VideoCapture(self.config.device_index)
        if not self.cap or not self.cap.isOpened():
            log.error("Could not open camera %s", self.config.device_index)
            self.cap = None
            return False

        # Apply settings
        if self.config.width:
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        if self.config.height:
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)

        time.sleep(self.config.settle_time_s)  # Let driver settle

        # Query what we actually got
        self.actual_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.actual_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.actual_fps = self.cap.get(cv2.CAP_PROP_FPS)
        log.info(
            "Camera %s: %dx%d@%.1f FPS",
            self.config.device_index,
            self.actual_width,
            self.actual_height,
            self.actual_fps,
        )
        return True

    def read(self) -> Optional[np.ndarray]:
        if not self.is_opened():
            return None
        ret, frame = self.cap.read()
        return frame if ret else None

    def is_opened(self) -> bool:
        return bool(self.cap and self.cap.isOpened())

    def release(self) -> None:
        if self.cap:
            log.info("Releasing capture device %s", self.config.device_index)
            self.cap.release()
            self.cap = None
