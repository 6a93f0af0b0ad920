import logging
import threading
import time

import numpy as np
import pytest

from color_servo.common import Position
from color_servo.config import DetectionConfig
from color_servo.detector import ColorDetector, center_zone, classify, render_display
from color_servo.errors import CameraError

from conftest import LIME_RANGE, FakeCamera, blank_frame, paint

LIME = DetectionConfig(lower_hsv=LIME_RANGE[0], upper_hsv=LIME_RANGE[1])

# 240 px wide / 12 -> 20 px zone spanning x = 110..130


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


# ------------------------- center zone -------------------------
@pytest.mark.parametrize("width,height", [(1, 1), (11, 7), (12, 5), (240, 120), (641, 480), (1920, 1080)])
def test_center_zone_symmetric_and_inside_frame(width, height):
    x0, y0, x1, y1 = center_zone(width, height, 12)
    assert 0 <= x0 <= x1 <= width
    assert (y0, y1) == (0, height)
    assert abs((x0 + x1) / 2 - width / 2) <= 0.5
    assert x1 - x0 <= width // 12


def test_center_zone_width_is_fraction_of_frame():
    assert center_zone(240, 120, 12) == (110, 0, 130, 120)
    assert center_zone(240, 120, 4) == (90, 0, 150, 120)


# --------------------------- classify --------------------------
def test_empty_frame_is_not_found():
    detection = classify(blank_frame(), LIME)
    assert detection.position is Position.NOT_FOUND
    assert detection.bbox is None


def test_out_of_range_color_is_not_found():
    frame = paint(blank_frame(), 100, 30, 40, 40, color=(255, 0, 0))  # blue
    assert classify(frame, LIME).position is Position.NOT_FOUND


def test_blob_on_the_left():
    frame = paint(blank_frame(), 10, 30, 40, 40)
    detection = classify(frame, LIME)
    assert detection.position is Position.LEFT
    assert detection.bbox is not None


def test_blob_on_the_right():
    frame = paint(blank_frame(), 185, 30, 40, 40)
    assert classify(frame, LIME).position is Position.RIGHT


def test_blob_overlapping_zone_is_centered():
    frame = paint(blank_frame(), 95, 30, 25, 40)
    assert classify(frame, LIME).position is Position.CENTERED


def test_largest_blob_wins_over_smaller_ones():
    frame = paint(blank_frame(), 100, 20, 40, 80)     # big, centered
    paint(frame, 10, 40, 20, 20)                      # small, left
    paint(frame, 200, 40, 20, 20)                     # small, right
    assert classify(frame, LIME).position is Position.CENTERED

    frame = paint(blank_frame(), 5, 10, 60, 90)       # big, left
    paint(frame, 112, 50, 15, 15)                     # small, centered
    assert classify(frame, LIME).position is Position.LEFT


def test_min_area_threshold_is_exclusive():
    frame = paint(blank_frame(), 10, 30, 30, 30)
    area = classify(frame, DetectionConfig(LIME_RANGE[0], LIME_RANGE[1], min_contour_area=0)).area
    assert area > 0

    at_threshold = DetectionConfig(LIME_RANGE[0], LIME_RANGE[1], min_contour_area=area)
    assert classify(frame, at_threshold).position is Position.NOT_FOUND

    below = DetectionConfig(LIME_RANGE[0], LIME_RANGE[1], min_contour_area=area - 1)
    assert classify(frame, below).position is Position.LEFT


def test_speckle_noise_is_removed():
    frame = blank_frame()
    for x in range(0, 240, 12):
        paint(frame, x, 60, 2, 2)
    assert classify(frame, DetectionConfig(LIME_RANGE[0], LIME_RANGE[1], min_contour_area=0)).position \
        is Position.NOT_FOUND


def test_grayscale_frame_is_accepted():
    frame = np.full((120, 240), 200, dtype=np.uint8)
    assert classify(frame, LIME).position is Position.NOT_FOUND


def test_render_display_stacks_original_status_and_mask():
    frame = paint(blank_frame(), 10, 30, 40, 40)
    display = render_display(frame, classify(frame, LIME))
    assert display.shape == (120 * 2 + 60, 240, 3)
    assert display.dtype == np.uint8


# ------------------------ ColorDetector ------------------------
def test_position_defaults_to_not_found():
    detector = ColorDetector(LIME, camera=FakeCamera())
    assert detector.get_position() is Position.NOT_FOUND
    assert detector.get_display_frame() is None
    assert detector.get_last_frame() is None


def test_process_frame_publishes_position_and_frames():
    detector = ColorDetector(LIME, camera=FakeCamera())
    frame = paint(blank_frame(), 185, 30, 40, 40)
    detector.process_frame(frame)

    assert detector.get_position() is Position.RIGHT
    assert detector.get_display_frame().shape == (300, 240, 3)
    last = detector.get_last_frame()
    assert np.array_equal(last, frame)
    last[:] = 0
    assert detector.get_last_frame().any()  # callers get copies


def test_loop_retries_empty_reads_and_publishes():
    frame = paint(blank_frame(), 10, 30, 40, 40)
    camera = FakeCamera([None, np.zeros((0, 0, 3), dtype=np.uint8), frame])
    detector = ColorDetector(LIME, camera=camera)
    detector.start()
    try:
        assert _wait_for(lambda: detector.get_position() is Position.LEFT)
    finally:
        detector.stop()
    assert camera.reads >= 3
    assert not detector.is_running


def test_start_and_stop_are_idempotent():
    detector = ColorDetector(LIME, camera=FakeCamera([blank_frame()]))
    detector.start()
    thread = detector._thread
    detector.start()
    assert detector._thread is thread
    detector.stop()
    detector.stop()
    assert not thread.is_alive()


def test_set_color_range_takes_effect_on_next_cycle():
    detector = ColorDetector(LIME, camera=FakeCamera())
    frame = paint(blank_frame(), 10, 30, 40, 40)
    assert detector.process_frame(frame).position is Position.LEFT

    detector.set_color_range((100, 100, 100), (130, 255, 255))
    assert detector.process_frame(frame).position is Position.NOT_FOUND


def test_close_releases_camera_and_frames():
    camera = FakeCamera([blank_frame()])
    detector = ColorDetector(LIME, camera=camera)
    detector.start()
    detector.stop()
    detector.close()
    detector.close()
    assert camera.released
    assert detector.get_display_frame() is None
    with pytest.raises(CameraError):
        detector.start()


def test_unopenable_camera_raises(monkeypatch):
    class DeadCamera:
        def __init__(self, config):
            self.config = config

        def open(self):
            return False

    monkeypatch.setattr("color_servo.detector.Camera", DeadCamera)
    with pytest.raises(CameraError):
        ColorDetector(LIME)


@pytest.mark.parametrize(
    "lower,upper",
    [
        ((0, 0, 0), (180, 300, 255)),   # S above 255
        ((0, 0, 0), (181, 255, 255)),   # H above 180
        ((-1, 0, 0), (10, 255, 255)),
        ((60, 100, 100), (50, 255, 255)),  # lower H > upper H
        ((0, 0), (10, 255, 255)),
    ],
)
def test_invalid_color_range_is_rejected_and_old_range_kept(lower, upper):
    detector = ColorDetector(LIME, camera=FakeCamera())
    with pytest.raises(ValueError):
        detector.set_color_range(lower, upper)
    assert (detector.config.lower_hsv, detector.config.upper_hsv) == LIME_RANGE


def test_invalid_initial_range_raises():
    config = DetectionConfig(lower_hsv=(0, 0, 0), upper_hsv=(180, 256, 255))
    with pytest.raises(ValueError):
        ColorDetector(config, camera=FakeCamera())


def test_loop_survives_processing_errors(monkeypatch, caplog):
    import cv2

    from color_servo import detector as detector_module

    real_classify = detector_module.classify
    calls = []

    def flaky_classify(frame, config):
        calls.append(frame)
        if len(calls) == 1:
            return real_classify(frame, config)
        raise cv2.error("bad bounds")

    monkeypatch.setattr(detector_module, "classify", flaky_classify)
    frame = paint(blank_frame(), 100, 30, 40, 40)
    detector = ColorDetector(LIME, camera=FakeCamera([frame]))
    with caplog.at_level(logging.WARNING, logger="color_servo.detector"):
        detector.start()
        try:
            assert _wait_for(lambda: len(calls) >= 3)
            assert detector._thread.is_alive()
            assert detector.get_position() is Position.NOT_FOUND
        finally:
            detector.stop()
    assert "Frame processing failed" in caplog.text


def test_restart_forgets_previous_position():
    detector = ColorDetector(LIME, camera=FakeCamera())
    detector.process_frame(paint(blank_frame(), 100, 30, 40, 40))
    assert detector.get_position() is Position.CENTERED

    detector.start()
    try:
        assert detector.get_position() is Position.NOT_FOUND
    finally:
        detector.stop()


class GatedCamera:
    """Blocks inside ``read()`` until the test opens the gate."""

    def __init__(self):
        self.entered = threading.Event()
        self.gate = threading.Event()

    def read(self):
        self.entered.set()
        self.gate.wait(2.0)
        return None

    def release(self) -> None:
        pass


def test_start_during_stop_waits_for_old_loop():
    camera = GatedCamera()
    detector = ColorDetector(LIME, camera=camera)
    detector.start()
    old_thread = detector._thread
    assert camera.entered.wait(2.0)

    stopper = threading.Thread(target=detector.stop)
    stopper.start()
    time.sleep(0.05)
    starter = threading.Thread(target=detector.start)
    starter.start()
    time.sleep(0.05)
    camera.gate.set()

    stopper.join(2.0)
    starter.join(2.0)
    try:
        assert not stopper.is_alive()
        assert not starter.is_alive()
        assert not old_thread.is_alive()
        assert detector.is_running
        assert detector._thread is not old_thread
    finally:
        detector.stop()
    assert not detector.is_running
