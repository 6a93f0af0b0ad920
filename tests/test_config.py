import pytest

from color_servo.config import COLOR_PRESETS, DetectionConfig, check_color_range, detection_config_for


def test_presets_use_opencv_hsv_scale():
    for lower, upper in COLOR_PRESETS.values():
        assert all(lo <= hi for lo, hi in zip(lower, upper))
        assert upper[0] <= 180
        assert max(upper[1:]) <= 255


def test_detection_config_for_keeps_base_settings():
    base = DetectionConfig(min_contour_area=50, camera_id=2)
    config = detection_config_for("Yellow", base)
    assert (config.lower_hsv, config.upper_hsv) == COLOR_PRESETS["yellow"]
    assert config.min_contour_area == 50
    assert config.camera_id == 2
    assert base.lower_hsv == (35, 100, 100)


def test_unknown_color_is_green():
    config = detection_config_for("ultraviolet")
    assert (config.lower_hsv, config.upper_hsv) == COLOR_PRESETS["green"]


def test_check_color_range_rejects_bad_bounds():
    with pytest.raises(ValueError, match="S bound"):
        check_color_range((0, 0, 0), (180, 300, 255))
    with pytest.raises(ValueError, match="Lower V"):
        check_color_range((0, 0, 200), (180, 255, 100))
