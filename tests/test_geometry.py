import math

import pytest

from cybertruck.perception import (
    DetectedObject,
    ObjectKind,
    PointCalibration,
    ScreenSide,
    SizeCalibration,
    TargetModel,
)

from conftest import ball, marker


@pytest.fixture
def model():
    return TargetModel(screen_width=320, screen_height=240, fov=52.0)


@pytest.mark.parametrize("x,expected", [(0, -26.0), (320, 26.0), (160, 0.0), (80, -13.0)])
def test_bearing_maps_screen_onto_fov(model, x, expected):
    assert model.bearing(ball(x, 100)) == pytest.approx(expected)


def test_size_calibration_fit():
    cal = SizeCalibration(((85.0, 50.0), (42.0, 100.0)))
    assert cal.k == pytest.approx((85 * 50 + 42 * 100) / 2)
    obj = DetectedObject(160, 120, 30, 40, kind=ObjectKind.MARKER)
    assert cal.distance(obj) == pytest.approx(cal.k / 50.0)


def test_bigger_marker_is_closer(model):
    near = model.distance(marker(1, size=80))
    far = model.distance(marker(1, size=20))
    assert near < far


def test_point_calibration_distance():
    cal = PointCalibration(160, 200)
    assert cal.distance(ball(160, 150)) == pytest.approx(50)
    assert cal.distance(ball(190, 160)) == pytest.approx(50)


def test_below_origin_is_unreachable():
    cal = PointCalibration(160, 200)
    assert cal.distance(ball(160, 210)) == math.inf


@pytest.mark.parametrize("w,h", [(0, 10), (10, 0), (-1, 5)])
def test_degenerate_box_is_unreachable(model, w, h):
    assert model.distance(ball(160, 100, w, h)) == math.inf
    assert model.distance(marker(1, size=0)) == math.inf


def test_select_closest(model):
    a = ball(160, 150)  # 50
    b = ball(160, 190)  # 10
    c = ball(160, 110)  # 90
    target = model.select([a, b, c], ObjectKind.BALL)
    assert target.source is b
    assert target.distance == pytest.approx(10)
    assert target.bearing == pytest.approx(0)


def test_select_tie_goes_to_first(model):
    first = ball(140, 180)
    second = ball(180, 180)
    assert model.select([first, second], ObjectKind.BALL).source is first


def test_select_nothing(model):
    assert model.select([], ObjectKind.BALL) is None
    assert model.select([ball(160, 230)], ObjectKind.BALL) is None


def test_select_never_mixes_kinds(model):
    candidates = [marker(1, size=200), ball(160, 100)]
    target = model.select(candidates, ObjectKind.BALL)
    assert target.kind == ObjectKind.BALL
    assert model.select([ball(160, 150)], ObjectKind.MARKER) is None


def test_screen_side(model):
    assert model.screen_side(ball(100, 100)) == ScreenSide.LEFT
    assert model.screen_side(ball(165, 100)) == ScreenSide.MIDDLE
    assert model.screen_side(ball(220, 100)) == ScreenSide.RIGHT


def test_target_carries_marker_id(model):
    target = model.to_target(marker(5))
    assert target.class_id == 5
    assert target.kind == ObjectKind.MARKER
    assert target.is_reachable
