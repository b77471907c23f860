import cv2
import numpy as np
import pytest

from cybertruck.params import Parameters
from cybertruck.perception import DetectedObject, Detections, DetectorMode, ObjectKind
from cybertruck.sensors.camera import Camera


@pytest.fixture
def camera():
    return Camera(Parameters())


def blank(width=320, height=240, value=0):
    return np.full((height, width, 3), value, dtype=np.uint8)


def test_red_blob_is_a_ball(camera):
    frame = blank()
    cv2.circle(frame, (100, 150), 15, (0, 0, 255), -1)
    found = camera.detect(frame, DetectorMode.COLOR, now=5.0)
    assert len(found.balls) == 1
    assert not found.peers and not found.markers
    ball = found.balls[0]
    assert ball.screen_x == pytest.approx(100, abs=3)
    assert ball.screen_y == pytest.approx(150, abs=3)
    assert ball.width == pytest.approx(31, abs=6)
    assert ball.last_seen == 5.0
    assert found.timestamp == 5.0


def test_yellow_blob_is_a_peer(camera):
    frame = blank()
    cv2.rectangle(frame, (200, 60), (240, 100), (0, 255, 255), -1)
    found = camera.detect(frame, DetectorMode.COLOR)
    assert len(found.peers) == 1
    assert found.peers[0].kind == ObjectKind.PEER
    assert not found.balls


def test_small_blobs_are_ignored(camera):
    frame = blank()
    cv2.circle(frame, (100, 100), 2, (0, 0, 255), -1)
    assert camera.detect(frame, DetectorMode.COLOR).is_empty


def test_coordinates_are_scaled_to_screen(camera):
    frame = blank(640, 480)
    cv2.circle(frame, (200, 300), 30, (0, 0, 255), -1)
    ball = camera.detect(frame, DetectorMode.COLOR).balls[0]
    assert ball.screen_x == pytest.approx(100, abs=3)
    assert ball.screen_y == pytest.approx(150, abs=3)


def test_aruco_marker_is_detected(camera):
    dictionary = cv2.aruco.getPredefinedDictionary(cv2.aruco.DICT_4X4_50)
    tag = cv2.aruco.generateImageMarker(dictionary, 7, 100)
    gray = np.full((240, 320), 255, dtype=np.uint8)
    gray[70:170, 110:210] = tag
    frame = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    found = camera.detect(frame, DetectorMode.MARKERS)
    assert [m.class_id for m in found.markers] == [7]
    assert found.markers[0].screen_x == pytest.approx(160, abs=3)
    assert found.markers[0].width == pytest.approx(100, abs=5)


def test_markers_mode_ignores_colours(camera):
    frame = blank()
    cv2.circle(frame, (100, 150), 15, (0, 0, 255), -1)
    assert camera.detect(frame, DetectorMode.MARKERS).is_empty


def test_mode_switch_discards_old_detections(camera):
    camera._detections = Detections(balls=[DetectedObject(1, 1, 5, 5, kind=ObjectKind.BALL)])
    camera.set_mode(DetectorMode.MARKERS)
    assert not camera.refresh().is_empty
    camera.set_mode(DetectorMode.COLOR)
    assert camera.mode == DetectorMode.COLOR
    assert camera.refresh().is_empty


def test_refresh_returns_a_snapshot(camera):
    camera._detections = Detections(balls=[DetectedObject(1, 1, 5, 5, kind=ObjectKind.BALL)])
    snapshot = camera.refresh()
    snapshot.balls.clear()
    assert len(camera.refresh().balls) == 1
