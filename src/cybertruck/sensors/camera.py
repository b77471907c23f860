"""
Camera sensor - OpenCV capture with two detection modes.

COLOR mode detects coloured blobs:
- Red balls to collect
- Yellow peer robots

MARKERS mode detects ArUco fiducial markers placed on the arena
corners and at home base.
"""

from __future__ import annotations

import logging
import threading
import time

import cv2
import numpy as np

from cybertruck.config import CAMERA_INDEX, SCREEN_HEIGHT, SCREEN_WIDTH
from cybertruck.perception.detections import DetectedObject, Detections, DetectorMode, ObjectKind

logger = logging.getLogger(__name__)


class Camera:
    """
    Camera with colour and marker detection.

    Runs capture in background thread, provides the latest Detections.
    Box coordinates are scaled to the SCREEN_WIDTH x SCREEN_HEIGHT
    reference screen whatever the capture resolution is.

    Usage:
        params = Parameters.load()
        camera = Camera(params=params)
        camera.start()

        camera.set_mode(DetectorMode.COLOR)
        detections = camera.refresh()
        for ball in detections.balls:
            print(f"ball at {ball.screen_x}, {ball.screen_y}")

        camera.stop()
    """

    def __init__(self, params, index: int = CAMERA_INDEX, mode: DetectorMode = DetectorMode.MARKERS):
        self.params = params
        self.index = index
        self.width = params.camera_width
        self.height = params.camera_height

        self._cap: cv2.VideoCapture | None = None
        self._running = False
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

        self._mode = mode
        self._detections = Detections()
        self.frames = 0

        dictionary = cv2.aruco.getPredefinedDictionary(cv2.aruco.DICT_4X4_50)
        self._aruco = cv2.aruco.ArucoDetector(dictionary, cv2.aruco.DetectorParameters())

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def mode(self) -> DetectorMode:
        with self._lock:
            return self._mode

    def set_mode(self, mode: DetectorMode) -> None:
        """Switch detection mode. Detections of the previous mode are discarded."""
        with self._lock:
            if mode == self._mode:
                return
            self._mode = mode
            self._detections = Detections()
        logger.info(f"Camera mode: {mode.name}")

    def start(self) -> bool:
        """Start camera capture in background thread."""
        if self._running:
            logger.warning("Camera already running")
            return True

        # Read resolution from params (may have changed since __init__)
        self.width = self.params.camera_width
        self.height = self.params.camera_height

        self._cap = cv2.VideoCapture(self.index)
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        if not self._cap.isOpened():
            logger.error("Failed to open camera")
            self._cap = None
            return False

        logger.info(f"Camera started: {self.width}x{self.height}")
        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        """Stop camera capture."""
        self._running = False

        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

        if self._cap:
            self._cap.release()
            self._cap = None

        logger.info("Camera stopped")

    def refresh(self) -> Detections:
        """Latest detections snapshot."""
        with self._lock:
            d = self._detections
            return Detections(list(d.balls), list(d.markers), list(d.peers), d.timestamp)

    def _capture_loop(self):
        """Background capture and detection thread."""
        while self._running:
            ret, frame = self._cap.read()
            if not ret:
                time.sleep(0.01)
                continue

            mode = self.mode
            try:
                detections = self.detect(frame, mode, time.monotonic())
            except cv2.error as e:
                logger.error(f"Camera detection error: {e}")
                continue

            with self._lock:
                # Drop results of a frame processed before a mode switch
                if mode == self._mode:
                    self._detections = detections
                    self.frames += 1

            # Yield CPU to the control loop and web server
            time.sleep(0.005)

    def detect(self, frame: np.ndarray, mode: DetectorMode, now: float = 0.0) -> Detections:
        """Run the detector for one BGR frame."""
        if mode == DetectorMode.MARKERS:
            objects = self._detect_markers(frame, now)
        else:
            objects = self._detect_colors(frame, now)
        return Detections.from_objects(objects, timestamp=now)

    # --- Colour detection ---

    def _range(self, color: str):
        """Get (lower, upper) HSV numpy arrays for a color from Parameters."""
        p = self.params
        if color == "ball1":
            return (np.array([p.ball_h_min1, p.ball_s_min, p.ball_v_min]),
                    np.array([p.ball_h_max1, 255, 255]))
        if color == "ball2":
            return (np.array([p.ball_h_min2, p.ball_s_min, p.ball_v_min]),
                    np.array([p.ball_h_max2, 255, 255]))
        return (np.array([p.peer_h_min, p.peer_s_min, p.peer_v_min]),
                np.array([p.peer_h_max, 255, 255]))

    def _detect_colors(self, frame: np.ndarray, now: float) -> list[DetectedObject]:
        hsv = cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)
        min_area = self.params.min_contour_area

        # Red wraps around hue: two ranges
        bl1, bu1 = self._range("ball1")
        bl2, bu2 = self._range("ball2")
        mask_ball = cv2.bitwise_or(cv2.inRange(hsv, bl1, bu1), cv2.inRange(hsv, bl2, bu2))

        pl, pu = self._range("peer")
        mask_peer = cv2.inRange(hsv, pl, pu)

        scale = self._scale(frame)
        objects = self._find_blobs(mask_ball, ObjectKind.BALL, min_area, scale, now)
        objects.extend(self._find_blobs(mask_peer, ObjectKind.PEER, min_area, scale, now))
        return objects

    def _find_blobs(
        self,
        mask: np.ndarray,
        kind: ObjectKind,
        min_area: int,
        scale: tuple[float, float],
        now: float,
    ) -> list[DetectedObject]:
        """Find blobs in a binary mask."""
        kernel = np.ones((5, 5), np.uint8)
        mask = cv2.erode(mask, kernel, iterations=1)
        mask = cv2.dilate(mask, kernel, iterations=2)

        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        sx, sy = scale
        objects = []
        for contour in contours:
            if cv2.contourArea(contour) < min_area:
                continue
            x, y, w, h = cv2.boundingRect(contour)
            objects.append(
                DetectedObject(
                    screen_x=(x + w / 2) * sx,
                    screen_y=(y + h / 2) * sy,
                    width=w * sx,
                    height=h * sy,
                    kind=kind,
                    last_seen=now,
                )
            )
        return objects

    # --- Marker detection ---

    def _detect_markers(self, frame: np.ndarray, now: float) -> list[DetectedObject]:
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        corners, ids, _ = self._aruco.detectMarkers(gray)
        if ids is None:
            return []

        sx, sy = self._scale(frame)
        objects = []
        for marker_corners, marker_id in zip(corners, ids.flatten()):
            pts = marker_corners[0]
            x_min, y_min = pts.min(axis=0)
            x_max, y_max = pts.max(axis=0)
            objects.append(
                DetectedObject(
                    screen_x=float(np.mean(pts[:, 0])) * sx,
                    screen_y=float(np.mean(pts[:, 1])) * sy,
                    width=float(x_max - x_min) * sx,
                    height=float(y_max - y_min) * sy,
                    class_id=int(marker_id),
                    kind=ObjectKind.MARKER,
                    last_seen=now,
                )
            )
        return objects

    @staticmethod
    def _scale(frame: np.ndarray) -> tuple[float, float]:
        h, w = frame.shape[:2]
        return SCREEN_WIDTH / w, SCREEN_HEIGHT / h

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.stop()

