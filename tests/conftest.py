"""Shared fakes for the test suite."""

import pytest

from cybertruck.params import Parameters
from cybertruck.perception import DetectedObject, Detections, DetectorMode, ObjectKind


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeActuators:
    """Records every actuator call."""

    def __init__(self):
        self.steering = 0.0
        self.throttle = 0.0
        self.auxiliary = 0.0
        self.calls = []

    def set_steering(self, angle):
        self.steering = angle
        self.calls.append(("steering", angle))

    def set_throttle(self, percent):
        self.throttle = percent
        self.calls.append(("throttle", percent))

    def set_auxiliary(self, percent):
        self.auxiliary = percent
        self.calls.append(("auxiliary", percent))


class FakeMotor(FakeActuators):
    """Driver board stand-in for the controller loop."""

    def __init__(self):
        super().__init__()
        self.acceleration = (0.0, 0.0)
        self.heading = None
        self.is_connected = False
        self.updates = 0

    def connect(self):
        self.is_connected = True
        return True

    def disconnect(self):
        self.is_connected = False

    def update(self):
        self.updates += 1
        return False


class FakeDetector:
    """Camera stand-in returning scripted detections."""

    def __init__(self):
        self.mode = None
        self.modes = []
        self.detections = Detections()
        self.is_running = False

    def set_mode(self, mode: DetectorMode):
        self.mode = mode
        self.modes.append(mode)

    def refresh(self) -> Detections:
        return self.detections

    def start(self):
        self.is_running = True
        return True

    def stop(self):
        self.is_running = False


def ball(x: float, y: float, w: float = 20, h: float = 20) -> DetectedObject:
    return DetectedObject(screen_x=x, screen_y=y, width=w, height=h, kind=ObjectKind.BALL)


def marker(class_id: int, x: float = 160, y: float = 120, size: float = 60) -> DetectedObject:
    return DetectedObject(
        screen_x=x, screen_y=y, width=size, height=size, class_id=class_id, kind=ObjectKind.MARKER
    )


def detections(*objects: DetectedObject) -> Detections:
    return Detections.from_objects(list(objects))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def actuators():
    return FakeActuators()


@pytest.fixture
def params():
    return Parameters()


@pytest.fixture
def detector():
    return FakeDetector()
