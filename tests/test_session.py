import pytest

from cybertruck.comm import Command
from cybertruck.mission import GameMode, GameSession, GameState
from cybertruck.params import Parameters


class RecordingRobot:
    def __init__(self):
        self.params = Parameters()
        self.calls = []

    def start(self, now=None):
        self.calls.append("start")

    def stop(self, now=None):
        self.calls.append("stop")

    def go_home(self, now=None):
        self.calls.append("go_home")


@pytest.fixture
def robot():
    return RecordingRobot()


@pytest.fixture
def session(robot, clock):
    return GameSession(robot=robot, duration=400, clock=clock)


def test_initial_state(session):
    assert session.mode == GameMode.FREE
    assert session.state == GameState.STOPPED
    assert session.remaining_time() == 400


def test_start_requires_obey(session, robot):
    assert session.start() is False
    assert session.state == GameState.STOPPED
    assert robot.calls == []


def test_obey_then_start(session, robot, clock):
    session.obey()
    assert session.start() is True
    assert session.state == GameState.STARTED
    assert robot.calls == ["start"]
    clock.advance(100)
    assert session.remaining_time() == pytest.approx(300)


def test_repeated_start_keeps_the_match_clock(session, robot, clock):
    session.obey()
    session.start()
    clock.advance(300)
    assert session.start() is False
    assert session.remaining_time() == pytest.approx(100)
    assert robot.calls == ["start"]


def test_start_after_stop_begins_a_new_match(session, robot, clock):
    session.obey()
    session.start()
    clock.advance(300)
    session.stop()
    assert session.start() is True
    assert session.remaining_time() == pytest.approx(400)


def test_stop_is_forwarded(session, robot):
    session.obey()
    session.start()
    session.stop()
    assert session.state == GameState.STOPPED
    assert robot.calls == ["start", "stop"]
    assert session.remaining_time() == 400


def test_countdown_expiry_stops_once(session, robot, clock):
    session.obey()
    session.start()
    clock.advance(399)
    assert session.tick() is False
    clock.advance(2)
    assert session.tick() is True
    assert session.state == GameState.STOPPED
    clock.advance(1)
    assert session.tick() is False
    assert robot.calls == ["start", "stop"]


def test_danger_sends_robot_home(session, robot):
    session.danger()
    assert robot.calls == ["go_home"]


def test_danger_ignored_when_disabled(session, robot):
    robot.params.obey_danger = False
    session.danger()
    assert robot.calls == []


@pytest.mark.parametrize(
    "commands,calls",
    [
        ([Command.START], []),
        ([Command.OBEY, Command.START], ["start"]),
        ([Command.OBEY, Command.START, Command.STOP], ["start", "stop"]),
        ([Command.DANGER], ["go_home"]),
    ],
)
def test_handle_dispatches(session, robot, commands, calls):
    for command in commands:
        session.handle(command)
    assert robot.calls == calls


def test_standalone_session(clock):
    session = GameSession(clock=clock)
    session.handle(Command.OBEY)
    session.handle(Command.START)
    session.handle(Command.DANGER)
    assert session.is_started
    session.handle(Command.STOP)
    assert not session.is_started


def test_summary(session, clock):
    session.obey()
    session.start()
    clock.advance(10.04)
    assert session.summary() == {"mode": "SLAVE", "state": "STARTED", "remaining_time": 390.0}
