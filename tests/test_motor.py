import pytest

from cybertruck.sensors.motor import Motor


class FakeSerial:
    def __init__(self, lines=()):
        self.written = []
        self.lines = list(lines)
        self.closed = False

    @property
    def in_waiting(self):
        return sum(len(line) for line in self.lines)

    def readline(self):
        return self.lines.pop(0) if self.lines else b""

    def write(self, data):
        self.written.append(data)

    def reset_input_buffer(self):
        self.lines.clear()

    def close(self):
        self.closed = True


@pytest.fixture
def link():
    return FakeSerial()


@pytest.fixture
def motor(link):
    m = Motor(port="/dev/null-driver")
    m._serial = link
    m._connected = True
    return m


def test_setters_send_full_command(motor, link):
    motor.set_throttle(40)
    motor.set_steering(10)
    motor.set_auxiliary(50)
    assert link.written == [b"C:40,90,0\n", b"C:40,100,0\n", b"C:40,100,50\n"]


def test_setters_are_idempotent(motor, link):
    motor.set_throttle(40)
    motor.set_throttle(40)
    motor.set_throttle(40.2)
    assert len(link.written) == 1
    assert motor.commands_sent == 1


def test_setters_clamp(motor):
    motor.set_steering(90)
    motor.set_throttle(-250)
    motor.set_auxiliary(-5)
    assert (motor.steering, motor.throttle, motor.auxiliary) == (45, -100, 0)


def test_status_line_updates_imu(motor):
    assert motor.heading is None
    assert motor.parse_status("S:12.5,-40,370\n")
    assert motor.acceleration == (12.5, -40.0)
    assert motor.heading == 10.0


@pytest.mark.parametrize("line", ["S:1,2", "S:a,b,c", "E:42", "garbage", ""])
def test_bad_status_lines_are_ignored(motor, line):
    assert not motor.parse_status(line)
    assert motor.heading is None


def test_update_reads_from_serial(motor, link):
    link.lines = [b"S:100,200,90\n"]
    assert motor.update()
    assert motor.heading == 90.0
    assert not motor.update()


def test_disconnect_sends_emergency_stop(motor, link):
    motor.set_throttle(60)
    motor.disconnect()
    assert link.written[-1] == b"E\n"
    assert link.closed
    assert motor.throttle == 0
    assert not motor.is_connected


def test_unconnected_motor_keeps_values():
    motor = Motor(port="/dev/null-driver")
    motor.set_throttle(30)
    assert motor.throttle == 30
    assert motor.commands_sent == 0


def test_connect_fails_without_port():
    motor = Motor(port="/dev/does-not-exist")
    assert motor.connect() is False
    assert not motor.is_connected
