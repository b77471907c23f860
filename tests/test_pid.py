import pytest

from cybertruck.control.pid import PID, clamp, wrap_angle


@pytest.mark.parametrize("lo,hi", [(-1.0, 1.0), (0.0, 100.0), (-45.0, 45.0)])
@pytest.mark.parametrize("value", [-1000.0, -45.5, -1.0, 0.0, 0.5, 44.9, 100.0, 1e9])
def test_clamp_stays_in_bounds_and_is_idempotent(lo, hi, value):
    once = clamp(value, lo, hi)
    assert lo <= once <= hi
    assert clamp(once, lo, hi) == once


def test_clamp_open_bounds():
    assert clamp(5.0) == 5.0
    assert clamp(5.0, upper=3.0) == 3.0
    assert clamp(-5.0, lower=-3.0) == -3.0
    assert clamp(None, 0, 1) is None


def test_wrap_angle():
    assert wrap_angle(190) == pytest.approx(-170)
    assert wrap_angle(-190) == pytest.approx(170)
    assert wrap_angle(0) == 0
    assert wrap_angle(45) == pytest.approx(45)


@pytest.mark.parametrize("measurement", [-200.0, -30.0, -1.0, 0.0, 3.0, 44.0, 80.0])
def test_proportional_only_output(clock, measurement):
    pid = PID(1.0, 0.0, 0.0, setpoint=10.0, output_limits=(-50, 50), clock=clock)
    clock.advance(0.05)
    assert pid.update(measurement, dt=0.05) == clamp(10.0 - measurement, -50, 50)


def test_integral_never_exceeds_limits(clock):
    pid = PID(0.0, 5.0, 0.0, setpoint=100.0, output_limits=(-10, 10), clock=clock)
    for _ in range(500):
        clock.advance(0.05)
        output = pid.update(0.0, dt=0.05)
        assert -10 <= pid.integral <= 10
        assert -10 <= output <= 10
    assert pid.integral == 10


def test_error_map_folds_angular_error(clock):
    pid = PID(1.0, 0.0, 0.0, setpoint=0.0, error_map=wrap_angle, clock=clock)
    assert pid.update(-190.0, dt=0.05) == pytest.approx(-170.0)
    assert pid.update(190.0, dt=0.05) == pytest.approx(170.0)


@pytest.mark.parametrize("dt", [0.0, -0.01])
def test_non_positive_dt_raises(clock, dt):
    pid = PID(1.0, 0.0, 0.0, clock=clock)
    with pytest.raises(ValueError):
        pid.update(1.0, dt=dt)


def test_clock_going_backwards_raises(clock):
    pid = PID(1.0, 0.0, 0.0, sample_time=None, clock=clock)
    clock.advance(0.1)
    pid.update(1.0)
    clock.advance(-0.05)
    with pytest.raises(ValueError):
        pid.update(1.0)


def test_update_at_the_same_instant_uses_tiny_dt(clock):
    pid = PID(1.0, 0.0, 0.0, setpoint=0.0, sample_time=None, clock=clock)
    assert pid.update(2.0) == pytest.approx(-2.0)
    assert pid.update(3.0) == pytest.approx(-3.0)


def test_state_snapshot(clock):
    pid = PID(2.0, 0.0, 0.0, setpoint=10.0, clock=clock)
    assert pid.state()["output"] is None
    pid.update(4.0, dt=0.1)
    state = pid.state()
    assert state["proportional"] == pytest.approx(12.0)
    assert state["error"] == pytest.approx(6.0)
    assert state["output"] == pytest.approx(12.0)
    assert state["auto_mode"] is True


def test_sample_time_returns_previous_output(clock):
    pid = PID(1.0, 0.0, 0.0, setpoint=0.0, sample_time=0.1, clock=clock)
    first = pid.update(-5.0, dt=0.2)
    assert first == 5.0
    assert pid.update(-20.0, dt=0.05) == first
    assert pid.update(-20.0, dt=0.2) == 20.0


def test_derivative_on_measurement(clock):
    pid = PID(0.0, 0.0, 1.0, setpoint=0.0, clock=clock)
    assert pid.update(0.0, dt=0.1) == 0.0
    # Measurement rose by 1 in 0.1 s
    assert pid.update(1.0, dt=0.1) == pytest.approx(-10.0)


def test_setpoint_change_has_no_derivative_kick(clock):
    pid = PID(0.0, 0.0, 1.0, setpoint=0.0, clock=clock)
    pid.update(5.0, dt=0.1)
    pid.setpoint = 100.0
    assert pid.update(5.0, dt=0.1) == 0.0


def test_manual_mode_holds_output(clock):
    pid = PID(1.0, 0.0, 0.0, setpoint=0.0, clock=clock)
    held = pid.update(-3.0, dt=0.1)
    pid.auto_mode = False
    assert pid.update(-50.0, dt=0.1) == held


def test_bumpless_transfer_seeds_integral(clock):
    pid = PID(0.0, 1.0, 0.0, setpoint=0.0, output_limits=(-20, 20), auto_mode=False, clock=clock)
    pid.set_auto_mode(True, last_output=12.0)
    assert pid.integral == 12.0
    pid.set_auto_mode(False)
    pid.set_auto_mode(True, last_output=50.0)
    assert pid.integral == 20.0


def test_reset_clears_terms(clock):
    pid = PID(1.0, 1.0, 1.0, setpoint=10.0, clock=clock)
    pid.update(0.0, dt=0.1)
    pid.update(1.0, dt=0.1)
    pid.reset()
    assert pid.components == (0.0, 0.0, 0.0)
    assert pid.last_output is None


def test_proportional_on_measurement(clock):
    pid = PID(2.0, 0.0, 0.0, setpoint=0.0, proportional_on_measurement=True, clock=clock)
    pid.update(0.0, dt=0.1)
    assert pid.update(3.0, dt=0.1) == pytest.approx(-6.0)
    # Accumulates, unlike plain P
    assert pid.update(3.0, dt=0.1) == pytest.approx(-6.0)
    assert pid.update(4.0, dt=0.1) == pytest.approx(-8.0)


def test_invalid_output_limits():
    with pytest.raises(ValueError):
        PID(output_limits=(10, -10))
    pid = PID()
    with pytest.raises(ValueError):
        pid.output_limits = (5, 5)


def test_tunings_round_trip():
    pid = PID(1.0, 2.0, 3.0)
    pid.tunings = (0.5, 0.1, 0.0)
    assert pid.tunings == (0.5, 0.1, 0.0)


def test_call_is_update(clock):
    pid = PID(1.0, 0.0, 0.0, setpoint=4.0, clock=clock)
    assert pid(1.0, dt=0.1) == 3.0
