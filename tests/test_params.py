import json

from cybertruck.params import Parameters


def test_update_coerces_types():
    params = Parameters()
    params.update(heading_kp="2.5", grabber_power="70", obey_danger=0)
    assert params.heading_kp == 2.5
    assert params.grabber_power == 70
    assert params.obey_danger is False


def test_update_ignores_unknown_and_invalid(caplog):
    params = Parameters()
    params.update(warp_drive=9, heading_kp="fast")
    assert not hasattr(params, "warp_drive")
    assert params.heading_kp == Parameters().heading_kp
    assert "Unknown parameter" in caplog.text
    assert "Invalid value" in caplog.text


def test_save_and_load(tmp_path):
    path = tmp_path / "params.json"
    params = Parameters()
    params.update(tracking_gain=3.0, go_home_time=30.0)
    params.save(path)

    assert json.loads(path.read_text())["tracking_gain"] == 3.0
    loaded = Parameters.load(path)
    assert loaded == params


def test_load_missing_file_gives_defaults(tmp_path):
    assert Parameters.load(tmp_path / "missing.json") == Parameters()


def test_load_corrupt_file_gives_defaults(tmp_path):
    path = tmp_path / "params.json"
    path.write_text("{not json")
    assert Parameters.load(path) == Parameters()


def test_to_dict():
    data = Parameters().to_dict()
    assert data["stall_threshold"] == 150.0
    assert "heading_kd" in data
