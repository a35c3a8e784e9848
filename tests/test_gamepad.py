import pytest

from hudmon.gamepad import Gamepad, battery_level, gamepad_info, scan_gamepads


def _make(root, name, **files):
    d = root / name
    d.mkdir()
    for key, value in files.items():
        (d / key).write_text(value + "\n")
    return d


def test_battery_level_bounds():
    assert battery_level(0) == "Low"
    assert battery_level(25) == "Low"
    assert battery_level(26) == "Normal"
    assert battery_level(49) == "Normal"
    assert battery_level(50) == "High"
    assert battery_level(74) == "High"
    assert battery_level(75) == "Full"
    assert battery_level(100) == "Full"
    assert battery_level(101) == ""


def test_scan_finds_known_controllers(tmp_path):
    _make(tmp_path, "BAT0")
    _make(tmp_path, "gip0")
    _make(tmp_path, "sony_controller_battery_x")
    paths = scan_gamepads(str(tmp_path))
    assert sorted(paths) == [str(tmp_path / "gip0"), str(tmp_path / "sony_controller_battery_x")]


def test_scan_missing_root(tmp_path):
    with pytest.raises(FileNotFoundError):
        scan_gamepads(str(tmp_path / "missing"))


def test_info_single_of_each(tmp_path):
    _make(tmp_path, "gip0", capacity="80", status="Discharging")
    _make(tmp_path, "sony_controller_battery_x", capacity="10", status="Charging")
    pads = gamepad_info(scan_gamepads(str(tmp_path)))
    assert [p.name for p in pads] == ["DS4 PAD", "XBOX PAD"]
    ds4, xbox = pads
    assert ds4.is_charging is True
    assert ds4.battery == "Low"
    assert ds4.battery_percent == "10"
    assert ds4.report_percent is True
    assert xbox.is_charging is False
    assert xbox.battery == "Full"


def test_info_numbered_when_several(tmp_path):
    _make(tmp_path, "gip0", capacity="30")
    _make(tmp_path, "xpadneo1", capacity="60")
    pads = gamepad_info(scan_gamepads(str(tmp_path)))
    assert [p.name for p in pads] == ["XBOX PAD-1", "XBOX PAD-2"]
    assert {p.battery for p in pads} == {"Normal", "High"}


def test_info_capacity_level_fallback(tmp_path):
    d = _make(tmp_path, "hid-e4:aa", capacity_level="Normal", status="Full")
    pads = gamepad_info([str(d)])
    assert pads == [Gamepad(name="8BITDO PAD", battery="Normal", is_charging=True)]


def test_info_empty():
    assert gamepad_info([]) == []