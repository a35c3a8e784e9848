import pytest

from hudmon.hudctl import build_message, main, str_to_bool
from hudmon.proto import SET, TOGGLE, UNSET, CtrlMessage


@pytest.mark.parametrize("value", ["true", "TRUE", "True", "1"])
def test_str_to_bool_true(value):
    assert str_to_bool(value) is True


@pytest.mark.parametrize("value", ["false", "FaLsE", "0"])
def test_str_to_bool_false(value):
    assert str_to_bool(value) is False


@pytest.mark.parametrize("value", ["yes", "01", "", "2"])
def test_str_to_bool_invalid(value):
    with pytest.raises(ValueError):
        str_to_bool(value)


def test_set_true_and_false():
    assert build_message(["set", "no_display", "true"]).no_display == SET
    assert build_message(["set", "no_display", "0"]).no_display == UNSET


def test_toggle_only_touches_attribute():
    msg = build_message(["toggle", "log_session"])
    assert msg.log_session == TOGGLE
    assert msg.no_display == 0
    assert msg.reload_config == 0


def test_reload_config_attribute():
    assert build_message(["set", "reload_config", "1"]).reload_config == SET


@pytest.mark.parametrize(
    "args",
    [
        [],
        ["set"],
        ["set", "no_display"],
        ["toggle", "no_display", "1"],
        ["flip", "no_display"],
        ["toggle", "brightness"],
    ],
)
def test_usage_errors(args):
    with pytest.raises(ValueError):
        build_message(args)


def test_main_writes_message(capsysbinary):
    assert main(["toggle", "no_display"]) == 0
    out = capsysbinary.readouterr().out
    assert CtrlMessage.decode(out) == CtrlMessage(no_display=TOGGLE)


def test_main_usage(capsys):
    assert main(["bogus"]) == 1
    assert "Usage:" in capsys.readouterr().err


def test_main_bad_boolean(capsys):
    assert main(["set", "no_display", "maybe"]) == 1
    assert "not an accepted boolean" in capsys.readouterr().err