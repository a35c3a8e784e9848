import pytest

from hudmon.proto import CtrlMessage, FrameMessage, TOGGLE


def test_frame_round_trip():
    msg = FrameMessage(
        pid=1234,
        visible_frametime_ns=16_666_667,
        fsr_upscale=1,
        fsr_sharpness=2,
        app_frametime_ns=15_000_000,
        latency_ns=2**64 - 1,
    )
    assert FrameMessage.decode(msg.encode()) == msg


def test_frame_header_bytes():
    data = FrameMessage().encode()
    assert data[:12] == b"\x01\x00\x00\x00\x00\x00\x00\x00\x01\x00\x00\x00"


def test_frame_truncated_fields_are_none():
    msg = FrameMessage(pid=7, visible_frametime_ns=9, fsr_upscale=1,
                       fsr_sharpness=3, app_frametime_ns=5, latency_ns=6)
    decoded = FrameMessage.decode(msg.encode()[:-16])
    assert decoded.fsr_sharpness == 3
    assert decoded.app_frametime_ns is None
    assert decoded.latency_ns is None


def test_frame_encode_stops_at_absent_field():
    full = FrameMessage(pid=7, visible_frametime_ns=9).encode()
    short = FrameMessage(pid=7, visible_frametime_ns=9, fsr_upscale=None).encode()
    assert full.startswith(short)
    assert FrameMessage.decode(short).fsr_upscale is None


def test_frame_unsupported_version():
    with pytest.raises(ValueError):
        FrameMessage.decode(FrameMessage(version=2).encode())


def test_frame_too_short():
    with pytest.raises(ValueError):
        FrameMessage.decode(b"\x01\x00")


def test_ctrl_default_header_bytes():
    data = CtrlMessage().encode()
    assert data[:16] == (
        b"\x02\x00\x00\x00\x00\x00\x00\x00"
        b"\x01\x00\x00\x00\x01\x00\x00\x00"
    )


def test_ctrl_round_trip():
    msg = CtrlMessage(no_display=TOGGLE, log_session=1,
                      log_session_name="session", reload_config=3)
    assert CtrlMessage.decode(msg.encode()) == msg


def test_ctrl_short_data_reads_zero():
    full = CtrlMessage(no_display=1, reload_config=2).encode()
    decoded = CtrlMessage.decode(full[:-1])
    assert decoded.no_display == 1
    assert decoded.reload_config == 0


def test_ctrl_name_too_long():
    with pytest.raises(ValueError):
        CtrlMessage(log_session_name="n" * 65).encode()


def test_ctrl_value_out_of_range():
    with pytest.raises(ValueError):
        CtrlMessage(no_display=256).encode()