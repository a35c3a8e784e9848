"""Binary messages exchanged with the overlay application."""

from __future__ import annotations

import struct
from dataclasses import dataclass

# Values of the CtrlMessage action fields.
IGNORE = 0
SET = 1
UNSET = 2
TOGGLE = 3

SUPPORTED_VERSION = 1
LOG_SESSION_NAME_SIZE = 64

_FRAME_HEADER = struct.Struct("<qI")
_FRAME_FIELDS = (
    ("pid", "I"),
    ("visible_frametime_ns", "Q"),
    ("fsr_upscale", "B"),
    ("fsr_sharpness", "B"),
    ("app_frametime_ns", "Q"),
    ("latency_ns", "Q"),
)
_CTRL = struct.Struct(f"<qIIBB{LOG_SESSION_NAME_SIZE}sB")
_CTRL_HEADER_SIZE = struct.calcsize("<qII")


@dataclass
class FrameMessage:
    """Frame timing report; trailing fields may be absent (None)."""

    pid: int | None = 0
    visible_frametime_ns: int | None = 0
    fsr_upscale: int | None = 0
    fsr_sharpness: int | None = 0
    app_frametime_ns: int | None = 0
    latency_ns: int | None = 0
    msg_type: int = 1
    version: int = SUPPORTED_VERSION

    def encode(self) -> bytes:
        """Pack the message; it ends at the first absent field."""
        try:
            parts = [_FRAME_HEADER.pack(self.msg_type, self.version)]
            for name, fmt in _FRAME_FIELDS:
                value = getattr(self, name)
                if value is None:
                    break
                parts.append(struct.pack("<" + fmt, value))
        except struct.error as exc:
            raise ValueError(str(exc)) from exc
        return b"".join(parts)

    @classmethod
    def decode(cls, data: bytes) -> FrameMessage:
        """Unpack a message; fields past the end of the data are None."""
        data = bytes(data)
        if len(data) < _FRAME_HEADER.size:
            raise ValueError("message is shorter than its header")
        msg_type, version = _FRAME_HEADER.unpack_from(data)
        if version != SUPPORTED_VERSION:
            raise ValueError(f"Unsupported mangoapp struct version: {version}")
        values: dict[str, int | None] = {}
        offset = _FRAME_HEADER.size
        for name, fmt in _FRAME_FIELDS:
            size = struct.calcsize("<" + fmt)
            if offset + size <= len(data):
                values[name] = struct.unpack_from("<" + fmt, data, offset)[0]
            else:
                values[name] = None
            offset += size
        return cls(msg_type=msg_type, version=version, **values)


@dataclass
class CtrlMessage:
    """Control request: each action field is IGNORE, SET, UNSET or TOGGLE."""

    no_display: int = IGNORE
    log_session: int = IGNORE
    log_session_name: str = ""
    reload_config: int = IGNORE
    msg_type: int = 2
    ctrl_msg_type: int = 1
    version: int = 1

    def encode(self) -> bytes:
        """Pack the message into its fixed-size form."""
        name = self.log_session_name.encode("utf-8")
        if len(name) > LOG_SESSION_NAME_SIZE:
            raise ValueError("log session name is too long")
        try:
            return _CTRL.pack(
                self.msg_type,
                self.ctrl_msg_type,
                self.version,
                self.no_display,
                self.log_session,
                name,
                self.reload_config,
            )
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def decode(cls, data: bytes) -> CtrlMessage:
        """Unpack a message; missing trailing bytes read as zero."""
        data = bytes(data)
        if len(data) < _CTRL_HEADER_SIZE:
            raise ValueError("message is shorter than its header")
        padded = data[:_CTRL.size].ljust(_CTRL.size, b"\0")
        (msg_type, ctrl_msg_type, version, no_display,
         log_session, name, reload_config) = _CTRL.unpack(padded)
        return cls(
            no_display=no_display,
            log_session=log_session,
            log_session_name=name.split(b"\0", 1)[0].decode("utf-8", errors="replace"),
            reload_config=reload_config,
            msg_type=msg_type,
            ctrl_msg_type=ctrl_msg_type,
            version=version,
        )