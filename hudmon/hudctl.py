"""Command line tool that builds control messages for the overlay."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from .proto import SET, TOGGLE, UNSET, CtrlMessage

USAGE = (
    "Usage: mangohudctl [set|toggle] attribute [value]\n"
    "       mangohudctl reload-cfg\n"
    "Attributes:\n"
    "   no_display      hides or shows hud\n"
    "   log_session     handles logging status\n"
    "   reload_config   reloads the config\n"
    "Accepted values:\n"
    "   true\n"
    "   false\n"
    "   1\n"
    "   0\n"
)

_ATTRIBUTES = ("no_display", "log_session", "reload_config")


class _UsageError(ValueError):
    pass


class _InvalidBoolean(ValueError):
    pass


def str_to_bool(value: str) -> bool:
    """Accept true/false (any case) or 1/0; raise ValueError otherwise."""
    if value.lower() == "true" or value == "1":
        return True
    if value.lower() == "false" or value == "0":
        return False
    raise _InvalidBoolean(
        f"The value '{value}' is not an accepted boolean. Use 0/1 or true/false"
    )


def build_message(argv: Sequence[str]) -> CtrlMessage:
    """Build a control message from the arguments after the program name."""
    args = list(argv)
    if len(args) < 2:
        raise _UsageError("missing arguments")
    action, attribute = args[0], args[1]
    if action == "set":
        if len(args) != 3:
            raise _UsageError("set takes an attribute and a value")
        value = SET if str_to_bool(args[2]) else UNSET
    elif action == "toggle":
        if len(args) != 2:
            raise _UsageError("toggle takes only an attribute")
        value = TOGGLE
    else:
        raise _UsageError(f"unknown action '{action}'")
    if attribute not in _ATTRIBUTES:
        raise _UsageError(f"unknown attribute '{attribute}'")
    return CtrlMessage(**{attribute: value})


def main(argv: Sequence[str] | None = None) -> int:
    """Write the encoded control message to standard output."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        message = build_message(args)
    except _InvalidBoolean as exc:
        print(exc, file=sys.stderr)
        return 1
    except _UsageError:
        sys.stderr.write(USAGE)
        return 1
    sys.stdout.buffer.write(message.encode())
    sys.stdout.buffer.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())