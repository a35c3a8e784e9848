"""Battery status of game controllers from the power supply class."""

from __future__ import annotations

import os
from dataclasses import dataclass

POWER_SUPPLY_ROOT = "/sys/class/power_supply"

# (name fragments, display label), in the order names are assigned.
_KINDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("gip", "xpadneo"), "XBOX PAD"),
    (("sony_controller",), "DS4 PAD"),
    (("ps-controller",), "DS4/5 PAD"),
    (("nintendo_switch_controller",), "SWITCH PAD"),
    (("hid-e4",), "8BITDO PAD"),
)


@dataclass
class Gamepad:
    """A controller's label and battery state."""

    name: str = ""
    battery: str = ""
    battery_percent: str = ""
    report_percent: bool = False
    is_charging: bool = False


def battery_level(percent: int) -> str:
    """Coarse level for a battery percentage; '' outside 0..100."""
    if 0 <= percent <= 25:
        return "Low"
    if 26 <= percent <= 49:
        return "Normal"
    if 50 <= percent <= 74:
        return "High"
    if 75 <= percent <= 100:
        return "Full"
    return ""


def scan_gamepads(root: str = POWER_SUPPLY_ROOT) -> list[str]:
    """Paths of power supply entries that belong to known controllers."""
    with os.scandir(root) as entries:
        found = sorted(entries, key=lambda entry: entry.name)
    paths: list[str] = []
    for entry in found:
        for fragments, _label in _KINDS:
            paths.extend(entry.path for fragment in fragments if fragment in entry.name)
    return paths


def _first_line(path: str) -> str | None:
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            line = handle.readline()
    except OSError:
        return None
    return line.rstrip("\n") if line else None


def _matches(path: str, fragments: tuple[str, ...]) -> bool:
    name = os.path.basename(path)
    return any(fragment in name for fragment in fragments)


def gamepad_info(paths: list[str]) -> list[Gamepad]:
    """Read the state of each controller path, sorted by name."""
    totals = [sum(_matches(p, fragments) for p in paths) for fragments, _ in _KINDS]
    counters = [0] * len(_KINDS)
    pads: list[Gamepad] = []

    for path in paths:
        pad = Gamepad()
        for index, (fragments, label) in enumerate(_KINDS):
            if _matches(path, fragments):
                if totals[index] == 1:
                    pad.name = label
                else:
                    pad.name = f"{label}-{counters[index] + 1}"
                counters[index] += 1

        status = _first_line(os.path.join(path, "status"))
        if status in ("Charging", "Full"):
            pad.is_charging = True

        capacity_path = os.path.join(path, "capacity")
        if os.path.exists(capacity_path):
            line = _first_line(capacity_path)
            if line is not None:
                pad.battery_percent = line
                pad.report_percent = True
                pad.battery = battery_level(int(line))
        else:
            level = _first_line(os.path.join(path, "capacity_level"))
            if level is not None:
                pad.battery = level
        pads.append(pad)

    pads.sort(key=lambda pad: pad.name)
    return pads