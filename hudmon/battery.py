"""Laptop battery charge, power draw and remaining time from sysfs."""

from __future__ import annotations

import logging
import math
import os

logger = logging.getLogger(__name__)

POWER_SUPPLY_ROOT = "/sys/class/power_supply"
_MAX_BATTERIES = 2
_CURRENT_HISTORY = 25


def _read_value(path: str) -> float | None:
    """First line of a file as a float; None if the file has no line."""
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            line = handle.readline()
    except OSError:
        return None
    if not line:
        return None
    return float(line.rstrip("\n").strip())


def _read_line(path: str) -> str | None:
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            line = handle.readline()
    except OSError:
        return None
    return line.rstrip("\n") if line else None


def _fdiv(a: float, b: float) -> float:
    """Float division with IEEE results for a zero divisor."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


class BatteryStats:
    """Combined readings of up to two batteries."""

    def __init__(self, root: str = POWER_SUPPLY_ROOT) -> None:
        self.root = root
        self.paths: list[str] = []
        self.current_watt = 0.0
        self.current_percent = 0.0
        self.remaining_time = 0.0
        self.current_status = ""
        self.state = ["", ""]
        self.batt_check = False
        self.current_now_vec: list[float] = []

    @property
    def batt_count(self) -> int:
        """Number of batteries found."""
        return len(self.paths)

    def find_batteries(self) -> list[str]:
        """Find entries whose name contains 'BAT'."""
        try:
            with os.scandir(self.root) as entries:
                names = sorted(entry.name for entry in entries)
        except OSError:
            names = []
        self.paths = [
            os.path.join(self.root, name) for name in names if "BAT" in name
        ][:_MAX_BATTERIES]
        self.batt_check = True
        return list(self.paths)

    def update(self) -> None:
        """Refresh power, charge and remaining time."""
        if not self.batt_check:
            self.find_batteries()
            if self.batt_count == 0:
                logger.error("No battery found")
        if self.batt_count > 0:
            self.current_watt = self.get_power()
            self.current_percent = self.get_percent()
            self.remaining_time = self.get_time_remaining()

    def get_percent(self) -> float:
        """Charge level in percent across all batteries."""
        charge_n = 0.0
        charge_f = 0.0
        for path in self.paths:
            charge_now = os.path.join(path, "charge_now")
            energy_now = os.path.join(path, "energy_now")
            if os.path.exists(charge_now):
                now, full = charge_now, os.path.join(path, "charge_full")
            elif os.path.exists(energy_now):
                now, full = energy_now, os.path.join(path, "energy_full")
            else:
                # Only a capacity percentage: average it over the batteries.
                capacity = _read_value(os.path.join(path, "capacity"))
                if capacity is not None:
                    charge_n += capacity / 100
                    charge_f = float(self.batt_count)
                continue
            value = _read_value(now)
            if value is not None:
                charge_n += value / 1000000
            value = _read_value(full)
            if value is not None:
                charge_f += value / 1000000
        return _fdiv(charge_n, charge_f) * 100

    def get_power(self) -> float:
        """Discharge power in watts; 0 while charging, full or unknown."""
        current = 0.0
        voltage = 0.0
        for index, path in enumerate(self.paths):
            status = _read_line(os.path.join(path, "status"))
            if status is not None:
                self.current_status = status
                self.state[index] = status
            if self.state[index] in ("Charging", "Unknown", "Full"):
                return 0.0

            current_now = os.path.join(path, "current_now")
            if os.path.exists(current_now):
                value = _read_value(current_now)
                if value is not None:
                    current += value / 1000000
                value = _read_value(os.path.join(path, "voltage_now"))
                if value is not None:
                    voltage += value / 1000000
            else:
                value = _read_value(os.path.join(path, "power_now"))
                if value is not None:
                    current += value / 1000000
                    voltage = 1.0
        return current * voltage

    def get_time_remaining(self) -> float:
        """Hours left at the recent average discharge current."""
        charge = 0.0
        for path in self.paths:
            current_now = os.path.join(path, "current_now")
            power_now = os.path.join(path, "power_now")
            voltage_now = os.path.join(path, "voltage_now")
            charge_now = os.path.join(path, "charge_now")
            energy_now = os.path.join(path, "energy_now")

            if os.path.exists(current_now):
                value = _read_value(current_now)
                if value is not None:
                    self.current_now_vec.append(value)
            elif os.path.exists(power_now):
                voltage = _read_value(voltage_now) or 0.0
                power = _read_value(power_now) or 0.0
                self.current_now_vec.append(_fdiv(power, voltage))

            if os.path.exists(charge_now):
                value = _read_value(charge_now)
                if value is not None:
                    charge += value
            elif os.path.exists(energy_now):
                energy = _read_value(energy_now) or 0.0
                voltage = _read_value(voltage_now) or 0.0
                charge += _fdiv(energy, voltage)

            if len(self.current_now_vec) > _CURRENT_HISTORY:
                del self.current_now_vec[0]

        current = _fdiv(sum(self.current_now_vec), float(len(self.current_now_vec)))
        return _fdiv(charge, current)