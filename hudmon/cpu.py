"""CPU load, clock, temperature and power readings from procfs and sysfs."""

from __future__ import annotations

import enum
import logging
import os
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from .file_utils import LsFlags, file_exists, ls, read_line

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class PowerSource(enum.Enum):
    """Where the CPU package power comes from."""

    K10TEMP = 0
    ZENPOWER = 1
    RAPL = 2
    AMDGPU = 3


@dataclass
class CPUData:
    """Accumulated jiffies of one CPU (or all CPUs) and derived values."""

    total_time: int = 0
    user_time: int = 0
    system_time: int = 0
    system_all_time: int = 0
    idle_all_time: int = 0
    idle_time: int = 0
    nice_time: int = 0
    io_wait_time: int = 0
    irq_time: int = 0
    soft_irq_time: int = 0
    steal_time: int = 0
    guest_time: int = 0

    total_period: int = 0
    user_period: int = 0
    system_period: int = 0
    system_all_period: int = 0
    idle_all_period: int = 0
    idle_period: int = 0
    nice_period: int = 0
    io_wait_period: int = 0
    irq_period: int = 0
    soft_irq_period: int = 0
    steal_period: int = 0
    guest_period: int = 0

    cpu_id: int = 0
    percent: float = 0.0
    mhz: int = 0
    temp: int = 0
    cpu_mhz: int = 0
    power: float = 0.0


@dataclass
class _PowerData:
    source: PowerSource
    files: tuple[str, ...] = ()
    last_counter: int = 0
    last_time_ns: int = field(default_factory=time.monotonic_ns)


def _wrap_sub(a: int, b: int) -> int:
    return a - b if a > b else 0


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


def _read_int(path: str) -> int | None:
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            text = handle.read()
    except OSError:
        return None
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def calculate_cpu_data(cpu: CPUData, times: Sequence[int]) -> None:
    """Update ``cpu`` from ten /proc/stat counters and recompute its load."""
    (usertime, nicetime, systemtime, idletime, io_wait,
     irq, soft_irq, steal, guest, guestnice) = times

    # Guest time is already accounted in user time.
    usertime = max(usertime - guest, 0)
    nicetime = max(nicetime - guestnice, 0)
    idlealltime = idletime + io_wait
    systemalltime = systemtime + irq + soft_irq
    virtalltime = guest + guestnice
    totaltime = usertime + nicetime + systemalltime + idlealltime + steal + virtalltime

    cpu.user_period = _wrap_sub(usertime, cpu.user_time)
    cpu.nice_period = _wrap_sub(nicetime, cpu.nice_time)
    cpu.system_period = _wrap_sub(systemtime, cpu.system_time)
    cpu.system_all_period = _wrap_sub(systemalltime, cpu.system_all_time)
    cpu.idle_all_period = _wrap_sub(idlealltime, cpu.idle_all_time)
    cpu.idle_period = _wrap_sub(idletime, cpu.idle_time)
    cpu.io_wait_period = _wrap_sub(io_wait, cpu.io_wait_time)
    cpu.irq_period = _wrap_sub(irq, cpu.irq_time)
    cpu.soft_irq_period = _wrap_sub(soft_irq, cpu.soft_irq_time)
    cpu.steal_period = _wrap_sub(steal, cpu.steal_time)
    cpu.guest_period = _wrap_sub(virtalltime, cpu.guest_time)
    cpu.total_period = _wrap_sub(totaltime, cpu.total_time)

    cpu.user_time = usertime
    cpu.nice_time = nicetime
    cpu.system_time = systemtime
    cpu.system_all_time = systemalltime
    cpu.idle_all_time = idlealltime
    cpu.idle_time = idletime
    cpu.io_wait_time = io_wait
    cpu.irq_time = irq
    cpu.soft_irq_time = soft_irq
    cpu.steal_time = steal
    cpu.guest_time = virtalltime
    cpu.total_time = totaltime

    if cpu.total_period == 0:
        return
    total = float(cpu.total_period)
    busy = (
        cpu.nice_period * 100.0 / total
        + cpu.user_period * 100.0 / total
        + cpu.system_all_period * 100.0 / total
        + (cpu.steal_period + cpu.guest_period) * 100.0 / total
    )
    cpu.percent = min(max(busy, 0.0), 100.0)


def parse_stat_line(line: str) -> tuple[int | None, tuple[int, ...]] | None:
    """Parse a /proc/stat cpu line into (cpu id or None for the total, counters)."""
    if not line.startswith("cpu"):
        return None
    rest = line[3:]
    fields = rest.split()
    if not fields:
        return None
    cpu_id: int | None
    if rest[:1].isspace():
        cpu_id = None
        numbers = fields
    else:
        try:
            cpu_id = int(fields[0])
        except ValueError:
            return None
        numbers = fields[1:]
    if len(numbers) < 10:
        return None
    try:
        values = tuple(int(value) for value in numbers[:10])
    except ValueError:
        return None
    return cpu_id, values


def find_input(path: str, prefix: str, name: str) -> str | None:
    """Input file under ``path`` whose matching ``*_label`` reads ``name``."""
    for file in sorted(ls(path, prefix, LsFlags.FILES)):
        if not file.endswith("_label"):
            continue
        if read_line(f"{path}/{file}") != name:
            continue
        uscore = file.find("_")
        if uscore != -1:
            return f"{path}/{file[:uscore]}_input"
    return None


def find_fallback_input(path: str, prefix: str) -> str | None:
    """First ``*_input`` file with ``prefix`` under ``path``, in name order."""
    for file in sorted(ls(path, prefix, LsFlags.FILES)):
        if file.endswith("_input"):
            found = f"{path}/{file}"
            logger.debug("fallback cpu %s input: %s", prefix, found)
            return found
    return None


class CPUStats:
    """Per-core and total CPU statistics."""

    def __init__(
        self,
        proc_stat: str = "/proc/stat",
        hwmon: str = "/sys/class/hwmon",
        powercap: str = "/sys/class/powercap",
        sysfs_cpu: str = "/sys/devices/system/cpu",
    ) -> None:
        self.proc_stat = proc_stat
        self.hwmon = hwmon.rstrip("/")
        self.powercap = powercap.rstrip("/")
        self.sysfs_cpu = sysfs_cpu.rstrip("/")
        self.cpu_type = "CPU"
        self.boottime = 0
        self.cpus: list[CPUData] = []
        self.total = CPUData()
        self.cpu_period = 0.0
        self.updated = False
        self.temp_file: str | None = None
        self._inited = False
        self._power: _PowerData | None = None

    def _read_stat(self) -> list[str] | None:
        try:
            with open(self.proc_stat, encoding="utf-8", errors="replace") as handle:
                return handle.read().splitlines()
        except OSError:
            logger.error("Failed to open %s", self.proc_stat)
            return None

    def init(self) -> bool:
        """Discover the CPUs listed in /proc/stat, then take a first reading."""
        if self._inited:
            return True
        self.cpus = []
        lines = self._read_stat()
        if lines is None:
            return False

        first = True
        for line in lines:
            if line.startswith("cpu"):
                if first:
                    first = False
                    continue
                cpu = CPUData(total_time=1, total_period=1)
                parsed = parse_stat_line(line)
                if parsed is not None and parsed[0] is not None:
                    cpu.cpu_id = parsed[0]
                else:
                    match = re.match(r"cpu\s*([+-]?\d+)", line)
                    if match:
                        cpu.cpu_id = int(match.group(1))
                self.cpus.append(cpu)
            elif line.startswith("btime "):
                match = _LEADING_INT.match(line[len("btime "):])
                if match:
                    self.boottime = int(match.group(1))
                break
        else:
            logger.debug("Failed to read all of %s", self.proc_stat)
            return False

        self._inited = True
        return self.update_cpu_data()

    def reinit(self) -> bool:
        """Forget the known CPUs and discover them again."""
        self._inited = False
        return self.init()

    def update_cpu_data(self) -> bool:
        """Read /proc/stat and update load figures; False if it cannot be used."""
        if not self._inited:
            return False
        lines = self._read_stat()
        if lines is None:
            return False

        ret = False
        cpu_count = 0
        for line in lines:
            parsed = parse_stat_line(line)
            if parsed is None:
                break
            cpu_id, times = parsed
            if cpu_id is None:
                if ret:
                    break
                ret = True
                calculate_cpu_data(self.total, times)
                continue
            if not ret:
                logger.debug("Failed to parse 'cpu' line: %s", line)
                return False
            if cpu_id < 0:
                logger.debug("Cpu id '%d' is out of bounds", cpu_id)
                return False
            if cpu_count + 1 > len(self.cpus) or self.cpus[cpu_count].cpu_id != cpu_id:
                logger.debug("Cpu id '%d' is out of bounds or wrong index, reiniting", cpu_id)
                return self.reinit()
            calculate_cpu_data(self.cpus[cpu_count], times)
            cpu_count += 1

        del self.cpus[cpu_count:]
        self.cpu_period = self.cpus[0].total_period / len(self.cpus) if self.cpus else 0.0
        self.updated = True
        return ret

    def update_core_mhz(self) -> bool:
        """Read the current frequency of every core."""
        for cpu in self.cpus:
            path = f"{self.sysfs_cpu}/cpu{cpu.cpu_id}/cpufreq/scaling_cur_freq"
            if not os.path.isfile(path):
                continue
            value = _read_int(path)
            cpu.mhz = _cdiv(value if value is not None else 0, 1000)
        self.total.cpu_mhz = max((cpu.mhz for cpu in self.cpus), default=0)
        self.total.cpu_mhz = max(self.total.cpu_mhz, 0)
        return True

    def read_cpu_temp_file(self) -> int | None:
        """Temperature in degrees from the chosen sensor, or None."""
        if self.temp_file is None:
            return None
        value = _read_int(self.temp_file)
        if value is None:
            return None
        return _cdiv(value, 1000)

    def update_cpu_temp(self, apu_cpu_temp: int = 0) -> bool:
        """Store the CPU temperature; APUs take it from the GPU metrics."""
        if self.cpu_type == "APU":
            self.total.temp = apu_cpu_temp
            return True
        temp = self.read_cpu_temp_file()
        self.total.temp = temp if temp is not None else 0
        return temp is not None

    def _power_k10temp(self, data: _PowerData) -> float | None:
        values = [_read_int(path) for path in data.files]
        if any(value is None for value in values):
            return None
        core_v, core_c, soc_v, soc_c = values
        return float(_cdiv(core_v * core_c + soc_v * soc_c, 1000000))

    def _power_zenpower(self, data: _PowerData) -> float | None:
        values = [_read_int(path) for path in data.files]
        if any(value is None for value in values):
            return None
        core, soc = values
        return float(_cdiv(core + soc, 1000000))

    def _power_rapl(self, data: _PowerData) -> float | None:
        counter = _read_int(data.files[0])
        if counter is None:
            return None
        now = time.monotonic_ns()
        micro = (now - data.last_time_ns) // 1000
        power = 0.0
        if data.last_counter > 0 and counter > data.last_counter and micro > 0:
            power = float((counter - data.last_counter) // micro)
        data.last_counter = counter
        data.last_time_ns = now
        return power

    def update_cpu_power(self, apu_cpu_power: float = 0.0) -> bool:
        """Read the CPU package power from the source found earlier."""
        data = self._power
        if data is None:
            return False
        if data.source is PowerSource.K10TEMP:
            power = self._power_k10temp(data)
        elif data.source is PowerSource.ZENPOWER:
            power = self._power_zenpower(data)
        elif data.source is PowerSource.RAPL:
            power = self._power_rapl(data)
        else:
            power = apu_cpu_power
        if power is None:
            return False
        self.total.power = power
        return True

    def get_cpu_file(self) -> bool:
        """Pick the hwmon input that reports the CPU temperature."""
        if self.temp_file is not None:
            return True

        labels = {
            "coretemp": ("Package id 0",),
            "zenpower": ("Tdie", "Tctl"),
            "k10temp": ("Tdie", "Tctl"),
            "atk0110": ("CPU Temperature",),
            "it8603": ("temp1",),
        }
        path = ""
        found: str | None = None
        for directory in sorted(ls(self.hwmon)):
            candidate = f"{self.hwmon}/{directory}"
            name = read_line(candidate + "/name")
            logger.debug("hwmon: sensor name: %s", name)
            if name in labels:
                path = candidate
                for label in labels[name]:
                    found = find_input(path, "temp", label)
                    if found is not None:
                        break
                break

        if path and (found is None or not file_exists(found)):
            found = find_fallback_input(path, "temp")
        if not path or found is None:
            logger.error("Could not find cpu temp sensor location")
            return False
        logger.debug("hwmon: using input: %s", found)
        self.temp_file = found
        return True

    def _init_k10temp(self, path: str) -> _PowerData | None:
        inputs = []
        for prefix, label in (("in", "Vcore"), ("curr", "Icore"), ("in", "Vsoc"), ("curr", "Isoc")):
            found = find_input(path, prefix, label)
            if found is None:
                return None
            inputs.append(found)
        for found in inputs:
            logger.debug("hwmon: using input: %s", found)
        return _PowerData(PowerSource.K10TEMP, tuple(inputs))

    def _init_zenpower(self, path: str) -> _PowerData | None:
        inputs = []
        for label in ("SVI2_P_Core", "SVI2_P_SoC"):
            found = find_input(path, "power", label)
            if found is None:
                return None
            inputs.append(found)
        for found in inputs:
            logger.debug("hwmon: using input: %s", found)
        return _PowerData(PowerSource.ZENPOWER, tuple(inputs))

    def _init_rapl(self, path: str) -> _PowerData | None:
        counter = path + "/energy_uj"
        if not file_exists(counter):
            return None
        return _PowerData(PowerSource.RAPL, (counter,))

    def init_cpu_power_data(self) -> bool:
        """Choose where CPU power readings come from."""
        if self._power is not None:
            return True

        data: _PowerData | None = None
        intel = False
        for directory in sorted(ls(self.hwmon)):
            path = f"{self.hwmon}/{directory}"
            name = read_line(path + "/name")
            logger.debug("hwmon: sensor name: %s", name)
            if name == "k10temp":
                data = self._init_k10temp(path)
                break
            if name == "zenpower":
                data = self._init_zenpower(path)
                break
            if name == "coretemp":
                intel = True

        if data is None and intel:
            for directory in sorted(ls(self.powercap)):
                path = f"{self.powercap}/{directory}"
                name = read_line(path + "/name")
                logger.debug("powercap: name: %s", name)
                if name == "package-0":
                    data = self._init_rapl(path)
                    break
        if data is None and not intel:
            data = _PowerData(PowerSource.AMDGPU)

        if data is None:
            logger.error("Failed to initialize CPU power data")
            return False
        self._power = data
        return True

    @property
    def power_source(self) -> PowerSource | None:
        """The chosen power source, if any."""
        return self._power.source if self._power is not None else None