"""Reading the amdgpu ``gpu_metrics`` binary table and averaging its samples."""

from __future__ import annotations

import dataclasses
import logging
import struct
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

METRICS_UPDATE_PERIOD_MS = 500
METRICS_POLLING_PERIOD_MS = 5
METRICS_SAMPLE_COUNT = METRICS_UPDATE_PERIOD_MS // METRICS_POLLING_PERIOD_MS
INVALID_METRIC = 0xFFFF

_HEADER_FIELDS = (
    ("structure_size", "H"),
    ("format_revision", "B"),
    ("content_revision", "B"),
)

_V1_FIELDS = _HEADER_FIELDS + (
    ("temperature_edge", "H"),
    ("temperature_hotspot", "H"),
    ("temperature_mem", "H"),
    ("temperature_vrgfx", "H"),
    ("temperature_vrsoc", "H"),
    ("temperature_vrmem", "H"),
    ("average_gfx_activity", "H"),
    ("average_umc_activity", "H"),
    ("average_mm_activity", "H"),
    ("average_socket_power", "H"),
    ("energy_accumulator", "Q"),
    ("system_clock_counter", "Q"),
    ("average_gfxclk_frequency", "H"),
    ("average_socclk_frequency", "H"),
    ("average_uclk_frequency", "H"),
    ("average_vclk0_frequency", "H"),
    ("average_dclk0_frequency", "H"),
    ("average_vclk1_frequency", "H"),
    ("average_dclk1_frequency", "H"),
    ("current_gfxclk", "H"),
    ("current_socclk", "H"),
    ("current_uclk", "H"),
    ("current_vclk0", "H"),
    ("current_dclk0", "H"),
    ("current_vclk1", "H"),
    ("current_dclk1", "H"),
    ("throttle_status", "I"),
    ("current_fan_speed", "H"),
    ("pcie_link_width", "H"),
    ("pcie_link_speed", "H"),
    ("padding", "H"),
    ("gfx_activity_acc", "I"),
    ("mem_activity_acc", "I"),
    ("temperature_hbm", "4H"),
    ("firmware_timestamp", "Q"),
    ("voltage_soc", "H"),
    ("voltage_gfx", "H"),
    ("voltage_mem", "H"),
    ("padding1", "H"),
    ("indep_throttle_status", "Q"),
)

_V2_FIELDS = _HEADER_FIELDS + (
    ("temperature_gfx", "H"),
    ("temperature_soc", "H"),
    ("temperature_core", "8H"),
    ("temperature_l3", "2H"),
    ("average_gfx_activity", "H"),
    ("average_mm_activity", "H"),
    ("system_clock_counter", "Q"),
    ("average_socket_power", "H"),
    ("average_cpu_power", "H"),
    ("average_soc_power", "H"),
    ("average_gfx_power", "H"),
    ("average_core_power", "8H"),
    ("average_gfxclk_frequency", "H"),
    ("average_socclk_frequency", "H"),
    ("average_uclk_frequency", "H"),
    ("average_fclk_frequency", "H"),
    ("average_vclk_frequency", "H"),
    ("average_dclk_frequency", "H"),
    ("current_gfxclk", "H"),
    ("current_socclk", "H"),
    ("current_uclk", "H"),
    ("current_fclk", "H"),
    ("current_vclk", "H"),
    ("current_dclk", "H"),
    ("current_coreclk", "8H"),
    ("current_l3clk", "2H"),
    ("throttle_status", "I"),
    ("fan_pwm", "H"),
    ("padding", "3H"),
    ("indep_throttle_status", "Q"),
    ("average_temperature_gfx", "H"),
    ("average_temperature_soc", "H"),
    ("average_temperature_core", "8H"),
    ("average_temperature_l3", "2H"),
)


def _struct_for(fields: tuple[tuple[str, str], ...]) -> struct.Struct:
    return struct.Struct("<" + "".join(fmt for _, fmt in fields))


_HEADER = _struct_for(_HEADER_FIELDS)
_V1 = _struct_for(_V1_FIELDS)
_V2 = _struct_for(_V2_FIELDS)
# A metrics file must be smaller than this buffer to be accepted.
_MAX_FILE_SIZE = (max(_V1.size, _V2.size) // 8 + 1) * 8


def _unpack(layout: struct.Struct, fields: tuple[tuple[str, str], ...], data: bytes) -> dict:
    values = iter(layout.unpack_from(data))
    result: dict = {}
    for name, fmt in fields:
        if len(fmt) > 1:
            result[name] = tuple(next(values) for _ in range(int(fmt[:-1])))
        else:
            result[name] = next(values)
    return result


def _valid(value: int) -> bool:
    return value != INVALID_METRIC


@dataclass(frozen=True)
class MetricsHeader:
    """Common header of every gpu_metrics table."""

    structure_size: int
    format_revision: int
    content_revision: int


@dataclass
class AmdgpuMetrics:
    """GPU and APU values taken from one or more metrics tables."""

    gpu_load_percent: int = 0
    average_gfx_power_w: float = 0.0
    average_cpu_power_w: float = 0.0
    current_gfxclk_mhz: int = 0
    current_uclk_mhz: int = 0
    soc_temp_c: int = 0
    gpu_temp_c: int = 0
    apu_cpu_temp_c: int = 0
    is_power_throttled: bool = False
    is_current_throttled: bool = False
    is_temp_throttled: bool = False
    is_other_throttled: bool = False


def read_header(data: bytes) -> MetricsHeader:
    """Decode the table header; raises ValueError if there are too few bytes."""
    if len(data) < _HEADER.size:
        raise ValueError("metrics data is shorter than its header")
    return MetricsHeader(*_HEADER.unpack_from(data))


def verify_metrics(path: str) -> str | None:
    """Check that a metrics file has a supported layout.

    Returns "GPU" for desktop tables, "APU" for APU tables, None otherwise.
    """
    try:
        with open(path, "rb") as handle:
            data = handle.read(_HEADER.size)
    except OSError:
        return None
    if len(data) < _HEADER.size:
        logger.debug("Failed to read the metrics header of '%s'", path)
        return None

    header = read_header(data)
    if 0 < header.content_revision <= 3:
        if header.format_revision == 1:
            return "GPU"
        if header.format_revision == 2:
            return "APU"
    logger.warning(
        "Unsupported gpu_metrics version: %d.%d",
        header.format_revision,
        header.content_revision,
    )
    return None


def _apply_v1(data: bytes, metrics: AmdgpuMetrics) -> int:
    f = _unpack(_V1, _V1_FIELDS, data)
    metrics.gpu_load_percent = f["average_gfx_activity"]
    metrics.average_gfx_power_w = float(f["average_socket_power"])
    metrics.current_gfxclk_mhz = f["current_gfxclk"]
    metrics.current_uclk_mhz = f["current_uclk"]
    metrics.gpu_temp_c = f["temperature_edge"]
    return f["indep_throttle_status"]


def _apply_v2(
    data: bytes,
    content_revision: int,
    metrics: AmdgpuMetrics,
    core_count: int,
    cpu_temp_reader: Callable[[], int | None] | None,
) -> int:
    f = _unpack(_V2, _V2_FIELDS, data)
    cores = max(min(core_count // 2, 8), 0)
    has_average_temps = content_revision >= 3

    metrics.gpu_load_percent = f["average_gfx_activity"]
    metrics.average_gfx_power_w = f["average_gfx_power"] / 1000.0

    cpu_power = f["average_cpu_power"]
    if _valid(cpu_power) and _valid(f["average_soc_power"]):
        metrics.average_cpu_power_w = cpu_power / 1000.0
    elif _valid(f["average_core_power"][0]):
        metrics.average_cpu_power_w = float(sum(f["average_core_power"][:cores]))
    elif _valid(f["average_socket_power"]) and _valid(f["average_gfx_power"]):
        metrics.average_cpu_power_w = (
            f["average_socket_power"] / 1000.0 - f["average_gfx_power"] / 1000.0
        )
    elif _valid(cpu_power):
        metrics.average_cpu_power_w = cpu_power / 1000.0
    else:
        metrics.average_cpu_power_w = 0.0

    if _valid(f["current_gfxclk"]):
        metrics.current_gfxclk_mhz = f["current_gfxclk"]
    elif _valid(f["average_gfxclk_frequency"]):
        metrics.current_gfxclk_mhz = f["average_gfxclk_frequency"]
    else:
        metrics.current_gfxclk_mhz = 0

    if _valid(f["current_uclk"]):
        metrics.current_uclk_mhz = f["current_uclk"]
    elif _valid(f["average_uclk_frequency"]):
        metrics.current_uclk_mhz = f["average_uclk_frequency"]
    else:
        metrics.current_uclk_mhz = 0

    if _valid(f["temperature_soc"]):
        metrics.soc_temp_c = f["temperature_soc"] // 100
    elif has_average_temps and _valid(f["average_temperature_soc"]):
        metrics.soc_temp_c = f["average_temperature_soc"] // 100
    else:
        metrics.soc_temp_c = 0

    if _valid(f["temperature_gfx"]):
        metrics.gpu_temp_c = f["temperature_gfx"] // 100
    elif has_average_temps and _valid(f["average_temperature_gfx"]):
        metrics.gpu_temp_c = f["average_temperature_gfx"] // 100
    else:
        metrics.gpu_temp_c = 0

    if _valid(f["temperature_core"][0]):
        metrics.apu_cpu_temp_c = max((0, *f["temperature_core"][:cores])) // 100
    elif has_average_temps and _valid(f["average_temperature_core"][0]):
        metrics.apu_cpu_temp_c = max((0, *f["average_temperature_core"][:cores])) // 100
    else:
        temp = cpu_temp_reader() if cpu_temp_reader is not None else None
        metrics.apu_cpu_temp_c = temp if temp is not None else 0

    return f["indep_throttle_status"]


def _apply(
    data: bytes,
    metrics: AmdgpuMetrics,
    core_count: int,
    cpu_temp_reader: Callable[[], int | None] | None,
) -> None:
    padded = bytes(data).ljust(_V2.size, b"\0")
    header = read_header(padded)
    indep = 0
    if header.format_revision == 1:
        indep = _apply_v1(padded, metrics)
    elif header.format_revision == 2:
        indep = _apply_v2(padded, header.content_revision, metrics, core_count, cpu_temp_reader)

    metrics.is_power_throttled = (indep & 0xFF) != 0
    metrics.is_current_throttled = ((indep >> 16) & 0xFF) != 0
    metrics.is_temp_throttled = ((indep >> 32) & 0xFFFF) != 0
    metrics.is_other_throttled = ((indep >> 56) & 0xFF) != 0


def parse_instant_metrics(
    data: bytes,
    core_count: int = 0,
    cpu_temp_reader: Callable[[], int | None] | None = None,
) -> AmdgpuMetrics | None:
    """Decode one metrics table; None if the data is too large to be one.

    ``core_count`` is the number of logical CPUs; half of them are taken as
    physical cores when reading per-core APU values.
    """
    if len(data) >= _MAX_FILE_SIZE:
        return None
    metrics = AmdgpuMetrics()
    _apply(data, metrics, core_count, cpu_temp_reader)
    return metrics


def average_samples(samples: Sequence[AmdgpuMetrics]) -> AmdgpuMetrics:
    """Average loads, powers, clocks and temperatures; OR the throttle flags."""
    if not samples:
        raise ValueError("no samples to average")
    count = len(samples)

    def int_avg(name: str) -> int:
        return sum(getattr(s, name) for s in samples) // count

    def float_avg(name: str) -> float:
        return sum(getattr(s, name) for s in samples) / count

    def flag(name: str) -> bool:
        return any(getattr(s, name) for s in samples)

    return AmdgpuMetrics(
        gpu_load_percent=int_avg("gpu_load_percent"),
        average_gfx_power_w=float_avg("average_gfx_power_w"),
        average_cpu_power_w=float_avg("average_cpu_power_w"),
        current_gfxclk_mhz=int_avg("current_gfxclk_mhz"),
        current_uclk_mhz=int_avg("current_uclk_mhz"),
        soc_temp_c=int_avg("soc_temp_c"),
        gpu_temp_c=int_avg("gpu_temp_c"),
        apu_cpu_temp_c=int_avg("apu_cpu_temp_c"),
        is_power_throttled=flag("is_power_throttled"),
        is_current_throttled=flag("is_current_throttled"),
        is_temp_throttled=flag("is_temp_throttled"),
        is_other_throttled=flag("is_other_throttled"),
    )


def _read_metrics_file(path: str) -> bytes | None:
    try:
        with open(path, "rb") as handle:
            data = handle.read(_MAX_FILE_SIZE)
    except OSError:
        return None
    if len(data) >= _MAX_FILE_SIZE:
        logger.debug("amdgpu metrics file '%s' is larger than the buffer", path)
        return None
    return data


class AmdgpuMonitor:
    """Polls a metrics file in the background and keeps averaged values."""

    def __init__(
        self,
        path: str,
        core_count: int = 0,
        cpu_temp_reader: Callable[[], int | None] | None = None,
    ) -> None:
        self.path = path
        self.core_count = core_count
        self.cpu_temp_reader = cpu_temp_reader
        self.sample_count = METRICS_SAMPLE_COUNT
        self.polling_period = METRICS_POLLING_PERIOD_MS / 1000.0
        self.paused = False
        self._metrics = AmdgpuMetrics()
        self._lock = threading.Lock()
        self._needs_dividing = False
        self._buffer: list[AmdgpuMetrics] = []
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    def _read_into(self, metrics: AmdgpuMetrics) -> None:
        data = _read_metrics_file(self.path)
        if data is not None:
            _apply(data, metrics, self.core_count, self.cpu_temp_reader)

    def sample(self) -> list[AmdgpuMetrics]:
        """Take one round of samples; a failed read keeps the previous values."""
        if len(self._buffer) != self.sample_count:
            self._buffer = [AmdgpuMetrics() for _ in range(self.sample_count)]
        for metrics in self._buffer:
            self._read_into(metrics)
            # Some GPUs report the load in centipercent.
            if self._needs_dividing or metrics.gpu_load_percent > 100:
                self._needs_dividing = True
                metrics.gpu_load_percent //= 100
            if self.polling_period > 0:
                time.sleep(self.polling_period)
        return [dataclasses.replace(metrics) for metrics in self._buffer]

    def poll_once(self) -> AmdgpuMetrics:
        """Sample, average and publish the result."""
        averaged = average_samples(self.sample())
        with self._lock:
            self._metrics = averaged
        return dataclasses.replace(averaged)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            if self.paused:
                self._stop_event.wait(0.1)
            else:
                self.poll_once()

    @property
    def running(self) -> bool:
        """Whether the polling thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Read the file once, then keep polling it in a daemon thread."""
        if self.running:
            return
        initial = AmdgpuMetrics()
        self._read_into(initial)
        if initial.gpu_load_percent > 100:
            self._needs_dividing = True
            initial.gpu_load_percent //= 100
        with self._lock:
            self._metrics = initial
        self._buffer = [AmdgpuMetrics() for _ in range(self.sample_count)]
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the polling thread and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def snapshot(self) -> AmdgpuMetrics:
        """A copy of the latest published values."""
        with self._lock:
            return dataclasses.replace(self._metrics)