# hudmon

Collects the system statistics that a game performance overlay shows, on
Linux. Everything is read from `/proc` and `/sys`; the package has no
dependencies outside the standard library.

- `hudmon.cpu`: `CPUStats` reads per-core and total load from `/proc/stat`,
  core frequencies, the CPU temperature through hwmon, and package power from
  k10temp, zenpower, RAPL, or a value passed in from the GPU metrics.
- `hudmon.amdgpu`: decodes the binary `gpu_metrics` table of AMD GPUs and APUs
  (`verify_metrics`, `parse_instant_metrics`) and averages samples taken in a
  background thread (`AmdgpuMonitor`).
- `hudmon.battery`: `BatteryStats` gives battery charge, power draw and hours
  left for up to two batteries.
- `hudmon.gamepad`: `scan_gamepads` finds controllers under
  `/sys/class/power_supply`; `gamepad_info` reports their name, battery level
  and charging state as `Gamepad` objects.
- `hudmon.proto`: the binary messages of the overlay application,
  `FrameMessage` and `CtrlMessage`, with `encode()` and `decode()`.
- `hudmon.hudctl`: builds control messages from the command line.
- `hudmon.file_utils`: small helpers (`read_line`, `ls`, `file_exists`,
  `get_config_dir`, `get_wine_exe_name` and others).

## Installing

```
pip install .
```

## The `hudctl` command

```
hudctl set no_display true
hudctl toggle log_session
hudctl set reload_config 1
```

The attributes are `no_display`, `log_session` and `reload_config`. `set`
accepts `true` or `false` in any case, or `1` or `0`. The command builds a
`CtrlMessage` with that attribute set to SET, UNSET or TOGGLE and writes its
encoded bytes to standard output; it does not deliver them anywhere itself.
A value that is not a boolean prints an error; any other wrong use prints the
usage text. Both exit with status 1.

## Using it as a library

```python
from hudmon.cpu import CPUStats

stats = CPUStats()
if stats.init():
    stats.update_cpu_data()
    for core in stats.cpus:
        print(core.cpu_id, core.percent)
    print("total", stats.total.percent)
```

`init()` discovers the CPUs and takes a first reading; each later
`update_cpu_data()` computes load since the previous call. `update_core_mhz()`,
`get_cpu_file()` with `update_cpu_temp()`, and `init_cpu_power_data()` with
`update_cpu_power()` fill in `stats.total.cpu_mhz`, `.temp` and `.power`.

```python
from hudmon.amdgpu import AmdgpuMonitor, verify_metrics

path = "/sys/class/drm/card0/device/gpu_metrics"
if verify_metrics(path):            # "GPU", "APU" or None
    monitor = AmdgpuMonitor(path, core_count=16)
    monitor.start()
    print(monitor.snapshot())
    monitor.stop()
```

```python
from hudmon.battery import BatteryStats

battery = BatteryStats()
battery.update()
print(battery.current_percent, battery.current_watt, battery.remaining_time)
```

```python
from hudmon.gamepad import gamepad_info, scan_gamepads

for pad in gamepad_info(scan_gamepads()):
    print(pad.name, pad.battery, pad.is_charging)
```

## What it does not do

The package only collects and encodes data. It does not draw an overlay, does
not read or parse configuration files, keeps no list of programs to leave
unmonitored, and has no control socket server or message queue client: the
`hudctl` command writes its message to standard output only.

## Running the tests

```
pip install .[test]
pytest
```