"""CPU, AMD GPU, battery and gamepad statistics, and overlay control messages."""

__version__ = "0.1.0"
__all__ = [
    "amdgpu",
    "battery",
    "cpu",
    "file_utils",
    "gamepad",
    "hudctl",
    "proto",
]