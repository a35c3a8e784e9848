[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hudmon"
version = "0.1.0"
description = "Collects CPU, AMD GPU, battery and gamepad statistics for a game performance overlay on Linux, and encodes its control messages."
requires-python = ">=3.10"
dependencies = []
keywords = ["monitoring", "hud", "overlay", "cpu", "amdgpu", "battery", "gamepad", "sysfs"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
hudctl = "hudmon.hudctl:main"

[tool.hatch.build.targets.wheel]
packages = ["hudmon"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
