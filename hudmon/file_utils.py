"""Small filesystem and process helpers."""

from __future__ import annotations

import enum
import logging
import os
import stat

logger = logging.getLogger(__name__)


class LsFlags(enum.IntFlag):
    """Which kinds of directory entries ``ls`` reports."""

    DIRS = 0x01
    FILES = 0x02


def read_line(filename: str) -> str:
    """Return the first line of a file without its newline, or '' if unreadable."""
    try:
        with open(filename, encoding="utf-8", errors="replace") as handle:
            return handle.readline().rstrip("\n")
    except OSError:
        return ""


def get_basename(path: str) -> str:
    """Return the part after the last '/' or '\\', or the path if none follows."""
    index = max(path.rfind("/"), path.rfind("\\"))
    if index == -1:
        return path
    if index < len(path) - 1:
        return path[index + 1:]
    return path


def ls(root: str, prefix: str | None = None, flags: LsFlags = LsFlags.DIRS) -> list[str]:
    """List entry names under ``root`` that match ``prefix`` and ``flags``.

    Symbolic links are followed to decide whether they are files or directories.
    """
    names: list[str] = []
    try:
        with os.scandir(root) as entries:
            found = list(entries)
    except OSError as exc:
        logger.error("Error opening directory '%s': %s", root, exc.strerror)
        return names

    for entry in found:
        if prefix is not None and not entry.name.startswith(prefix):
            continue
        try:
            if entry.is_symlink():
                mode = os.stat(entry.path).st_mode
                is_dir = stat.S_ISDIR(mode)
                is_file = stat.S_ISREG(mode)
            else:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
        except OSError:
            continue
        if (flags & LsFlags.DIRS and is_dir) or (flags & LsFlags.FILES and is_file):
            names.append(entry.name)
    return names


def file_exists(path: str) -> bool:
    """True if ``path`` exists and is not a directory."""
    try:
        return not stat.S_ISDIR(os.stat(path).st_mode)
    except OSError:
        return False


def dir_exists(path: str) -> bool:
    """True if ``path`` exists and is a directory."""
    try:
        return stat.S_ISDIR(os.stat(path).st_mode)
    except OSError:
        return False


def read_symlink(link: str) -> str:
    """Return the target of a symbolic link, or '' if it cannot be read."""
    try:
        return os.readlink(link)
    except OSError:
        return ""


def get_exe_path() -> str:
    """Path of the running executable."""
    return read_symlink("/proc/self/exe")


def _ends_with_exe(text: str) -> bool:
    return text.lower().endswith(".exe")


def _parse_wine_exe_name(exe_path: str, comm: str, cmdline: list[str], keep_ext: bool) -> str:
    if not (exe_path.endswith("wine-preloader") or exe_path.endswith("wine64-preloader")):
        return ""

    if _ends_with_exe(comm):
        if keep_ext:
            return comm
        return comm[:comm.rfind(".")]

    for arg in cmdline:
        sep = max(arg.rfind("/"), arg.rfind("\\"))
        if arg and sep != -1 and sep < len(arg) - 1:
            dot = -1 if keep_ext else arg.rfind(".")
            if dot < sep:
                dot = len(arg)
            return arg[sep + 1:dot]
        if _ends_with_exe(arg):
            if keep_ext:
                return arg
            return arg[:arg.rfind(".")]
    return ""


def get_wine_exe_name(keep_ext: bool = False) -> str:
    """Name of the Windows program when running under wine, else ''."""
    exe_path = get_exe_path()
    comm = read_line("/proc/self/comm")
    try:
        with open("/proc/self/cmdline", "rb") as handle:
            raw = handle.read()
    except OSError:
        raw = b""
    args = raw.decode("utf-8", errors="replace").split("\0")
    if args and args[-1] == "":
        args.pop()
    return _parse_wine_exe_name(exe_path, comm, args, keep_ext)


def get_home_dir() -> str:
    """Value of HOME, or ''."""
    return os.environ.get("HOME", "")


def get_data_dir() -> str:
    """XDG data directory, falling back to ~/.local/share."""
    value = os.environ.get("XDG_DATA_HOME")
    if value is not None:
        return value
    home = get_home_dir()
    return home + "/.local/share" if home else home


def get_config_dir() -> str:
    """XDG config directory, falling back to ~/.config."""
    value = os.environ.get("XDG_CONFIG_HOME")
    if value is not None:
        return value
    home = get_home_dir()
    return home + "/.config" if home else home


def lib_loaded(lib: str) -> bool:
    """True if a mapped file of this process has ``lib`` in its path."""
    root = "/proc/self/map_files/"
    try:
        with os.scandir(root) as entries:
            found = list(entries)
    except OSError:
        return False
    return any(lib in read_symlink(entry.path) for entry in found)