import os

from hudmon.file_utils import (
    LsFlags,
    _parse_wine_exe_name,
    dir_exists,
    file_exists,
    get_basename,
    get_config_dir,
    get_data_dir,
    get_exe_path,
    get_home_dir,
    get_wine_exe_name,
    lib_loaded,
    ls,
    read_line,
    read_symlink,
)


def test_read_line_first_line(tmp_path):
    path = tmp_path / "f"
    path.write_text("first\nsecond\n")
    assert read_line(str(path)) == "first"


def test_read_line_missing(tmp_path):
    assert read_line(str(tmp_path / "missing")) == ""


def test_get_basename():
    assert get_basename("/a/b/c") == "c"
    assert get_basename("a\\b") == "b"
    assert get_basename("noslash") == "noslash"
    assert get_basename("dir/") == "dir/"


def test_ls_flags(tmp_path):
    (tmp_path / "d1").mkdir()
    (tmp_path / "f1").write_text("x")
    os.symlink(tmp_path / "d1", tmp_path / "link")
    assert sorted(ls(str(tmp_path))) == ["d1", "link"]
    assert ls(str(tmp_path), None, LsFlags.FILES) == ["f1"]
    both = sorted(ls(str(tmp_path), None, LsFlags.DIRS | LsFlags.FILES))
    assert both == ["d1", "f1", "link"]


def test_ls_prefix(tmp_path):
    (tmp_path / "temp1_input").write_text("1")
    (tmp_path / "in1_input").write_text("1")
    assert ls(str(tmp_path), "temp", LsFlags.FILES) == ["temp1_input"]


def test_ls_missing_dir(tmp_path):
    assert ls(str(tmp_path / "nope")) == []


def test_file_and_dir_exists(tmp_path):
    f = tmp_path / "f"
    f.write_text("x")
    assert file_exists(str(f))
    assert not file_exists(str(tmp_path))
    assert dir_exists(str(tmp_path))
    assert not dir_exists(str(f))
    assert not file_exists(str(tmp_path / "missing"))


def test_read_symlink(tmp_path):
    target = tmp_path / "target"
    target.write_text("x")
    os.symlink(str(target), tmp_path / "ln")
    assert read_symlink(str(tmp_path / "ln")) == str(target)
    assert read_symlink(str(target)) == ""


def test_exe_path_matches_proc():
    assert get_exe_path() == read_symlink("/proc/self/exe")


def test_home_data_config(monkeypatch):
    monkeypatch.setenv("HOME", "/home/someone")
    monkeypatch.delenv("XDG_DATA_HOME", raising=False)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    assert get_home_dir() == "/home/someone"
    assert get_data_dir() == "/home/someone/.local/share"
    assert get_config_dir() == "/home/someone/.config"


def test_xdg_overrides(monkeypatch):
    monkeypatch.setenv("XDG_DATA_HOME", "/data")
    monkeypatch.setenv("XDG_CONFIG_HOME", "/conf")
    assert get_data_dir() == "/data"
    assert get_config_dir() == "/conf"


def test_no_home(monkeypatch):
    monkeypatch.delenv("HOME", raising=False)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    assert get_config_dir() == ""


def test_wine_name_not_wine():
    assert _parse_wine_exe_name("/usr/bin/python", "Game.exe", [], False) == ""


def test_wine_name_from_comm():
    exe = "/usr/bin/wine64-preloader"
    assert _parse_wine_exe_name(exe, "Game.exe", [], False) == "Game"
    assert _parse_wine_exe_name(exe, "Game.EXE", [], True) == "Game.EXE"


def test_wine_name_from_cmdline():
    exe = "/usr/bin/wine-preloader"
    args = ["wine", "C:\\games\\Game.exe"]
    assert _parse_wine_exe_name(exe, "wine", args, False) == "Game"
    assert _parse_wine_exe_name(exe, "wine", args, True) == "Game.exe"


def test_wine_name_cmdline_bare_exe():
    exe = "/usr/bin/wine-preloader"
    assert _parse_wine_exe_name(exe, "x", ["", "Game.exe"], False) == "Game"


def test_wine_name_real_process_not_wine():
    assert get_wine_exe_name() == ""


def test_lib_loaded_unknown():
    assert lib_loaded("no-such-library-xyz-123") is False