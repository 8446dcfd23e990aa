import os

import pytest

from xdputil import bpffs


def _mounts(tmp_path, *lines):
    path = tmp_path / "mounts"
    path.write_text("".join(line + "\n" for line in lines))
    return path


def test_find_mountpoint_returns_first_match(tmp_path):
    mounts = _mounts(
        tmp_path,
        "proc /proc proc rw,nosuid 0 0",
        "bpf /first/bpf bpf rw,nosuid 0 0",
        "bpf /second/bpf bpf rw 0 0",
    )
    assert bpffs.find_mountpoint("bpf", mounts) == "/first/bpf"
    assert bpffs.find_mountpoint("proc", mounts) == "/proc"


def test_find_mountpoint_missing_type(tmp_path):
    mounts = _mounts(tmp_path, "proc /proc proc rw 0 0")
    assert bpffs.find_mountpoint("bpf", mounts) is None


def test_find_mountpoint_missing_file(tmp_path):
    assert bpffs.find_mountpoint("bpf", tmp_path / "absent") is None


def test_find_mountpoint_decodes_escapes(tmp_path):
    mounts = _mounts(tmp_path, "bpf /mnt/my\\040bpf bpf rw 0 0")
    assert bpffs.find_mountpoint("bpf", mounts) == "/mnt/my bpf"


def test_find_mountpoint_skips_short_lines(tmp_path):
    mounts = _mounts(tmp_path, "garbage", "bpf /x bpf rw 0 0")
    assert bpffs.find_mountpoint("bpf", mounts) == "/x"


def test_root_dir_default_mount(tmp_path):
    mounts = _mounts(tmp_path, "bpf /sys/fs/bpf bpf rw 0 0")
    assert bpffs.get_bpf_root_dir(None, False, mounts) == "/sys/fs/bpf"
    assert bpffs.get_bpf_root_dir("xdp", False, mounts) == "/sys/fs/bpf/xdp"


def test_root_dir_prefers_known_mounts(tmp_path):
    mounts = _mounts(
        tmp_path,
        "bpf /other bpf rw 0 0",
        "bpf /bpf bpf rw 0 0",
    )
    assert bpffs.get_bpf_root_dir(None, False, mounts) == "/bpf"


def test_root_dir_any_bpf_mount(tmp_path):
    mounts = _mounts(tmp_path, "bpf /custom/place bpf rw 0 0")
    assert bpffs.get_bpf_root_dir("sub", False, mounts) == "/custom/place/sub"


def test_root_dir_not_found_fatal_warns(tmp_path, capsys):
    mounts = _mounts(tmp_path, "proc /proc proc rw 0 0")
    with pytest.raises(FileNotFoundError):
        bpffs.get_bpf_root_dir("xdp", True, mounts)
    assert "Could not find BPF working dir" in capsys.readouterr().err


def test_root_dir_not_found_non_fatal_quiet(tmp_path, capsys):
    mounts = _mounts(tmp_path, "proc /proc proc rw 0 0")
    with pytest.raises(FileNotFoundError):
        bpffs.get_bpf_root_dir("xdp", False, mounts)
    assert "Could not find BPF working dir" not in capsys.readouterr().err


def test_unlink_pinned_map_by_path(tmp_path):
    (tmp_path / "my_map").write_bytes(b"")
    assert bpffs.unlink_pinned_map(tmp_path, "my_map") is True
    assert not (tmp_path / "my_map").exists()


def test_unlink_pinned_map_missing(tmp_path):
    assert bpffs.unlink_pinned_map(str(tmp_path), "nothing") is False


def test_unlink_pinned_map_by_fd(tmp_path):
    (tmp_path / "fd_map").write_bytes(b"")
    fd = os.open(tmp_path, os.O_RDONLY | os.O_DIRECTORY)
    try:
        assert bpffs.unlink_pinned_map(fd, "fd_map") is True
        assert bpffs.unlink_pinned_map(fd, "fd_map") is False
    finally:
        os.close(fd)
    assert list(tmp_path.iterdir()) == []