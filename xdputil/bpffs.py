"""Locating the BPF filesystem and managing objects pinned in it."""

from __future__ import annotations

import os
import re
from typing import Iterator, Optional, Tuple, Union

from .log import LogLevel, log, pr_debug, pr_warn
from .util import BPF_DIR_MNT, PATH_MAX

PROC_MOUNTS = "/proc/mounts"
BPF_FSTYPE = "bpf"
BPF_KNOWN_MOUNTS = (BPF_DIR_MNT, "/bpf")

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


def _unescape(field: str) -> str:
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


def _mount_entries(mounts_file) -> Iterator[Tuple[str, str]]:
    """Yield (mount point, filesystem type) pairs from a mounts table."""
    try:
        with open(mounts_file, encoding="utf-8", errors="surrogateescape") as fp:
            for line in fp:
                fields = line.split()
                if len(fields) < 3:
                    continue
                yield _unescape(fields[1]), fields[2]
    except OSError:
        return


def _is_mounted_as(path: str, fstype: str, mounts_file) -> bool:
    return any(
        mnt == path and kind == fstype for mnt, kind in _mount_entries(mounts_file)
    )


def find_mountpoint(fstype: str, mounts_file=PROC_MOUNTS) -> Optional[str]:
    """Return the first mount point of type ``fstype`` in the mounts table."""
    for mnt, kind in _mount_entries(mounts_file):
        if kind == fstype:
            return mnt
    return None


def _check_target(target: str) -> bool:
    try:
        os.mkdir(target, 0o700)
    except FileExistsError:
        pass
    except OSError as exc:
        pr_warn(f"mkdir {target} failed: {exc.strerror}")
        return False
    return True


def _bpf_work_dir(mounts_file) -> Optional[str]:
    for known in BPF_KNOWN_MOUNTS:
        if _is_mounted_as(known, BPF_FSTYPE, mounts_file):
            return known

    mnt = find_mountpoint(BPF_FSTYPE, mounts_file)
    if mnt is not None:
        return mnt

    if not _check_target(BPF_DIR_MNT):
        return None
    if not _is_mounted_as(BPF_DIR_MNT, BPF_FSTYPE, mounts_file):
        return None
    return BPF_DIR_MNT


def get_bpf_root_dir(
    subdir: Optional[str] = None, fatal: bool = False, mounts_file=PROC_MOUNTS
) -> str:
    """Return the BPF filesystem mount point, joined with ``subdir`` if given.

    A mount point is accepted when the mounts table lists it with type
    ``bpf``.  Raises FileNotFoundError when no such mount exists; the
    message is logged as a warning when ``fatal`` is set, else as debug.
    """
    bpf_dir = _bpf_work_dir(mounts_file)
    if bpf_dir is None:
        message = "Could not find BPF working dir - bpffs not mounted?"
        log(LogLevel.WARN if fatal else LogLevel.DEBUG, message)
        raise FileNotFoundError(message)

    path = f"{bpf_dir}/{subdir}" if subdir else bpf_dir
    if len(os.fsencode(path)) >= PATH_MAX:
        raise OSError(36, "File name too long", path)
    return path


def unlink_pinned_map(directory: Union[int, str, os.PathLike], map_name: str) -> bool:
    """Remove a pinned map from ``directory`` (a path or a directory fd).

    Returns True if the map was removed and False if it was not pinned.
    """
    if isinstance(directory, int):
        target, kwargs = map_name, {"dir_fd": directory}
    else:
        target, kwargs = os.path.join(directory, map_name), {}

    try:
        os.stat(target, **kwargs)
    except FileNotFoundError:
        pr_debug(f"Map name {map_name} not pinned")
        return False
    except OSError as exc:
        pr_warn(f"Couldn't stat pinned map {map_name}: {exc.strerror}")
        raise

    pr_debug(f"Unlinking pinned map {map_name}")
    try:
        os.unlink(target, **kwargs)
    except OSError as exc:
        pr_warn(f"Couldn't unlink pinned map {map_name}: {exc.strerror}")
        raise
    return True