"""Helpers shared by the XDP command line tools."""

from __future__ import annotations

import enum
import errno
import fcntl
import os
import resource
from typing import Iterable, Optional

from .log import pr_debug, pr_warn

PATH_MAX = 4096
BPF_DIR_MNT = "/sys/fs/bpf"
BPF_OBJECT_PATH = "/usr/lib/bpf"
BPF_OBJECT_PATHS = (BPF_OBJECT_PATH,)
BPF_TAG_SIZE = 8


class XdpAction(enum.IntEnum):
    """XDP program return codes, plus a catch-all for unknown values."""

    ABORTED = 0
    DROP = 1
    PASS = 2
    TX = 3
    REDIRECT = 4
    UNKNOWN = 5


XDP_ACTION_MAX = len(XdpAction)


class XdpMode(enum.IntEnum):
    """Attach modes for XDP programs."""

    UNSPEC = 0
    NATIVE = 1
    SKB = 2
    HW = 3


_MODE_NAMES = {
    XdpMode.NATIVE: "native",
    XdpMode.SKB: "skb",
    XdpMode.HW: "hw",
    XdpMode.UNSPEC: "unspecified",
}


def action2str(action: int) -> Optional[str]:
    """Return the name of an XDP action, or None if it is out of range."""
    if 0 <= action < XDP_ACTION_MAX:
        return f"XDP_{XdpAction(action).name}"
    return None


def xdp_mode_name(mode: int) -> Optional[str]:
    """Return the user-facing name of an attach mode, or None if unknown."""
    try:
        return _MODE_NAMES[XdpMode(mode)]
    except ValueError:
        return None


def _join(*parts) -> str:
    path = "/".join(os.fspath(p) for p in parts)
    if len(os.fsencode(path)) >= PATH_MAX:
        raise OSError(errno.ENAMETOOLONG, os.strerror(errno.ENAMETOOLONG), path)
    return path


def make_dir_subdir(parent, directory) -> str:
    """Create ``parent`` and ``parent/directory`` if missing; return the latter."""
    path = _join(parent, directory)
    for target in (os.fspath(parent), path):
        try:
            os.mkdir(target, 0o700)
        except FileExistsError:
            pass
    return path


def set_rlimit(min_limit: int) -> int:
    """Raise the locked-memory limit; return the soft limit now in effect.

    With ``min_limit`` the soft limit is raised to at least that value,
    otherwise it is doubled.  An unlimited or zero limit is left alone
    and reported as ENOMEM.
    """
    try:
        soft, hard = resource.getrlimit(resource.RLIMIT_MEMLOCK)
    except OSError:
        pr_warn("Couldn't get current rlimit")
        raise

    if soft == resource.RLIM_INFINITY or soft == 0:
        pr_debug("Current rlimit is infinity or 0. Not raising")
        raise OSError(errno.ENOMEM, "rlimit is infinity or 0")

    if min_limit:
        if soft >= min_limit:
            pr_debug(f"Current rlimit {soft} already >= minimum {min_limit}")
            return soft
        pr_debug(f"Setting rlimit to minimum {min_limit}")
        soft = min_limit
    else:
        pr_debug(f"Doubling current rlimit of {soft}")
        soft <<= 1

    if hard != resource.RLIM_INFINITY:
        hard = max(soft, hard)

    try:
        resource.setrlimit(resource.RLIMIT_MEMLOCK, (soft, hard))
    except (OSError, ValueError) as exc:
        pr_warn(f"Couldn't raise rlimit: {exc}")
        if isinstance(exc, OSError):
            raise
        raise OSError(errno.EPERM, str(exc)) from exc
    return soft


def double_rlimit() -> int:
    """Double the locked-memory limit after a permission failure."""
    pr_debug(
        "Permission denied when loading eBPF object; raising rlimit and retrying"
    )
    return set_rlimit(0)


def find_bpf_file(progname: str, search_paths: Optional[Iterable] = None) -> str:
    """Return the path of the first ``progname`` found in the search paths."""
    paths = BPF_OBJECT_PATHS if search_paths is None else search_paths
    for path in paths:
        candidate = _join(path, progname)
        pr_debug(f"Looking for '{candidate}'")
        try:
            os.stat(candidate)
        except OSError:
            continue
        return candidate

    pr_warn(f"Couldn't find a BPF file with name {progname}")
    raise FileNotFoundError(
        errno.ENOENT, f"Couldn't find a BPF file with name {progname}", progname
    )


def check_bpf_environ() -> None:
    """Require root, then try to raise the locked-memory limit to 1 MiB."""
    if os.geteuid() != 0:
        pr_warn("This program must be run as root.")
        raise PermissionError(errno.EPERM, "This program must be run as root.")

    try:
        set_rlimit(1024 * 1024)
    except OSError:
        pass


def format_bpf_tag(tag: bytes) -> str:
    """Format an eight-byte BPF program tag as lowercase hex."""
    tag = bytes(tag)
    if len(tag) != BPF_TAG_SIZE:
        raise ValueError(f"BPF tag must be {BPF_TAG_SIZE} bytes, got {len(tag)}")
    return tag.hex()


_DIR_FLAGS = os.O_RDONLY | os.O_DIRECTORY


def _open_lock_dir(directory) -> int:
    try:
        return os.open(directory, _DIR_FLAGS)
    except FileNotFoundError:
        os.mkdir(directory, 0o700)
        return os.open(directory, _DIR_FLAGS)


def prog_lock_acquire(directory) -> int:
    """Take an exclusive lock on ``directory``, creating it if needed.

    Returns the file descriptor that holds the lock.
    """
    try:
        lock_fd = _open_lock_dir(directory)
    except OSError as exc:
        pr_warn(f"Couldn't open lock directory at {directory}: {exc.strerror}")
        raise

    try:
        fcntl.flock(lock_fd, fcntl.LOCK_EX)
    except OSError as exc:
        pr_warn(f"Couldn't flock fd {lock_fd}: {exc.strerror}")
        os.close(lock_fd)
        raise

    pr_debug(f"Acquired lock from {directory} with fd {lock_fd}")
    return lock_fd


def prog_lock_release(lock_fd: int) -> None:
    """Release a lock taken by prog_lock_acquire and close its descriptor."""
    error: Optional[OSError] = None
    try:
        fcntl.flock(lock_fd, fcntl.LOCK_UN)
    except OSError as exc:
        pr_warn(f"Couldn't unlock fd {lock_fd}: {exc.strerror}")
        error = exc
    else:
        pr_debug(f"Released lock fd {lock_fd}")
    finally:
        os.close(lock_fd)
    if error is not None:
        raise error


class ProgLock:
    """Context manager holding the program lock on a directory."""

    def __init__(self, directory) -> None:
        self.directory = directory
        self.fd: Optional[int] = None

    def __enter__(self) -> "ProgLock":
        self.fd = prog_lock_acquire(self.directory)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.fd is not None:
            fd, self.fd = self.fd, None
            prog_lock_release(fd)