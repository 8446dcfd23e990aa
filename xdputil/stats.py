"""Collecting and printing per-action XDP packet statistics."""

from __future__ import annotations

import copy
import locale
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, TextIO, Tuple

from .log import pr_debug
from .util import XDP_ACTION_MAX, XdpAction, action2str

NANOSEC_PER_SEC = 1_000_000_000

Reader = Callable[[int], Iterable[Tuple[int, int]]]


@dataclass
class Record:
    """Counters for one XDP action at one point in time."""

    timestamp: int = 0
    enabled: bool = False
    rx_packets: int = 0
    rx_bytes: int = 0


@dataclass(init=False)
class StatsRecord:
    """One Record for every XDP action."""

    stats: List[Record] = field(default_factory=list)

    def __init__(self, enabled_actions: Optional[Iterable[int]] = None) -> None:
        enabled = {int(a) for a in (enabled_actions or ())}
        self.stats = [Record(enabled=i in enabled) for i in range(XDP_ACTION_MAX)]

    def __getitem__(self, action: int) -> Record:
        return self.stats[action]

    def copy(self) -> "StatsRecord":
        return copy.deepcopy(self)


def _group(fmt: str, value) -> str:
    return locale.format_string(fmt, value, grouping=True)


def calc_period(record: Record, previous: Record) -> float:
    """Seconds between two readings, or 0.0 if time did not advance."""
    period = record.timestamp - previous.timestamp
    if period > 0:
        return period / NANOSEC_PER_SEC
    return 0.0


def stats_print_one(stats: StatsRecord, stream: Optional[TextIO] = None) -> None:
    """Print the totals of every enabled action."""
    out = stream if stream is not None else sys.stdout
    for action, rec in enumerate(stats.stats):
        if not rec.enabled:
            continue
        out.write(
            f"  {action2str(action):<35} {_group('%11d', rec.rx_packets)} pkts "
            f"{_group('%11d', rec.rx_bytes // 1024)} KiB\n"
        )


def stats_print(
    stats: StatsRecord, previous: StatsRecord, stream: Optional[TextIO] = None
) -> None:
    """Print totals and rates of every enabled action since ``previous``.

    Nothing more is printed once an action shows no elapsed time.
    """
    out = stream if stream is not None else sys.stdout
    now_ns = time.time_ns()
    first = True

    for action, (rec, prev) in enumerate(zip(stats.stats, previous.stats)):
        if not rec.enabled:
            continue

        packets = rec.rx_packets - prev.rx_packets
        nbytes = rec.rx_bytes - prev.rx_bytes

        period = calc_period(rec, prev)
        if period == 0:
            return

        if first:
            sec, nsec = divmod(now_ns, NANOSEC_PER_SEC)
            out.write(f"Period of {period:f}s ending at {sec}.{nsec // 1000:06d}\n")
            first = False

        pps = packets / period
        bps = (nbytes * 8) / period / 1_000_000

        out.write(
            f"{action2str(action):<12} {_group('%11d', rec.rx_packets)} pkts "
            f"({_group('%10.0f', pps)} pps) "
            f"{_group('%11d', rec.rx_bytes // 1024)} KiB "
            f"({_group('%6.0f', bps)} Mbits/s)\n"
        )
    out.write("\n")


def stats_collect(reader: Reader, stats: StatsRecord) -> None:
    """Read the counters of every enabled action.

    ``reader(action)`` returns (packets, bytes) pairs, one per CPU; they
    are summed.  Errors raised by the reader propagate.
    """
    for action, rec in enumerate(stats.stats):
        if not rec.enabled:
            continue
        rec.timestamp = time.monotonic_ns()
        packets = 0
        nbytes = 0
        for cpu_packets, cpu_bytes in reader(action):
            packets += cpu_packets
            nbytes += cpu_bytes
        rec.rx_packets = packets
        rec.rx_bytes = nbytes


def _collect_quietly(reader: Reader, stats: StatsRecord) -> None:
    try:
        stats_collect(reader, stats)
    except OSError as exc:
        pr_debug(f"Reading stats failed: {exc}")


def stats_poll(
    reader: Reader,
    interval: int,
    stop: Callable[[], bool],
    check: Optional[Callable[[], None]] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Print rates every ``interval`` milliseconds until ``stop()`` is true.

    ``check`` runs before each reading and stops polling by raising.
    """
    if not interval:
        raise ValueError("polling interval must be non-zero")

    record = StatsRecord(
        (XdpAction.DROP, XdpAction.PASS, XdpAction.REDIRECT, XdpAction.TX)
    )
    _collect_quietly(reader, record)
    time.sleep(0.25)

    while not stop():
        if check is not None:
            check()
        previous = record.copy()
        _collect_quietly(reader, record)
        stats_print(record, previous, stream)
        time.sleep(interval / 1000)