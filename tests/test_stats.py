import io

import pytest

from xdputil import stats
from xdputil.util import XDP_ACTION_MAX, XdpAction


def test_stats_record_enables_given_actions():
    rec = stats.StatsRecord([XdpAction.PASS, XdpAction.DROP])
    assert len(rec.stats) == XDP_ACTION_MAX
    assert [r.enabled for r in rec.stats].count(True) == 2
    assert rec[XdpAction.PASS].enabled
    assert not rec[XdpAction.TX].enabled


def test_copy_is_independent():
    rec = stats.StatsRecord([XdpAction.PASS])
    dup = rec.copy()
    dup[XdpAction.PASS].rx_packets = 5
    assert rec[XdpAction.PASS].rx_packets == 0


def test_calc_period():
    later = stats.Record(timestamp=2 * stats.NANOSEC_PER_SEC)
    earlier = stats.Record(timestamp=0)
    assert stats.calc_period(later, earlier) == 2.0
    assert stats.calc_period(earlier, earlier) == 0.0
    assert stats.calc_period(earlier, later) == 0.0


def test_stats_print_one_only_enabled():
    rec = stats.StatsRecord([XdpAction.PASS])
    rec[XdpAction.PASS].rx_packets = 1000
    rec[XdpAction.PASS].rx_bytes = 2048
    out = io.StringIO()
    stats.stats_print_one(rec, out)
    lines = out.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].split() == ["XDP_PASS", "1000", "pkts", "2", "KiB"]


def test_stats_print_zero_period_prints_nothing():
    rec = stats.StatsRecord([XdpAction.PASS])
    out = io.StringIO()
    stats.stats_print(rec, rec.copy(), out)
    assert out.getvalue() == ""


def test_stats_collect_sums_per_cpu_and_skips_disabled():
    calls = []

    def reader(action):
        calls.append(action)
        return [(1, 100), (2, 200), (3, 300)]

    rec = stats.StatsRecord([XdpAction.TX])
    stats.stats_collect(reader, rec)
    assert calls == [XdpAction.TX]
    assert rec[XdpAction.TX].rx_packets == 6
    assert rec[XdpAction.TX].rx_bytes == 600
    assert rec[XdpAction.TX].timestamp > 0
    assert rec[XdpAction.PASS].rx_packets == 0


def test_stats_collect_propagates_errors():
    def reader(action):
        raise OSError(2, "missing")

    with pytest.raises(OSError):
        stats.stats_collect(reader, stats.StatsRecord([XdpAction.PASS]))


def test_stats_poll_rejects_zero_interval():
    with pytest.raises(ValueError):
        stats.stats_poll(lambda a: [(0, 0)], 0, lambda: True)


def test_stats_poll_runs_until_stopped(monkeypatch):
    monkeypatch.setattr(stats.time, "sleep", lambda s: None)
    reads = []
    checks = []
    stops = iter([False, False, True])

    def reader(action):
        reads.append(action)
        return [(len(reads), len(reads) * 64)]

    out = io.StringIO()
    stats.stats_poll(reader, 100, lambda: next(stops), lambda: checks.append(1), out)
    assert len(checks) == 2
    assert set(reads) == {XdpAction.DROP, XdpAction.PASS, XdpAction.REDIRECT, XdpAction.TX}
    assert len(reads) == 12


def test_stats_poll_check_failure_stops(monkeypatch):
    monkeypatch.setattr(stats.time, "sleep", lambda s: None)

    def check():
        raise RuntimeError("map changed")

    with pytest.raises(RuntimeError, match="map changed"):
        stats.stats_poll(lambda a: [(0, 0)], 10, lambda: False, check, io.StringIO())