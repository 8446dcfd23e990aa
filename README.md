# xdputil

Support code for XDP tools, usable as a plain Python library on Linux.
It has no runtime dependencies beyond the standard library.

## Modules

- `xdputil.xpcapng` – a small PcapNG writer.
  - `PcapngDumper.open(file, comment=None, hardware=None, os_name=None,
    user_application=None)` writes the section header block. `file` is a path
    (created with mode 0600), `"-"` for standard output, or a writable binary
    stream.
  - `add_interface(snap_len, name=None, description=None, mac=None, speed=0,
    ts_resolution=0, hardware=None)` writes an interface description block
    (Ethernet link type) and returns the interface id, counting from 0.
  - `dump_enhanced_pkt(ifid, pkt, length=None, caplen=None, timestamp=0,
    options=None)` writes an enhanced packet block and returns the number of
    bytes written. `EpbOptions` carries the optional comment, `EpbFlags`
    direction flags, drop count, packet id, queue and XDP verdict.
  - `flush()` flushes and syncs; `close()` closes the file only if the dumper
    opened it. The dumper is also a context manager.
  - `option_length(n)` gives the padded size of an option with `n` data bytes.
- `xdputil.log` – levelled logging to standard error: `LogLevel` (`WARN`,
  `INFO`, `DEBUG`, `VERBOSE`), `log`, `pr_warn`, `pr_info`, `pr_debug`,
  `get_log_level`, `set_log_level` and `increase_log_level`. The default level
  is `INFO`; a newline is appended to messages that lack one.
- `xdputil.util` – `XdpAction`, `XdpMode`, `action2str`, `xdp_mode_name`,
  `make_dir_subdir`, locked-memory limit handling (`set_rlimit`,
  `double_rlimit`), `find_bpf_file` (searches `/usr/lib/bpf` by default),
  `check_bpf_environ` (requires root), `format_bpf_tag`, and a directory lock
  based on `flock` (`prog_lock_acquire`, `prog_lock_release`, and the context
  manager `ProgLock`).
- `xdputil.bpffs` – `find_mountpoint` and `get_bpf_root_dir` find the BPF
  filesystem from a mounts table (`/proc/mounts` by default);
  `unlink_pinned_map` removes a pinned map given a directory path or a
  directory file descriptor, returning whether anything was removed.
- `xdputil.stats` – `Record` and `StatsRecord` hold per-action packet and
  byte counters. `stats_collect(reader, stats)` fills the enabled actions from
  `reader(action)`, which returns one `(packets, bytes)` pair per CPU;
  `stats_print_one` and `stats_print` print totals and rates; `stats_poll`
  repeats this every `interval` milliseconds until `stop()` returns true.

## Example

```python
from xdputil.xpcapng import PcapngDumper, EpbOptions, EpbFlags

with PcapngDumper.open("capture.pcapng", user_application="demo") as dumper:
    ifid = dumper.add_interface(snap_len=65535, name="eth0")
    frame = bytes(60)
    dumper.dump_enhanced_pkt(
        ifid, frame, timestamp=0,
        options=EpbOptions(flags=EpbFlags.INBOUND, comment="first frame"),
    )
```

## What it does not do

- It provides no command-line programs and no command-line option parsing.
- It does not load, attach or detach XDP programs, and does not open or read
  BPF maps itself: statistics come from the `reader` callable you supply.
- A BPF filesystem mount is recognised only from the mounts table, not by
  checking the filesystem type on disk.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```