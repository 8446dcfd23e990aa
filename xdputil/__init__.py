"""Support library for XDP tools: PcapNG output, statistics, logging, bpffs and lock helpers."""

__version__ = "1.5.3"
__all__ = ["xpcapng", "log", "util", "bpffs", "stats"]