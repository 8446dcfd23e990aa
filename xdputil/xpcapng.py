"""A small PcapNG writer for packets captured from XDP programs."""

from __future__ import annotations

import enum
import os
import struct
import sys
from dataclasses import dataclass
from typing import BinaryIO, Optional, Union

SECTION_BLOCK = 0x0A0D0D0A
INTERFACE_BLOCK = 1
ENHANCED_PACKET_BLOCK = 6

BYTE_ORDER_MAGIC = 0x1A2B3C4D
MAJOR_VERSION = 1
MINOR_VERSION = 0
SECTION_LENGTH_UNKNOWN = 0xFFFFFFFFFFFFFFFF
LINKTYPE_ETHERNET = 1

OPT_END = 0
OPT_COMMENT = 1

OPT_SHB_HARDWARE = 2
OPT_SHB_OS = 3
OPT_SHB_USERAPPL = 4

OPT_IDB_IF_NAME = 2
OPT_IDB_IF_DESCRIPTION = 3
OPT_IDB_IF_MAC_ADDR = 6
OPT_IDB_IF_SPEED = 8
OPT_IDB_IF_TSRESOL = 9
OPT_IDB_IF_HARDWARE = 15

OPT_EPB_FLAGS = 2
OPT_EPB_DROPCOUNT = 4
OPT_EPB_PACKETID = 5
OPT_EPB_QUEUE = 6
OPT_EPB_VERDICT = 7

VERDICT_TYPE_EBPF_XDP = 2

_DEFAULT_TS_RESOLUTION = 6
_MAC_LEN = 6

Text = Union[str, bytes]


class EpbFlags(enum.IntFlag):
    """Direction flags stored in an Enhanced Packet Block."""

    NONE = 0
    INBOUND = 0x1
    OUTBOUND = 0x2


@dataclass
class EpbOptions:
    """Optional fields of an Enhanced Packet Block.

    ``flags`` and ``dropcount`` are written only when non-zero; the other
    fields are written whenever they are not ``None``.
    """

    flags: EpbFlags = EpbFlags.NONE
    dropcount: int = 0
    packetid: Optional[int] = None
    queue: Optional[int] = None
    xdp_verdict: Optional[int] = None
    comment: Optional[Text] = None


def option_length(length: int) -> int:
    """Return the on-disk size of an option carrying ``length`` data bytes."""
    return (4 + length + 3) // 4 * 4


def _pack(fmt: str, *values: int) -> bytes:
    try:
        return struct.pack(fmt, *values)
    except struct.error as exc:
        raise ValueError(f"value out of range: {exc}") from None


def _encode(text: Text) -> bytes:
    return text.encode("utf-8") if isinstance(text, str) else bytes(text)


def _option(code: int, data: bytes = b"") -> bytes:
    padding = option_length(len(data)) - 4 - len(data)
    return _pack("=HH", code, len(data)) + data + b"\0" * padding


def _block(block_type: int, body: bytes) -> bytes:
    total = 8 + len(body) + 4
    return _pack("=II", block_type, total) + body + _pack("=I", total)


class PcapngDumper:
    """Writes a PcapNG section, its interfaces and packets to a binary stream."""

    def __init__(self, stream: BinaryIO, owns_stream: bool = False) -> None:
        self._stream = stream
        self._owns_stream = owns_stream
        self._interfaces = 0

    @property
    def stream(self) -> BinaryIO:
        return self._stream

    @property
    def interface_count(self) -> int:
        return self._interfaces

    @classmethod
    def open(
        cls,
        file,
        comment: Optional[Text] = None,
        hardware: Optional[Text] = None,
        os_name: Optional[Text] = None,
        user_application: Optional[Text] = None,
    ) -> "PcapngDumper":
        """Start a capture file and write its section header.

        ``file`` is a path, ``"-"`` for standard output, or a writable
        binary stream.
        """
        if file is None:
            raise ValueError("no output file given")

        if isinstance(file, (str, bytes, os.PathLike)):
            if file == "-":
                dumper = cls(sys.stdout.buffer, owns_stream=False)
            else:
                fd = os.open(file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
                dumper = cls(os.fdopen(fd, "wb"), owns_stream=True)
        else:
            dumper = cls(file, owns_stream=False)

        try:
            dumper._write_shb(comment, hardware, os_name, user_application)
        except BaseException:
            dumper.close()
            raise
        return dumper

    def close(self) -> None:
        """Close the underlying stream if this dumper opened it."""
        if self._owns_stream and not self._stream.closed:
            self._stream.close()

    def flush(self) -> None:
        """Flush buffered data and sync it to storage where possible."""
        self._stream.flush()
        try:
            fd = self._stream.fileno()
        except (AttributeError, OSError, ValueError):
            return
        os.fsync(fd)

    def __enter__(self) -> "PcapngDumper":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _write(self, data: bytes) -> int:
        written = self._stream.write(data)
        if written is not None and written != len(data):
            raise OSError(f"short write: {written} of {len(data)} bytes")
        return len(data)

    def _write_shb(self, comment, hardware, os_name, user_application) -> None:
        body = bytearray(
            _pack(
                "=IHHQ",
                BYTE_ORDER_MAGIC,
                MAJOR_VERSION,
                MINOR_VERSION,
                SECTION_LENGTH_UNKNOWN,
            )
        )
        for code, value in (
            (OPT_COMMENT, comment),
            (OPT_SHB_HARDWARE, hardware),
            (OPT_SHB_OS, os_name),
            (OPT_SHB_USERAPPL, user_application),
        ):
            if value is not None:
                body += _option(code, _encode(value))
        body += _option(OPT_END)
        self._write(_block(SECTION_BLOCK, bytes(body)))

    def add_interface(
        self,
        snap_len: int,
        name: Optional[Text] = None,
        description: Optional[Text] = None,
        mac: Optional[bytes] = None,
        speed: int = 0,
        ts_resolution: int = 0,
        hardware: Optional[Text] = None,
    ) -> int:
        """Write an Interface Description Block and return its interface id."""
        if not 0 <= snap_len <= 0xFFFF:
            raise ValueError(f"snap length out of range: {snap_len}")

        body = bytearray(_pack("=HHI", LINKTYPE_ETHERNET, 0, snap_len))
        if name is not None:
            body += _option(OPT_IDB_IF_NAME, _encode(name))
        if description is not None:
            body += _option(OPT_IDB_IF_DESCRIPTION, _encode(description))
        if mac is not None:
            mac = bytes(mac)
            if len(mac) != _MAC_LEN:
                raise ValueError(f"MAC address must be {_MAC_LEN} bytes")
            body += _option(OPT_IDB_IF_MAC_ADDR, mac)
        if speed:
            body += _option(OPT_IDB_IF_SPEED, _pack("=Q", speed))
        if ts_resolution not in (0, _DEFAULT_TS_RESOLUTION):
            body += _option(OPT_IDB_IF_TSRESOL, _pack("=B", ts_resolution))
        if hardware is not None:
            body += _option(OPT_IDB_IF_HARDWARE, _encode(hardware))
        body += _option(OPT_END)

        self._write(_block(INTERFACE_BLOCK, bytes(body)))
        ifid = self._interfaces
        self._interfaces += 1
        return ifid

    def dump_enhanced_pkt(
        self,
        ifid: int,
        pkt: bytes,
        length: Optional[int] = None,
        caplen: Optional[int] = None,
        timestamp: int = 0,
        options: Optional[EpbOptions] = None,
    ) -> int:
        """Write an Enhanced Packet Block; return the number of bytes written.

        ``length`` is the original packet length and ``caplen`` the number
        of bytes of ``pkt`` stored; both default to ``len(pkt)``.
        """
        pkt = bytes(pkt)
        if caplen is None:
            caplen = len(pkt)
        if length is None:
            length = len(pkt)
        if caplen < 0 or caplen > len(pkt):
            raise ValueError(f"capture length {caplen} exceeds packet data")
        if not 0 <= timestamp <= 0xFFFFFFFFFFFFFFFF:
            raise ValueError(f"timestamp out of range: {timestamp}")
        opts = options if options is not None else EpbOptions()

        data = pkt[:caplen]
        body = bytearray(
            _pack(
                "=IIIII",
                ifid,
                timestamp >> 32,
                timestamp & 0xFFFFFFFF,
                caplen,
                length,
            )
        )
        body += data + b"\0" * ((4 - caplen % 4) % 4)

        if opts.comment is not None:
            body += _option(OPT_COMMENT, _encode(opts.comment))
        if opts.flags:
            body += _option(OPT_EPB_FLAGS, _pack("=I", int(opts.flags)))
        if opts.dropcount:
            body += _option(OPT_EPB_DROPCOUNT, _pack("=Q", opts.dropcount))
        if opts.packetid is not None:
            body += _option(OPT_EPB_PACKETID, _pack("=Q", opts.packetid))
        if opts.queue is not None:
            body += _option(OPT_EPB_QUEUE, _pack("=I", opts.queue))
        if opts.xdp_verdict is not None:
            body += _option(
                OPT_EPB_VERDICT,
                _pack("=Bq", VERDICT_TYPE_EBPF_XDP, opts.xdp_verdict),
            )
        body += _option(OPT_END)

        return self._write(_block(ENHANCED_PACKET_BLOCK, bytes(body)))