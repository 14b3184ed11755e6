"""Transport-wide congestion control feedback packets and their wire format."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Union

DELTA_SCALE_FACTOR = 250  # receive deltas travel in units of 250 microseconds
FORMAT_TCC = 15
TYPE_TRANSPORT_SPECIFIC_FEEDBACK = 205
RTCP_VERSION = 2
HEADER_LENGTH = 4
_TCC_FIXED_LENGTH = 16
MAX_RUN_LENGTH = 0x1FFF
ONE_BIT_SYMBOLS = 14
TWO_BIT_SYMBOLS = 7


class PacketError(ValueError):
    """Raised when a packet cannot be marshalled or parsed."""


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise PacketError(message)


class PacketStatus(IntEnum):
    """Status symbol of a single packet in a feedback report."""

    NOT_RECEIVED = 0
    RECEIVED_SMALL_DELTA = 1
    RECEIVED_LARGE_DELTA = 2
    RECEIVED_WITHOUT_DELTA = 3


class SymbolSize(IntEnum):
    """Width of each symbol in a status vector chunk."""

    ONE_BIT = 0
    TWO_BIT = 1


@dataclass
class RunLengthChunk:
    """A run of ``run_length`` packets sharing one status symbol."""

    symbol: int
    run_length: int

    def statuses(self) -> list[int]:
        return [self.symbol] * self.run_length

    def marshal(self) -> bytes:
        """Encode the chunk as two bytes."""
        _require(
            0 <= self.symbol <= 3 and 0 <= self.run_length <= MAX_RUN_LENGTH,
            f"invalid run length chunk {self.symbol}x{self.run_length}",
        )
        return struct.pack(">H", (self.symbol << 13) | self.run_length)


@dataclass
class StatusVectorChunk:
    """A vector of one-bit or two-bit status symbols."""

    symbol_size: int
    symbols: list[int] = field(default_factory=list)

    def statuses(self) -> list[int]:
        return list(self.symbols)

    def marshal(self) -> bytes:
        """Encode the chunk as two bytes; missing trailing symbols are zero."""
        _require(self.symbol_size in (0, 1), f"invalid symbol size {self.symbol_size}")
        width = self.symbol_size + 1
        _require(
            len(self.symbols) <= 14 // width
            and all(0 <= s < 1 << width for s in self.symbols),
            "symbols do not fit in a status vector chunk",
        )
        value = 0x8000 | (self.symbol_size << 14)
        for position, symbol in enumerate(self.symbols, 1):
            value |= symbol << (14 - width * position)
        return struct.pack(">H", value)


PacketStatusChunk = Union[RunLengthChunk, StatusVectorChunk]


@dataclass
class RecvDelta:
    """Arrival delta of one received packet, in microseconds."""

    type: int
    delta: int

    def marshal(self) -> bytes:
        """Encode the delta as one byte (small) or two bytes (large)."""
        scaled = abs(self.delta) // DELTA_SCALE_FACTOR * (-1 if self.delta < 0 else 1)
        if self.type == PacketStatus.RECEIVED_SMALL_DELTA and 0 <= scaled <= 0xFF:
            return bytes([scaled])
        if self.type == PacketStatus.RECEIVED_LARGE_DELTA and -0x8000 <= scaled <= 0x7FFF:
            return struct.pack(">h", scaled)
        raise PacketError(f"delta {self.delta} exceeds the limit for type {self.type}")


@dataclass
class RTCPHeader:
    """The common four-byte RTCP header."""

    count: int
    type: int
    padding: bool = False
    length: int = 0

    def marshal(self) -> bytes:
        """Encode the header as four bytes."""
        _require(
            0 <= self.count <= 31 and 0 <= self.type <= 0xFF and 0 <= self.length <= 0xFFFF,
            "RTCP header field out of range",
        )
        first = (RTCP_VERSION << 6) | (int(self.padding) << 5) | self.count
        return struct.pack(">BBH", first, self.type, self.length)


@dataclass
class TransportLayerCC:
    """A transport-wide congestion control feedback report."""

    header: RTCPHeader = field(
        default_factory=lambda: RTCPHeader(FORMAT_TCC, TYPE_TRANSPORT_SPECIFIC_FEEDBACK)
    )
    sender_ssrc: int = 0
    media_ssrc: int = 0
    base_sequence_number: int = 0
    packet_status_count: int = 0
    reference_time: int = 0
    fb_pkt_count: int = 0
    packet_chunks: list[PacketStatusChunk] = field(default_factory=list)
    recv_deltas: list[RecvDelta] = field(default_factory=list)

    def marshal(self) -> bytes:
        """Encode the report, padded to a multiple of four bytes."""
        _require(0 <= self.reference_time <= 0xFFFFFF, "reference time exceeds 24 bits")
        body = bytearray(self.header.marshal())
        body += struct.pack(
            ">IIHH",
            self.sender_ssrc,
            self.media_ssrc,
            self.base_sequence_number,
            self.packet_status_count,
        )
        body += self.reference_time.to_bytes(3, "big")
        body.append(self.fb_pkt_count & 0xFF)
        for part in [*self.packet_chunks, *self.recv_deltas]:
            body += part.marshal()
        padding = -len(body) % 4
        if padding:
            body += bytes(padding)
            if self.header.padding:
                body[-1] = padding
        return bytes(body)


def parse_status_chunk(data: bytes) -> PacketStatusChunk:
    """Decode a two-byte packet status chunk."""
    _require(len(data) >= 2, "packet status chunk needs two bytes")
    (value,) = struct.unpack_from(">H", data)
    if not value & 0x8000:
        return RunLengthChunk(symbol=(value >> 13) & 0x3, run_length=value & MAX_RUN_LENGTH)
    size = SymbolSize((value >> 14) & 0x1)
    width = size + 1
    mask = (1 << width) - 1
    symbols = [(value >> (14 - width * i)) & mask for i in range(1, 14 // width + 1)]
    return StatusVectorChunk(size, symbols)


def parse_transport_layer_cc(data: bytes) -> TransportLayerCC:
    """Decode a transport-wide congestion control feedback report."""
    _require(len(data) >= HEADER_LENGTH, "packet too short for an RTCP header")
    first, packet_type, length = struct.unpack_from(">BBH", data)
    _require(first >> 6 == RTCP_VERSION, f"invalid RTCP version {first >> 6}")
    header = RTCPHeader(first & 0x1F, packet_type, bool(first & 0x20), length)
    _require(
        header.type == TYPE_TRANSPORT_SPECIFIC_FEEDBACK and header.count == FORMAT_TCC,
        "not a transport-wide congestion control packet",
    )
    total = (length + 1) * 4
    _require(total >= HEADER_LENGTH + _TCC_FIXED_LENGTH, "declared length too short")
    _require(len(data) >= total, "packet shorter than its declared length")

    sender_ssrc, media_ssrc, base, status_count = struct.unpack_from(
        ">IIHH", data, HEADER_LENGTH
    )
    offset = HEADER_LENGTH + _TCC_FIXED_LENGTH
    chunks: list[PacketStatusChunk] = []
    processed = 0
    while processed < status_count:
        _require(offset + 2 <= total, "packet truncated inside status chunks")
        chunks.append(parse_status_chunk(data[offset : offset + 2]))
        processed += len(chunks[-1].statuses())
        offset += 2

    deltas: list[RecvDelta] = []
    statuses = [s for chunk in chunks for s in chunk.statuses()][:status_count]
    for status in statuses:
        size = {PacketStatus.RECEIVED_SMALL_DELTA: 1, PacketStatus.RECEIVED_LARGE_DELTA: 2}.get(
            status
        )
        if size is None:
            continue
        _require(offset + size <= total, "packet truncated inside receive deltas")
        scaled = data[offset] if size == 1 else struct.unpack_from(">h", data, offset)[0]
        deltas.append(RecvDelta(status, scaled * DELTA_SCALE_FACTOR))
        offset += size

    return TransportLayerCC(
        header=header,
        sender_ssrc=sender_ssrc,
        media_ssrc=media_ssrc,
        base_sequence_number=base,
        packet_status_count=status_count,
        reference_time=int.from_bytes(data[16:19], "big"),
        fb_pkt_count=data[19],
        packet_chunks=chunks,
        recv_deltas=deltas,
    )