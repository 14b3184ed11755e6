"""Recording of packet arrivals and building of TWCC feedback reports."""

from __future__ import annotations

from .arrival_time_map import PacketArrivalTimeMap
from .packets import (
    DELTA_SCALE_FACTOR,
    FORMAT_TCC,
    MAX_RUN_LENGTH,
    ONE_BIT_SYMBOLS,
    TWO_BIT_SYMBOLS,
    TYPE_TRANSPORT_SPECIFIC_FEEDBACK,
    PacketStatus,
    PacketStatusChunk,
    RecvDelta,
    RTCPHeader,
    RunLengthChunk,
    StatusVectorChunk,
    SymbolSize,
    TransportLayerCC,
)

PACKET_WINDOW_MICROSECONDS = 500_000
MAX_MISSING_SEQUENCE_NUMBERS = 0x7FFE
REFERENCE_TIME_UNIT_US = 64_000

_SEQUENCE_MODULUS = 1 << 16
_SEQUENCE_HALF = 1 << 15


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero (positive denominator)."""
    quotient = abs(numerator) // denominator
    return -quotient if numerator < 0 else quotient


class _SequenceUnwrapper:
    """Turns wrapping 16-bit sequence numbers into a monotonic integer line."""

    def __init__(self) -> None:
        self._last: int | None = None

    def unwrap(self, value: int) -> int:
        value &= 0xFFFF
        if self._last is None:
            self._last = value
            return value
        forward = (value - self._last) % _SEQUENCE_MODULUS
        backward = forward > _SEQUENCE_HALF or (
            forward == _SEQUENCE_HALF and value <= self._last & 0xFFFF
        )
        if backward and self._last + forward >= _SEQUENCE_MODULUS:
            forward -= _SEQUENCE_MODULUS
        self._last += forward
        return self._last


class ChunkBuilder:
    """Accumulates packet status symbols and encodes them into status chunks."""

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self.deltas: list[int] = []
        self.has_large_delta = False
        self.has_different_types = False

    def can_add(self, symbol: int) -> bool:
        """Return whether ``symbol`` still fits into the chunk being built."""
        count = len(self.deltas)
        large = PacketStatus.RECEIVED_LARGE_DELTA
        return (
            count < TWO_BIT_SYMBOLS
            or (count < ONE_BIT_SYMBOLS and not self.has_large_delta and symbol != large)
            or (count < MAX_RUN_LENGTH and not self.has_different_types and symbol == self.deltas[0])
        )

    def add(self, symbol: int) -> None:
        """Append a status symbol."""
        self.deltas.append(PacketStatus(symbol))
        self.has_large_delta |= symbol == PacketStatus.RECEIVED_LARGE_DELTA
        self.has_different_types |= symbol != self.deltas[0]

    def encode(self) -> PacketStatusChunk:
        """Emit one chunk, keeping any symbols that did not fit for the next one."""
        chunk: PacketStatusChunk
        if not self.has_different_types:
            chunk = RunLengthChunk(symbol=self.deltas[0], run_length=len(self.deltas))
        elif len(self.deltas) == ONE_BIT_SYMBOLS:
            chunk = StatusVectorChunk(SymbolSize.ONE_BIT, list(self.deltas))
        else:
            chunk = StatusVectorChunk(SymbolSize.TWO_BIT, self.deltas[:TWO_BIT_SYMBOLS])
            rest = self.deltas[TWO_BIT_SYMBOLS:]
            self.deltas = rest
            self.has_different_types = any(d != rest[0] for d in rest)
            self.has_large_delta = PacketStatus.RECEIVED_LARGE_DELTA in rest
            return chunk
        self._reset()
        return chunk


class Feedback:
    """A single feedback report under construction."""

    def __init__(self, sender_ssrc: int = 0, media_ssrc: int = 0, fb_pkt_count: int = 0) -> None:
        self.sender_ssrc = sender_ssrc
        self.media_ssrc = media_ssrc
        self.fb_pkt_count = fb_pkt_count & 0xFF
        self.base_sequence_number = 0
        self.ref_timestamp_64ms = 0
        self.last_timestamp_us = 0
        self.next_sequence_number = 0
        self.sequence_number_count = 0
        self.delta_length = 0
        self.last_chunk = ChunkBuilder()
        self.chunks: list[PacketStatusChunk] = []
        self.deltas: list[RecvDelta] = []

    def set_base(self, sequence_number: int, time_us: int) -> None:
        """Set the base sequence number and the reference time."""
        self.base_sequence_number = self.next_sequence_number = sequence_number & 0xFFFF
        self.ref_timestamp_64ms = _div_trunc(time_us, REFERENCE_TIME_UNIT_US)
        self.last_timestamp_us = self.ref_timestamp_64ms * REFERENCE_TIME_UNIT_US

    def add_received(self, sequence_number: int, timestamp_us: int) -> bool:
        """Add a received packet; return False if its delta does not fit."""
        sequence_number &= 0xFFFF
        delta_us = timestamp_us - self.last_timestamp_us
        half = DELTA_SCALE_FACTOR // 2
        delta_scaled = _div_trunc(delta_us + (half if delta_us >= 0 else -half), DELTA_SCALE_FACTOR)
        if not -0x8000 <= delta_scaled <= 0x7FFF:
            return False
        delta_rounded = delta_scaled * DELTA_SCALE_FACTOR

        while self.next_sequence_number != sequence_number:
            self._push_symbol(PacketStatus.NOT_RECEIVED)

        small = 0 <= delta_scaled <= 0xFF
        status = PacketStatus.RECEIVED_SMALL_DELTA if small else PacketStatus.RECEIVED_LARGE_DELTA
        self.delta_length += 1 if small else 2
        self._push_symbol(status)
        self.deltas.append(RecvDelta(type=status, delta=delta_rounded))
        self.last_timestamp_us += delta_rounded
        return True

    def _push_symbol(self, symbol: PacketStatus) -> None:
        if not self.last_chunk.can_add(symbol):
            self.chunks.append(self.last_chunk.encode())
        self.last_chunk.add(symbol)
        self.sequence_number_count = (self.sequence_number_count + 1) & 0xFFFF
        self.next_sequence_number = (self.next_sequence_number + 1) & 0xFFFF

    def to_rtcp(self) -> TransportLayerCC:
        """Finish the report and return it as an RTCP packet."""
        while self.last_chunk.deltas:
            self.chunks.append(self.last_chunk.encode())

        # 4 bytes header, 16 bytes TWCC header, 2 per chunk, then the deltas.
        length = 20 + len(self.chunks) * 2 + self.delta_length
        padding = length % 4 != 0
        length += -length % 4

        return TransportLayerCC(
            header=RTCPHeader(
                count=FORMAT_TCC,
                type=TYPE_TRANSPORT_SPECIFIC_FEEDBACK,
                padding=padding,
                length=(length // 4 - 1) & 0xFFFF,
            ),
            sender_ssrc=self.sender_ssrc,
            media_ssrc=self.media_ssrc,
            base_sequence_number=self.base_sequence_number,
            packet_status_count=self.sequence_number_count,
            reference_time=self.ref_timestamp_64ms & 0xFFFFFFFF,
            fb_pkt_count=self.fb_pkt_count,
            packet_chunks=list(self.chunks),
            recv_deltas=list(self.deltas),
        )


class Recorder:
    """Records incoming packets and builds transport-wide feedback reports."""

    def __init__(self, sender_ssrc: int) -> None:
        self.sender_ssrc = sender_ssrc
        self.media_ssrc = 0
        self._arrival_times = PacketArrivalTimeMap()
        self._unwrapper = _SequenceUnwrapper()
        self._start_sequence_number: int | None = None
        self._fb_pkt_count = 0
        self._packets_held = 0

    def record(self, media_ssrc: int, sequence_number: int, arrival_time: int) -> None:
        """Mark the packet with this transport sequence number as received."""
        self.media_ssrc = media_ssrc
        unwrapped = self._unwrapper.unwrap(sequence_number)
        start = self._start_sequence_number
        if (
            start is not None
            and start >= self._arrival_times.end_sequence_number()
            and arrival_time >= PACKET_WINDOW_MICROSECONDS
        ):
            self._arrival_times.remove_old_packets(
                unwrapped, arrival_time - PACKET_WINDOW_MICROSECONDS
            )
        if start is None or unwrapped < start:
            self._start_sequence_number = unwrapped

        # Only the first arrival of a packet counts.
        if self._arrival_times.has_received(unwrapped):
            return
        self._arrival_times.add_packet(unwrapped, arrival_time)
        self._packets_held += 1
        self._start_sequence_number = max(
            self._start_sequence_number, self._arrival_times.begin_sequence_number()
        )

    def packets_held(self) -> int:
        """Return the number of packets recorded since the last report."""
        return self._packets_held

    def build_feedback_packet(self) -> list[TransportLayerCC]:
        """Build feedback reports covering every packet not yet reported."""
        if self._start_sequence_number is None:
            return []
        end = self._arrival_times.end_sequence_number()
        reports: list[TransportLayerCC] = []
        while self._start_sequence_number < end:
            feedback = self._maybe_build_feedback(self._start_sequence_number, end)
            if feedback is None:
                break
            reports.append(feedback.to_rtcp())
        self._packets_held = 0
        return reports

    def _maybe_build_feedback(self, begin_inclusive: int, end_exclusive: int) -> Feedback | None:
        seq = self._arrival_times.clamp(begin_inclusive)
        end = self._arrival_times.clamp(end_exclusive)
        feedback: Feedback | None = None
        next_sequence_number = begin_inclusive

        while seq < end:
            found = self._arrival_times.find_next_at_or_after(seq)
            if found is None or found[0] >= end:
                break
            seq, arrival_time = found

            if feedback is None:
                feedback = Feedback(self.sender_ssrc, self.media_ssrc, self._fb_pkt_count)
                self._fb_pkt_count = (self._fb_pkt_count + 1) & 0xFF
                # Too old missing packets are not reported.
                feedback.set_base(max(begin_inclusive, seq - MAX_MISSING_SEQUENCE_NUMBERS), arrival_time)
                if not feedback.add_received(seq, arrival_time):
                    self._start_sequence_number = seq
                    return None
            elif not feedback.add_received(seq, arrival_time):
                # The report is full; continue in a fresh one.
                break

            next_sequence_number = seq = seq + 1

        self._start_sequence_number = next_sequence_number
        return feedback