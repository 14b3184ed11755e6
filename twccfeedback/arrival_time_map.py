"""Tracking of packet arrival times keyed by unwrapped sequence number."""

from __future__ import annotations

MIN_CAPACITY = 128
MAX_NUMBER_OF_PACKETS = 1 << 15

_NOT_RECEIVED = -1


class PacketArrivalTimeMap:
    """Arrival times of packets over a sliding window of sequence numbers.

    Storage is a circular buffer whose length is always a power of two; the
    packet with sequence number ``sn`` lives in slot ``sn % capacity``. The
    valid range is ``[begin_sequence_number, end_sequence_number)``. Slots for
    packets in that range that have not arrived hold a negative value.
    """

    def __init__(self) -> None:
        self._arrival_times: list[int] | None = None
        self._begin = 0
        self._end = 0

    def add_packet(self, sequence_number: int, arrival_time: int) -> None:
        """Record that ``sequence_number`` arrived at ``arrival_time``."""
        if self._arrival_times is None:
            self._reallocate(MIN_CAPACITY)
            self._begin = sequence_number
            self._end = sequence_number + 1
            self._store(sequence_number, arrival_time)
            return

        if self._begin <= sequence_number < self._end:
            self._store(sequence_number, arrival_time)
            return

        if sequence_number < self._begin:
            new_size = self._end - sequence_number
            if new_size > MAX_NUMBER_OF_PACKETS:
                # Expanding back this far would drop newer packets.
                return
            self._adjust_to_size(new_size)
            self._store(sequence_number, arrival_time)
            self._set_not_received(sequence_number + 1, self._begin)
            self._begin = sequence_number
            return

        new_end = sequence_number + 1

        if new_end >= self._end + MAX_NUMBER_OF_PACKETS:
            # Every held packet falls out of the window.
            self._begin = sequence_number
            self._end = new_end
            self._store(sequence_number, arrival_time)
            return

        if self._begin < new_end - MAX_NUMBER_OF_PACKETS:
            self._begin = new_end - MAX_NUMBER_OF_PACKETS

        self._adjust_to_size(new_end - self._begin)
        # Packets may arrive out of order; mark the gap as not yet received.
        self._set_not_received(self._end, sequence_number)
        self._end = new_end
        self._store(sequence_number, arrival_time)

    def begin_sequence_number(self) -> int:
        """Return the first valid sequence number."""
        return self._begin

    def end_sequence_number(self) -> int:
        """Return the sequence number just past the last valid one."""
        return self._end

    def capacity(self) -> int:
        """Return the size of the underlying buffer."""
        return 0 if self._arrival_times is None else len(self._arrival_times)

    def find_next_at_or_after(self, sequence_number: int) -> tuple[int, int] | None:
        """Return ``(sequence_number, arrival_time)`` of the first received
        packet at or after ``sequence_number``, or None if there is none."""
        for sn in range(self.clamp(sequence_number), self._end):
            arrival = self.get(sn)
            if arrival >= 0:
                return sn, arrival
        return None

    def erase_to(self, sequence_number: int) -> None:
        """Drop every entry before ``sequence_number``."""
        if sequence_number < self._begin:
            return
        if sequence_number >= self._end:
            self._begin = self._end
            return
        self._begin = sequence_number
        self._adjust_to_size(self._end - self._begin)

    def remove_old_packets(self, sequence_number: int, arrival_time_limit: int) -> None:
        """Drop leading entries before ``sequence_number`` whose arrival time
        is at or below ``arrival_time_limit``."""
        check_to = min(sequence_number, self._end)
        while self._begin < check_to and self.get(self._begin) <= arrival_time_limit:
            self._begin += 1
        self._adjust_to_size(self._end - self._begin)

    def has_received(self, sequence_number: int) -> bool:
        """Return whether the packet with this sequence number has arrived."""
        return self.get(sequence_number) >= 0

    def clamp(self, sequence_number: int) -> int:
        """Clamp ``sequence_number`` to ``[begin, end]``."""
        return max(self._begin, min(sequence_number, self._end))

    def get(self, sequence_number: int) -> int:
        """Return the arrival time, or a negative value if not received."""
        if not self._begin <= sequence_number < self._end:
            return _NOT_RECEIVED
        assert self._arrival_times is not None
        return self._arrival_times[self._index(sequence_number)]

    def _store(self, sequence_number: int, arrival_time: int) -> None:
        assert self._arrival_times is not None
        self._arrival_times[self._index(sequence_number)] = arrival_time

    def _set_not_received(self, start_inclusive: int, end_exclusive: int) -> None:
        for sn in range(start_inclusive, end_exclusive):
            self._store(sn, _NOT_RECEIVED)

    def _index(self, sequence_number: int) -> int:
        # Capacity is a power of two, so masking handles negative numbers too.
        return sequence_number & (self.capacity() - 1)

    def _adjust_to_size(self, new_size: int) -> None:
        capacity = self.capacity()
        if new_size > capacity:
            new_capacity = capacity
            while new_capacity < new_size:
                new_capacity *= 2
            self._reallocate(new_capacity)
        capacity = self.capacity()
        if capacity > max(MIN_CAPACITY, new_size * 4):
            new_capacity = capacity
            while new_capacity >= 2 * max(new_size, MIN_CAPACITY):
                new_capacity //= 2
            self._reallocate(new_capacity)

    def _reallocate(self, new_capacity: int) -> None:
        buffer = [0] * new_capacity
        mask = new_capacity - 1
        for sn in range(self._begin, self._end):
            buffer[sn & mask] = self.get(sn)
        self._arrival_times = buffer