import pytest

from twccfeedback.arrival_time_map import (
    MAX_NUMBER_OF_PACKETS,
    MIN_CAPACITY,
    PacketArrivalTimeMap,
)


def _filled(*pairs):
    m = PacketArrivalTimeMap()
    for sequence_number, arrival_time in pairs:
        m.add_packet(sequence_number, arrival_time)
    return m


def _check(m, begin, end, received=(), missing=()):
    assert (m.begin_sequence_number(), m.end_sequence_number()) == (begin, end)
    assert [sn for sn in received if not m.has_received(sn)] == []
    assert [sn for sn in missing if m.has_received(sn)] == []


def test_consistent_when_empty():
    m = PacketArrivalTimeMap()
    _check(m, 0, 0, missing=[0])
    assert (m.clamp(-5), m.clamp(5)) == (0, 0)


@pytest.mark.parametrize(
    "pairs, begin, end, received, missing, clamps",
    [
        ([(42, 10)], 42, 43, [42], [41, 43, 44], {-100: 42, 42: 42, 100: 43}),
        ([(42, 0), (45, 11)], 42, 46, [42, 45], [41, 43, 44, 46], {-100: 42, 44: 44, 100: 46}),
    ],
)
def test_inserts(pairs, begin, end, received, missing, clamps):
    m = _filled(*pairs)
    _check(m, begin, end, received, missing)
    assert {sn: m.clamp(sn) for sn in clamps} == clamps


def test_gaps_read_as_not_received():
    m = _filled((42, 0), (45, 11))
    assert (m.get(42), m.get(45)) == (0, 11)
    assert m.get(43) < 0 and m.get(44) < 0


def test_find_next_at_or_after_with_gaps():
    m = _filled((42, 0), (45, 11))
    assert m.find_next_at_or_after(42) == (42, 0)
    assert m.find_next_at_or_after(43) == (45, 11)


def test_inserts_within_buffer():
    m = _filled((42, 10), (45, 11), (43, 12), (44, 13))
    _check(m, 42, 46, [42, 43, 44, 45], [41, 46])
    assert [m.get(sn) for sn in range(42, 46)] == [10, 12, 13, 11]


def test_grows_buffer_and_removes_old():
    large = 42 + MAX_NUMBER_OF_PACKETS
    m = _filled((42, 10), (43, 11), (44, 12), (45, 13), (large, 12))
    _check(m, 43, large + 1, [43, 44, 45, large], [41, 42, 46, large + 1])


def test_sequence_number_jump_deletes_all():
    large = 42 + 2 * MAX_NUMBER_OF_PACKETS
    m = _filled((42, 10), (large, 12))
    _check(m, large, large + 1, [large], [42, large + 1])


def test_expands_before_beginning():
    m = _filled((42, 10), (-1000, 13))
    _check(m, -1000, 43, [-1000, 42], [-1001, -999, 43])


def test_expanding_before_beginning_keeps_received():
    m = _filled((42, 10), (42 - 2 * MAX_NUMBER_OF_PACKETS, 13))
    _check(m, 42, 43)


def test_erase_to_removes_elements():
    m = _filled((42, 10), (43, 11), (44, 12), (45, 13))
    m.erase_to(44)
    _check(m, 44, 46, [44, 45], [43, 46])


def test_erases_in_empty_map():
    m = PacketArrivalTimeMap()
    m.erase_to(m.end_sequence_number())
    _check(m, 0, 0)


def test_tolerant_to_wrong_erase_arguments():
    m = _filled((42, 10), (43, 11))
    m.erase_to(1)
    _check(m, 42, 44)
    m.erase_to(100)
    _check(m, 44, 44)


def test_erase_all_remembers_beginning_sequence_number():
    m = _filled((42, 10), (43, 11), (44, 12), (45, 13))
    m.erase_to(46)
    m.add_packet(50, 10)
    _check(m, 46, 51, [50], [45, 46, 47, 48, 49, 51])


def test_erase_to_missing_sequence_number():
    m = _filled((37, 10), (39, 11), (40, 12), (41, 13))
    m.erase_to(38)
    m.add_packet(42, 40)
    _check(m, 38, 43, [39, 40, 41, 42], [37, 38, 43])


def test_remove_old_packets():
    m = _filled((37, 10), (39, 11), (40, 12), (41, 13))
    m.remove_old_packets(42, 11)
    _check(m, 40, 42, [40, 41], [39, 42])


def test_shrinks_buffer_when_necessary():
    large = 100 + MAX_NUMBER_OF_PACKETS - 1
    m = _filled((100, 10), (large, 11))
    m.erase_to(large - 1)
    _check(m, large - 1, large + 1)
    assert m.capacity() == MIN_CAPACITY


def test_find_next_at_or_after_with_invalid_sequence():
    assert _filled((100, 10)).find_next_at_or_after(101) is None


def test_capacity_stays_power_of_two_and_holds_range():
    m = PacketArrivalTimeMap()
    for sn in range(0, 1000, 3):
        m.add_packet(sn, sn * 2)
        cap = m.capacity()
        assert cap & (cap - 1) == 0
        assert cap >= m.end_sequence_number() - m.begin_sequence_number()
    assert all(m.get(sn) == sn * 2 for sn in range(0, 1000, 3))
    assert not any(m.has_received(sn) for sn in range(1, 1000, 3))