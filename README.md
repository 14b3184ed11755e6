# twccfeedback

Record when RTP packets that carry a transport-wide sequence number
arrive, and build RTCP transport-wide congestion control (TWCC) feedback
packets from those records.

## Installation

```
pip install twccfeedback
```

## Recording arrivals and building feedback

```python
from twccfeedback.recorder import Recorder

recorder = Recorder(5000)                 # sender SSRC used in feedback packets

# media SSRC, 16-bit transport sequence number, arrival time in microseconds
recorder.record(1234, 0, 64_000)
recorder.record(1234, 1, 64_250)
recorder.record(1234, 3, 65_000)          # 2 was lost

print(recorder.packets_held())            # 3

for packet in recorder.build_feedback_packet():
    wire = packet.marshal()               # bytes ready to send
    print(packet.base_sequence_number, packet.packet_status_count, len(wire))
```

Transport sequence numbers wrap after 65535. The recorder unwraps them,
so reports stay correct across the wrap. Only the first arrival of each
sequence number is recorded; duplicates are ignored. After every packet
held has been reported, later recordings drop history entries that are more
than 500 ms older than the newest arrival. Deltas that do not fit into
one feedback packet continue in another, so `build_feedback_packet` may
return several packets. It returns an empty list when nothing has been
recorded. Each call resets `packets_held()` to zero.

## Packets

`twccfeedback.packets` holds the TWCC wire structures: `RTCPHeader`,
`TransportLayerCC`, `RunLengthChunk`, `StatusVectorChunk` and `RecvDelta`,
together with the `PacketStatus` and `SymbolSize` enumerations. Each
structure has a `marshal()` method that returns its bytes.
`parse_transport_layer_cc(data)` and `parse_status_chunk(data)` decode
those bytes. Both marshalling and parsing raise `PacketError`, a subclass
of `ValueError`, on values out of range or on malformed input.

```python
from twccfeedback.packets import parse_transport_layer_cc

decoded = parse_transport_layer_cc(wire)
print(decoded.packet_chunks, decoded.recv_deltas)
```

## Lower-level pieces

- `twccfeedback.arrival_time_map.PacketArrivalTimeMap` is a growable
  circular buffer. It maps unwrapped sequence numbers to arrival times.
- `twccfeedback.recorder.Feedback` builds a single feedback packet. Its
  methods are `set_base`, `add_received` and `to_rtcp`.
  `twccfeedback.recorder.ChunkBuilder` packs status symbols into chunks
  with `can_add`, `add` and `encode`.
- `twccfeedback.streaminfo.StreamInfo` describes a negotiated stream, with
  its `RTPHeaderExtension` and `RTCPFeedback` entries.
  `StreamInfo.header_extension_id(uri)` returns the ID negotiated for a
  header extension, or 0 when that extension was not negotiated.

## What it does not do

The package works only on the values you give it. It does not read or
write RTP packets. It does not put transport sequence numbers into
outgoing packets or read them from incoming ones. It has no timer and
sends nothing over the network. The caller supplies the sequence numbers
and arrival times, decides when to call `build_feedback_packet`, and sends
the resulting bytes.

## Running the tests

```
pip install twccfeedback[test]
pytest
```