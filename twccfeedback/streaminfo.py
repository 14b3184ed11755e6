"""Descriptions of negotiated RTP streams."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RTPHeaderExtension:
    """A negotiated RFC 5285 RTP header extension."""

    uri: str
    id: int


@dataclass(frozen=True)
class RTCPFeedback:
    """An additional RTCP feedback type the connection should use.

    ``type`` is one of ack, ccm, nack, goog-remb or transport-cc; the meaning
    of ``parameter`` depends on the type (for example nack/pli).
    """

    type: str
    parameter: str = ""


@dataclass
class StreamInfo:
    """Context describing a local or remote stream when it is bound or unbound."""

    id: str = ""
    attributes: dict[Any, Any] = field(default_factory=dict)
    ssrc: int = 0
    ssrc_retransmission: int = 0
    ssrc_forward_error_correction: int = 0
    payload_type: int = 0
    payload_type_retransmission: int = 0
    payload_type_forward_error_correction: int = 0
    rtp_header_extensions: list[RTPHeaderExtension] = field(default_factory=list)
    mime_type: str = ""
    clock_rate: int = 0
    channels: int = 0
    sdp_fmtp_line: str = ""
    rtcp_feedback: list[RTCPFeedback] = field(default_factory=list)

    def header_extension_id(self, uri: str) -> int:
        """Return the ID negotiated for ``uri``, or 0 if it was not negotiated.

        Zero is never a valid extension ID, so it doubles as "absent".
        """
        return next(
            (ext.id for ext in self.rtp_header_extensions if ext.uri == uri), 0
        )