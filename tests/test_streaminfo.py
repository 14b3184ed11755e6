from twccfeedback.streaminfo import RTCPFeedback, RTPHeaderExtension, StreamInfo

TCC_URI = "urn:example:transport-cc"
OTHER_URI = "urn:example:other"


def test_header_extension_id_found():
    info = StreamInfo(
        rtp_header_extensions=[
            RTPHeaderExtension(uri=OTHER_URI, id=3),
            RTPHeaderExtension(uri=TCC_URI, id=5),
        ]
    )
    assert info.header_extension_id(TCC_URI) == 5
    assert info.header_extension_id(OTHER_URI) == 3


def test_header_extension_id_missing_is_zero():
    info = StreamInfo(rtp_header_extensions=[RTPHeaderExtension(uri=OTHER_URI, id=3)])
    assert info.header_extension_id(TCC_URI) == 0


def test_header_extension_id_empty_stream():
    assert StreamInfo().header_extension_id(TCC_URI) == 0


def test_header_extension_id_first_match_wins():
    info = StreamInfo(
        rtp_header_extensions=[
            RTPHeaderExtension(uri=TCC_URI, id=1),
            RTPHeaderExtension(uri=TCC_URI, id=7),
        ]
    )
    assert info.header_extension_id(TCC_URI) == 1


def test_defaults_are_independent():
    first = StreamInfo()
    second = StreamInfo()
    first.attributes["key"] = "value"
    first.rtcp_feedback.append(RTCPFeedback(type="nack", parameter="pli"))
    assert second.attributes == {}
    assert second.rtcp_feedback == []
    assert first.rtcp_feedback[0].parameter == "pli"


def test_rtcp_feedback_parameter_default():
    fb = RTCPFeedback(type="transport-cc")
    assert fb.parameter == ""
    assert fb == RTCPFeedback("transport-cc", "")