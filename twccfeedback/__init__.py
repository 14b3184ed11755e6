"""Transport-wide congestion control feedback recording and RTCP packet building."""

__version__ = "0.1.0"
__all__ = ["arrival_time_map", "packets", "recorder", "streaminfo"]