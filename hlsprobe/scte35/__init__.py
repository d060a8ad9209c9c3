"""
SCTE-35 support for hlsprobe.

Extracts splice_info_section payloads from playlist lines, decodes them
bit-exactly and interprets them as ad start / ad end events.
"""

from .bits import BitReader, encode_pts
from .decoder import (
    BreakDuration,
    OpaqueCommand,
    OpaqueDescriptor,
    SegmentationDescriptor,
    SpliceInfo,
    SpliceInsert,
    SpliceNull,
    SpliceTime,
    TimeSignal,
    crc32_mpeg2,
    decode,
)
from .extractor import RawCuePayload, decode_text, extract
from .interpreter import CueInterpreter, classify, describe
from .tables import AD_END_TYPE_IDS, AD_START_TYPE_IDS, format_upid

__all__ = [
    "AD_END_TYPE_IDS",
    "AD_START_TYPE_IDS",
    "BitReader",
    "BreakDuration",
    "CueInterpreter",
    "OpaqueCommand",
    "OpaqueDescriptor",
    "RawCuePayload",
    "SegmentationDescriptor",
    "SpliceInfo",
    "SpliceInsert",
    "SpliceNull",
    "SpliceTime",
    "TimeSignal",
    "classify",
    "crc32_mpeg2",
    "decode",
    "decode_text",
    "describe",
    "encode_pts",
    "extract",
    "format_upid",
]
