"""
SCTE-35 splice_info_section decoder.

Decodes the binary section carried in HLS cue tags into immutable
dataclasses. Every field is read through a bounds-checked BitReader, so a
short or malformed payload raises a DecodeError instead of producing a
partially filled message.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from ..errors import BadTableId, CRCMismatch, Truncated
from ..utils import ticks_to_seconds
from . import tables
from .bits import BitReader

logger = logging.getLogger(__name__)

TABLE_ID = 0xFC
UNSPECIFIED_COMMAND_LENGTH = 0xFFF


@dataclass(frozen=True)
class SpliceTime:
    specified: bool
    pts_time: Optional[int] = None

    @property
    def seconds(self) -> Optional[float]:
        return ticks_to_seconds(self.pts_time) if self.pts_time is not None else None


@dataclass(frozen=True)
class BreakDuration:
    auto_return: bool
    duration: int  # 90 kHz ticks

    @property
    def seconds(self) -> float:
        return ticks_to_seconds(self.duration)


@dataclass(frozen=True)
class SpliceInsert:
    """splice_insert() command (0x05)."""
    event_id: int
    cancel: bool
    out_of_network: bool = False
    program_splice: bool = False
    duration_flag: bool = False
    immediate: bool = False
    splice_time: Optional[SpliceTime] = None
    components: List[Tuple[int, Optional[SpliceTime]]] = field(default_factory=list)
    break_duration: Optional[BreakDuration] = None
    unique_program_id: int = 0
    avail_num: int = 0
    avails_expected: int = 0

    @property
    def component_count(self) -> int:
        return len(self.components)


@dataclass(frozen=True)
class TimeSignal:
    """time_signal() command."""
    splice_time: SpliceTime


@dataclass(frozen=True)
class SpliceNull:
    """Empty command: splice_null() or a zero-length command."""


@dataclass(frozen=True)
class OpaqueCommand:
    """A command this decoder does not interpret, kept as raw bytes."""
    command_type: int
    data: bytes = b""


SpliceCommand = Union[SpliceInsert, TimeSignal, SpliceNull, OpaqueCommand]


@dataclass(frozen=True)
class SegmentationDescriptor:
    """segmentation_descriptor() (tag 0x02)."""
    identifier: str
    event_id: int
    cancel: bool
    program_segmentation: bool = True
    duration_flag: bool = False
    delivery_not_restricted: bool = True
    web_delivery_allowed: Optional[bool] = None
    no_regional_blackout: Optional[bool] = None
    archive_allowed: Optional[bool] = None
    device_restrictions: Optional[int] = None
    components: List[Tuple[int, int]] = field(default_factory=list)  # (component_tag, pts_offset)
    duration: Optional[int] = None  # 90 kHz ticks, 40 bits
    upid_type: int = 0
    upid: bytes = b""
    type_id: int = 0
    segment_num: int = 0
    segments_expected: int = 0
    sub_segment_num: Optional[int] = None
    sub_segments_expected: Optional[int] = None

    @property
    def type_name(self) -> str:
        return tables.segmentation_type_name(self.type_id)

    @property
    def is_ad_start(self) -> bool:
        return not self.cancel and self.type_id in tables.AD_START_TYPE_IDS

    @property
    def is_ad_end(self) -> bool:
        return not self.cancel and self.type_id in tables.AD_END_TYPE_IDS

    @property
    def duration_seconds(self) -> Optional[float]:
        return ticks_to_seconds(self.duration) if self.duration is not None else None

    @property
    def upid_text(self) -> str:
        return tables.format_upid(self.upid, self.upid_type)


@dataclass(frozen=True)
class OpaqueDescriptor:
    tag: int
    data: bytes = b""

    @property
    def name(self) -> str:
        return tables.descriptor_name(self.tag)


SpliceDescriptor = Union[SegmentationDescriptor, OpaqueDescriptor]


@dataclass(frozen=True)
class SpliceInfo:
    """A decoded splice_info_section."""
    table_id: int
    section_syntax_indicator: bool
    private_indicator: bool
    sap_type: int
    section_length: int
    protocol_version: int
    encrypted_packet: bool
    encryption_algorithm: int
    pts_adjustment: int
    cw_index: int
    tier: int
    splice_command_length: int
    splice_command_type: int
    command: Optional[SpliceCommand]
    descriptors: List[SpliceDescriptor] = field(default_factory=list)
    crc_32: Optional[int] = None

    @property
    def command_name(self) -> str:
        return tables.command_name(self.splice_command_type)

    @property
    def segmentation_descriptors(self) -> List[SegmentationDescriptor]:
        return [d for d in self.descriptors if isinstance(d, SegmentationDescriptor)]


def _build_crc_table() -> List[int]:
    table = []
    for byte in range(256):
        crc = byte << 24
        for _ in range(8):
            crc = ((crc << 1) ^ 0x04C11DB7) if crc & 0x80000000 else (crc << 1)
        table.append(crc & 0xFFFFFFFF)
    return table


_CRC_TABLE = _build_crc_table()


def crc32_mpeg2(data: bytes) -> int:
    """
    CRC-32/MPEG-2 (poly 0x04C11DB7, init 0xFFFFFFFF, no reflection).

    Example:
        >>> hex(crc32_mpeg2(b"123456789"))
        '0x376e6e7'
    """
    crc = 0xFFFFFFFF
    for byte in data:
        crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC_TABLE[((crc >> 24) ^ byte) & 0xFF]
    return crc


def _read_splice_time(reader: BitReader) -> SpliceTime:
    if reader.flag("time_specified_flag"):
        reader.skip(6)
        return SpliceTime(True, reader.read(33, "pts_time"))
    reader.skip(7)
    return SpliceTime(False)


def _read_break_duration(reader: BitReader) -> BreakDuration:
    auto_return = reader.flag("auto_return")
    reader.skip(6)
    return BreakDuration(auto_return, reader.read(33, "break duration"))


def _read_splice_insert(reader: BitReader) -> SpliceInsert:
    event_id = reader.read(32, "splice_event_id")
    cancel = reader.flag("splice_event_cancel_indicator")
    reader.skip(7)
    if cancel:
        return SpliceInsert(event_id=event_id, cancel=True)

    out_of_network = reader.flag("out_of_network_indicator")
    program_splice = reader.flag("program_splice_flag")
    duration_flag = reader.flag("duration_flag")
    immediate = reader.flag("splice_immediate_flag")
    reader.skip(4)

    splice_time = None
    components = []
    if program_splice and not immediate:
        splice_time = _read_splice_time(reader)
    if not program_splice:
        count = reader.read(8, "component_count")
        for _ in range(count):
            tag = reader.read(8, "component_tag")
            components.append((tag, None if immediate else _read_splice_time(reader)))

    break_duration = _read_break_duration(reader) if duration_flag else None

    return SpliceInsert(
        event_id=event_id,
        cancel=False,
        out_of_network=out_of_network,
        program_splice=program_splice,
        duration_flag=duration_flag,
        immediate=immediate,
        splice_time=splice_time,
        components=components,
        break_duration=break_duration,
        unique_program_id=reader.read(16, "unique_program_id"),
        avail_num=reader.read(8, "avail_num"),
        avails_expected=reader.read(8, "avails_expected"),
    )


def _read_command(reader: BitReader, command_type: int) -> SpliceCommand:
    if command_type == tables.SPLICE_INSERT:
        return _read_splice_insert(reader)
    if command_type in tables.TIME_SIGNAL_TYPES:
        return TimeSignal(_read_splice_time(reader))
    if command_type == tables.SPLICE_NULL:
        return SpliceNull()
    return OpaqueCommand(command_type, reader.read_bytes(reader.remaining // 8, "command"))


def _read_segmentation_descriptor(reader: BitReader) -> SegmentationDescriptor:
    identifier = reader.read_bytes(4, "identifier").decode("ascii", errors="replace")
    event_id = reader.read(32, "segmentation_event_id")
    cancel = reader.flag("segmentation_event_cancel_indicator")
    reader.skip(7)
    if cancel:
        return SegmentationDescriptor(identifier=identifier, event_id=event_id, cancel=True)

    program_segmentation = reader.flag("program_segmentation_flag")
    duration_flag = reader.flag("segmentation_duration_flag")
    delivery_not_restricted = reader.flag("delivery_not_restricted_flag")
    web = no_regional = archive = device = None
    if delivery_not_restricted:
        reader.skip(5)
    else:
        web = reader.flag("web_delivery_allowed_flag")
        no_regional = reader.flag("no_regional_blackout_flag")
        archive = reader.flag("archive_allowed_flag")
        device = reader.read(2, "device_restrictions")

    components = []
    if not program_segmentation:
        for _ in range(reader.read(8, "component_count")):
            tag = reader.read(8, "component_tag")
            reader.skip(7)
            components.append((tag, reader.read(33, "pts_offset")))

    duration = reader.read(40, "segmentation_duration") if duration_flag else None

    upid_type = reader.read(8, "segmentation_upid_type")
    upid_length = reader.read(8, "segmentation_upid_length")
    upid = reader.read_bytes(upid_length, "segmentation_upid")
    type_id = reader.read(8, "segmentation_type_id")
    segment_num = reader.read(8, "segment_num")
    segments_expected = reader.read(8, "segments_expected")

    sub_segment_num = sub_segments_expected = None
    if type_id in tables.SUB_SEGMENT_TYPE_IDS and reader.remaining >= 16:
        sub_segment_num = reader.read(8, "sub_segment_num")
        sub_segments_expected = reader.read(8, "sub_segments_expected")

    return SegmentationDescriptor(
        identifier=identifier,
        event_id=event_id,
        cancel=False,
        program_segmentation=program_segmentation,
        duration_flag=duration_flag,
        delivery_not_restricted=delivery_not_restricted,
        web_delivery_allowed=web,
        no_regional_blackout=no_regional,
        archive_allowed=archive,
        device_restrictions=device,
        components=components,
        duration=duration,
        upid_type=upid_type,
        upid=upid,
        type_id=type_id,
        segment_num=segment_num,
        segments_expected=segments_expected,
        sub_segment_num=sub_segment_num,
        sub_segments_expected=sub_segments_expected,
    )


def _read_descriptors(reader: BitReader) -> List[SpliceDescriptor]:
    loop = reader.sub_reader(reader.read(16, "descriptor_loop_length"), "descriptor loop")
    descriptors: List[SpliceDescriptor] = []
    while loop.remaining > 0:
        tag = loop.read(8, "splice_descriptor_tag")
        length = loop.read(8, "descriptor_length")
        body = loop.sub_reader(length, f"descriptor 0x{tag:02X}")
        if tag == tables.SEGMENTATION_DESCRIPTOR_TAG:
            descriptors.append(_read_segmentation_descriptor(body))
        else:
            descriptors.append(OpaqueDescriptor(tag, body.read_bytes(length)))
    return descriptors


def decode(data: bytes, verify_crc: bool = False) -> SpliceInfo:
    """
    Decode a splice_info_section.

    Args:
        data: Raw section bytes, starting at table_id
        verify_crc: Check the trailing CRC_32 (default: False)

    Returns:
        Decoded SpliceInfo

    Raises:
        BadTableId: First byte is not 0xFC
        Truncated: A field runs past the end of the section
        CRCMismatch: verify_crc is set and the CRC does not match
    """
    if not data:
        raise Truncated("Empty SCTE-35 payload")
    if data[0] != TABLE_ID:
        raise BadTableId(data[0])

    reader = BitReader(data)
    reader.skip(8, "table_id")
    section_syntax_indicator = reader.flag("section_syntax_indicator")
    private_indicator = reader.flag("private_indicator")
    sap_type = reader.read(2, "sap_type")
    section_length = reader.read(12, "section_length")

    section_end = 3 + section_length
    if section_end > len(data):
        raise Truncated(f"Section length {section_length} exceeds payload ({len(data) - 3} bytes after header)")
    if section_length < 4:
        raise Truncated(f"Section length {section_length} too short for CRC_32")
    # Everything after the header, bounded to the section and excluding the CRC
    reader = BitReader(data, reader.position, (section_end - 4) * 8)

    protocol_version = reader.read(8, "protocol_version")
    encrypted_packet = reader.flag("encrypted_packet")
    encryption_algorithm = reader.read(6, "encryption_algorithm")
    pts_adjustment = reader.read(33, "pts_adjustment")
    cw_index = reader.read(8, "cw_index")
    tier = reader.read(12, "tier")
    command_length = reader.read(12, "splice_command_length")
    command_type = reader.read(8, "splice_command_type")

    descriptors: List[SpliceDescriptor] = []
    if encrypted_packet:
        length = reader.remaining // 8 if command_length == UNSPECIFIED_COMMAND_LENGTH else command_length
        command: Optional[SpliceCommand] = OpaqueCommand(command_type, reader.read_bytes(length, "encrypted command"))
        logger.debug(f"Encrypted SCTE-35 section (algorithm {encryption_algorithm}), descriptors not parsed")
    else:
        if command_length == 0:
            command = SpliceNull()
        elif command_length == UNSPECIFIED_COMMAND_LENGTH:
            command = _read_command(reader, command_type)
        else:
            command = _read_command(reader.sub_reader(command_length, "splice command"), command_type)
        descriptors = _read_descriptors(reader)

    crc_32 = int.from_bytes(data[section_end - 4:section_end], "big")
    if verify_crc:
        actual = crc32_mpeg2(data[:section_end - 4])
        if actual != crc_32:
            raise CRCMismatch(crc_32, actual)

    info = SpliceInfo(
        table_id=TABLE_ID,
        section_syntax_indicator=section_syntax_indicator,
        private_indicator=private_indicator,
        sap_type=sap_type,
        section_length=section_length,
        protocol_version=protocol_version,
        encrypted_packet=encrypted_packet,
        encryption_algorithm=encryption_algorithm,
        pts_adjustment=pts_adjustment,
        cw_index=cw_index,
        tier=tier,
        splice_command_length=command_length,
        splice_command_type=command_type,
        command=command,
        descriptors=descriptors,
        crc_32=crc_32,
    )
    logger.debug(f"Decoded SCTE-35 {info.command_name} with {len(descriptors)} descriptors")
    return info
