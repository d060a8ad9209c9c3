"""
SCTE-35 lookup tables and UPID formatting.
"""

from typing import Optional

SPLICE_NULL = 0x00
SPLICE_SCHEDULE = 0x04
SPLICE_INSERT = 0x05
TIME_SIGNAL = 0x06
# Legacy encoders (and some origins) send time_signal as 0x07
LEGACY_TIME_SIGNAL = 0x07
TIME_SIGNAL_TYPES = frozenset({TIME_SIGNAL, LEGACY_TIME_SIGNAL})
PRIVATE_COMMAND = 0xFF

SEGMENTATION_DESCRIPTOR_TAG = 0x02

COMMAND_NAMES = {
    SPLICE_NULL: "splice_null",
    SPLICE_SCHEDULE: "splice_schedule",
    SPLICE_INSERT: "splice_insert",
    TIME_SIGNAL: "time_signal",
    LEGACY_TIME_SIGNAL: "time_signal",
    PRIVATE_COMMAND: "private_command",
}

DESCRIPTOR_NAMES = {
    0x00: "avail_descriptor",
    0x01: "dtmf_descriptor",
    0x02: "segmentation_descriptor",
    0x03: "time_descriptor",
    0x04: "audio_descriptor",
}

SEGMENTATION_TYPE_NAMES = {
    0x00: "Not Indicated",
    0x01: "Content Identification",
    0x10: "Program Start",
    0x11: "Program End",
    0x12: "Program Early Termination",
    0x13: "Program Breakaway",
    0x14: "Program Resumption",
    0x15: "Program Runover Planned",
    0x16: "Program Runover Unplanned",
    0x17: "Program Overlap Start",
    0x18: "Program Blackout Override",
    0x19: "Program Join",
    0x20: "Chapter Start",
    0x21: "Chapter End",
    0x22: "Break Start",
    0x23: "Break End",
    0x24: "Opening Credit Start",
    0x25: "Opening Credit End",
    0x26: "Closing Credit Start",
    0x27: "Closing Credit End",
    0x30: "Provider Advertisement Start",
    0x31: "Provider Advertisement End",
    0x32: "Distributor Advertisement Start",
    0x33: "Distributor Advertisement End",
    0x34: "Provider Placement Opportunity Start",
    0x35: "Provider Placement Opportunity End",
    0x36: "Distributor Placement Opportunity Start",
    0x37: "Distributor Placement Opportunity End",
    0x38: "Provider Overlay Placement Opportunity Start",
    0x39: "Provider Overlay Placement Opportunity End",
    0x3A: "Distributor Overlay Placement Opportunity Start",
    0x3B: "Distributor Overlay Placement Opportunity End",
    0x3C: "Provider Promo Start",
    0x3D: "Provider Promo End",
    0x3E: "Distributor Promo Start",
    0x3F: "Distributor Promo End",
    0x40: "Unscheduled Event Start",
    0x41: "Unscheduled Event End",
    0x42: "Alternative Content Opportunity Start",
    0x43: "Alternative Content Opportunity End",
    0x44: "Network Advertisement Start",
    0x45: "Network Advertisement End",
    0x46: "Network Placement Opportunity Start",
    0x47: "Network Placement Opportunity End",
    0x50: "Network Signal Start",
    0x51: "Network Signal End",
}

AD_START_TYPE_IDS = frozenset({
    0x22, 0x30, 0x32, 0x34, 0x36, 0x38, 0x3A, 0x3C, 0x3E, 0x44, 0x46, 0x50,
})

AD_END_TYPE_IDS = frozenset({
    0x23, 0x31, 0x33, 0x35, 0x37, 0x39, 0x3B, 0x3D, 0x3F, 0x45, 0x47, 0x51,
})

# Placement opportunity starts carry sub_segment_num / sub_segments_expected
SUB_SEGMENT_TYPE_IDS = frozenset({0x34, 0x36, 0x38, 0x3A})

# UPID types rendered as text
_TEXT_UPID_TYPES = frozenset({0x03, 0x05, 0x06, 0x08, 0x09, 0x0A, 0x0B, 0x0C, 0x0D, 0x0E})

UPID_PREFIXES = {
    0x03: "Ad-ID",
    0x05: "ISAN",
    0x06: "V-ISAN",
    0x07: "TID",
    0x08: "TI",
    0x09: "MID (URN)",
    0x0A: "MID (URL)",
    0x0B: "EIDR",
    0x0C: "ADS Info",
    0x0D: "URI",
    0x0E: "ISCI",
    0x0F: "Private",
    0x10: "UUID",
}


def command_name(command_type: Optional[int]) -> str:
    if command_type is None:
        return "No Command"
    return COMMAND_NAMES.get(command_type, f"unknown_0x{command_type:02X}")


def descriptor_name(tag: int) -> str:
    return DESCRIPTOR_NAMES.get(tag, f"Tag 0x{tag:02X}")


def segmentation_type_name(type_id: int) -> str:
    return SEGMENTATION_TYPE_NAMES.get(type_id, "Unknown")


def format_upid(upid: bytes, upid_type: int) -> str:
    """
    Render a segmentation UPID for display.

    Text-like types are decoded as ASCII (falling back to hex when the bytes
    are not printable); identifier types with a binary layout are shown as
    hex. Known types get a short prefix.

    Example:
        >>> format_upid(b"ABCD01234567", 0x03)
        'Ad-ID: ABCD01234567'
        >>> format_upid(bytes([0xDE, 0xAD]), 0x42)
        'Type 0x42 (Hex): DEAD'
    """
    if not upid:
        return "N/A"
    hex_text = upid.hex().upper()
    text = hex_text
    if upid_type in _TEXT_UPID_TYPES:
        try:
            decoded = upid.decode("ascii")
        except UnicodeDecodeError:
            decoded = None
        if decoded and decoded.isprintable():
            text = decoded

    prefix = UPID_PREFIXES.get(upid_type)
    if prefix is None:
        return f"Type 0x{upid_type:02X} (Hex): {hex_text}"
    if upid_type not in _TEXT_UPID_TYPES:
        return f"{prefix}: {hex_text}"
    return f"{prefix}: {text}"
