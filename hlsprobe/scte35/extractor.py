"""
Locate SCTE-35 payloads in playlist lines.

Recognized carriers:

- ``#EXT-X-DATERANGE`` with ``SCTE35-OUT``, ``SCTE35-IN``, ``SCTE35`` or
  ``SCTE35-CMD`` attributes (0x-prefixed hex)
- ``#EXT-X-CUE-OUT:<base64>`` and ``#EXT-X-CUE:<base64>``
- any tag with a ``SCTE35=``, ``SIGNAL=`` or ``MARKER=`` attribute (base64 or
  0x hex)
- ``#EXT-SCTE35:``, ``#EXT-X-SCTE35:`` and ``#EXT-OATCLS-SCTE35:`` with a
  bare base64 or hex payload
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import UnsupportedEncoding
from ..playlist.lexer import Tag, lex_line, parse_attribute_list
from ..utils import decode_base64, decode_hex

logger = logging.getLogger(__name__)

HEX = "hex"
BASE64 = "base64"

_DATERANGE_ATTRIBUTES = ("SCTE35-OUT", "SCTE35-IN", "SCTE35", "SCTE35-CMD")
_BARE_PAYLOAD_TAGS = (Tag.SCTE35, Tag.X_SCTE35, Tag.OATCLS_SCTE35)
_CUE_TAGS = (Tag.CUE_OUT, Tag.CUE)
# Attributes that carry a cue on any tag, in order of preference
_CUE_ATTRIBUTES = ("SCTE35", "SIGNAL", "MARKER")
_CUE_ATTRIBUTE_RES = [
    (name, re.compile(r'(?:^|[,:\s])' + name + r'="?((?:0x)?[A-Za-z0-9+/=]+)"?', re.IGNORECASE))
    for name in _CUE_ATTRIBUTES
]


@dataclass(frozen=True)
class RawCuePayload:
    """Binary cue data found on a playlist line."""
    data: bytes
    encoding: str   # "hex" or "base64"
    carrier: str    # tag or attribute that carried it
    line: str


def _decode(text: str) -> Tuple[bytes, str]:
    clean = text.strip().strip('"')
    if clean[:2].lower() == '0x':
        data, encoding = decode_hex(clean), HEX
    else:
        data, encoding = decode_base64(clean), BASE64
        if data is None:
            data, encoding = decode_hex(clean), HEX
    if data is None:
        raise UnsupportedEncoding(f"Cue payload is neither hex nor base64: {clean[:40]!r}")
    return data, encoding


def decode_text(text: str) -> bytes:
    """
    Decode a cue payload written as 0x-hex or base64.

    Text with a 0x prefix is always hex; otherwise base64 is tried before
    bare hex.

    Raises:
        UnsupportedEncoding: The text is neither valid hex nor valid base64
    """
    return _decode(text)[0]


def _payload(text: str, carrier: str, line: str) -> Optional[RawCuePayload]:
    try:
        data, encoding = _decode(text)
    except UnsupportedEncoding as e:
        logger.debug(f"Ignoring {carrier} payload: {str(e)}")
        return None
    return RawCuePayload(data=data, encoding=encoding, carrier=carrier, line=line)


def _is_cue_payload(value: str) -> bool:
    """#EXT-X-CUE-OUT values that are durations or attribute lists are not payloads."""
    if not value or '=' in value.rstrip('='):
        return False
    try:
        float(value)
        return False
    except ValueError:
        return True


def extract(line: str) -> Optional[RawCuePayload]:
    """
    Extract a binary cue payload from a single playlist line.

    Args:
        line: Raw playlist line

    Returns:
        RawCuePayload, or None if the line carries no (well-formed) payload

    Example:
        >>> extract("#EXT-X-CUE-OUT:30") is None
        True
        >>> extract('#EXT-X-DATERANGE:ID="1",SCTE35-OUT=0xFC30').data
        b'\\xfc0'
    """
    lexed = lex_line(line)
    if lexed is None or not lexed.is_tag:
        return None
    text = lexed.text

    if lexed.tag == Tag.DATERANGE:
        attributes = parse_attribute_list(lexed.value)
        for name in _DATERANGE_ATTRIBUTES:
            value = attributes.get(name)
            if value:
                return _payload(value, f"{Tag.DATERANGE.value} {name}", text)
        return None

    if lexed.tag in _CUE_TAGS:
        value = lexed.value.strip()
        if _is_cue_payload(value):
            payload = _payload(value, lexed.tag.value, text)
            if payload is not None:
                return payload

    if lexed.tag in _BARE_PAYLOAD_TAGS:
        value = lexed.value.strip().split(',')[0].strip()
        if value and '=' not in value.rstrip('='):
            return _payload(value, lexed.tag.value, text)

    for name, pattern in _CUE_ATTRIBUTE_RES:
        match = pattern.search(text)
        if match:
            payload = _payload(match.group(1), name, text)
            if payload is not None:
                return payload
    return None
