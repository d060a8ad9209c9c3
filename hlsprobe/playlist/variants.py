"""
Master playlist parsing: variant streams and alternative renditions.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..models import MediaRendition, ParseWarning, VariantDescriptor
from .lexer import Line, Tag, parse_attribute_list, tokenize

logger = logging.getLogger(__name__)


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_resolution(value: Optional[str]) -> Optional[Tuple[int, int]]:
    if not value or 'x' not in value.lower():
        return None
    width, _, height = value.lower().partition('x')
    try:
        return int(width), int(height)
    except ValueError:
        return None


def _variant_from_attributes(attributes: Dict[str, str], uri: str, is_iframe: bool = False) -> VariantDescriptor:
    return VariantDescriptor(
        uri=uri,
        bandwidth=_to_int(attributes.get('BANDWIDTH')) or 0,
        average_bandwidth=_to_int(attributes.get('AVERAGE-BANDWIDTH')),
        resolution=_parse_resolution(attributes.get('RESOLUTION')),
        codecs=attributes.get('CODECS'),
        frame_rate=_to_float(attributes.get('FRAME-RATE')),
        audio=attributes.get('AUDIO'),
        video=attributes.get('VIDEO'),
        subtitles=attributes.get('SUBTITLES'),
        closed_captions=attributes.get('CLOSED-CAPTIONS'),
        is_iframe=is_iframe,
    )


def extract_variants(body: str, warnings: Optional[List[ParseWarning]] = None) -> List[VariantDescriptor]:
    """
    Extract variant stream descriptors from a master playlist.

    Each #EXT-X-STREAM-INF is closed by the next URI line. An entry that never
    gets its URI (another stream-inf or end of file comes first) is dropped
    with a warning. I-frame variants carry their URI as an attribute and are
    returned with ``is_iframe=True``. Source order is preserved.

    Args:
        body: Master playlist text
        warnings: Optional list that receives ParseWarning records

    Returns:
        List of VariantDescriptor in playlist order

    Example:
        >>> body = "#EXTM3U\\n#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360\\nlow.m3u8"
        >>> extract_variants(body)[0].resolution
        (640, 360)
    """
    variants: List[VariantDescriptor] = []
    pending: Optional[Dict[str, str]] = None
    pending_line: Optional[Line] = None

    def drop_pending(reason: str) -> None:
        message = f"Discarding #EXT-X-STREAM-INF without URI ({reason})"
        logger.warning(f"Line {pending_line.line_no}: {message}")
        if warnings is not None:
            warnings.append(ParseWarning(pending_line.line_no, message, pending_line.text))

    for line in tokenize(body):
        if line.tag == Tag.STREAM_INF:
            if pending is not None:
                drop_pending("followed by another stream-inf")
            pending = parse_attribute_list(line.value)
            pending_line = line
        elif line.tag == Tag.I_FRAME_STREAM_INF:
            attributes = parse_attribute_list(line.value)
            uri = attributes.get('URI')
            if uri:
                variants.append(_variant_from_attributes(attributes, uri, is_iframe=True))
            else:
                message = "I-frame stream-inf without URI attribute"
                logger.warning(f"Line {line.line_no}: {message}")
                if warnings is not None:
                    warnings.append(ParseWarning(line.line_no, message, line.text))
        elif line.is_uri and pending is not None:
            variants.append(_variant_from_attributes(pending, line.text))
            pending = None
            pending_line = None

    if pending is not None:
        drop_pending("end of playlist")

    logger.debug(f"Extracted {len(variants)} variant streams")
    return variants


def extract_renditions(body: str) -> List[MediaRendition]:
    """
    Extract #EXT-X-MEDIA alternative renditions from a master playlist.

    Entries missing TYPE or GROUP-ID are skipped.
    """
    renditions = []
    for line in tokenize(body):
        if line.tag != Tag.MEDIA:
            continue
        attributes = parse_attribute_list(line.value)
        if 'TYPE' not in attributes or 'GROUP-ID' not in attributes:
            logger.warning(f"Line {line.line_no}: #EXT-X-MEDIA without TYPE or GROUP-ID, skipped")
            continue
        renditions.append(MediaRendition(
            type=attributes['TYPE'],
            group_id=attributes['GROUP-ID'],
            name=attributes.get('NAME', ''),
            language=attributes.get('LANGUAGE'),
            uri=attributes.get('URI'),
            default=attributes.get('DEFAULT', 'NO').upper() == 'YES',
            autoselect=attributes.get('AUTOSELECT', 'NO').upper() == 'YES',
        ))
    return renditions
