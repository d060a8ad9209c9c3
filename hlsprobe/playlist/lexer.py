"""
Playlist lexer and classifier.

Turns a playlist body into typed line records so the variant extractor and
the media parser never match raw strings themselves.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from ..models import PlaylistKind

TAG_PREFIX = '#EXT'

# Quoted values may contain commas
_ATTRIBUTE_RE = re.compile(r'([A-Za-z0-9\-]+)=("[^"]*"|[^,]*)')


class Tag(str, Enum):
    """Known HLS tags."""
    EXTM3U = "#EXTM3U"
    VERSION = "#EXT-X-VERSION"
    INDEPENDENT_SEGMENTS = "#EXT-X-INDEPENDENT-SEGMENTS"
    START = "#EXT-X-START"
    STREAM_INF = "#EXT-X-STREAM-INF"
    I_FRAME_STREAM_INF = "#EXT-X-I-FRAME-STREAM-INF"
    MEDIA = "#EXT-X-MEDIA"
    SESSION_DATA = "#EXT-X-SESSION-DATA"
    SESSION_KEY = "#EXT-X-SESSION-KEY"
    TARGETDURATION = "#EXT-X-TARGETDURATION"
    MEDIA_SEQUENCE = "#EXT-X-MEDIA-SEQUENCE"
    DISCONTINUITY_SEQUENCE = "#EXT-X-DISCONTINUITY-SEQUENCE"
    PLAYLIST_TYPE = "#EXT-X-PLAYLIST-TYPE"
    ENDLIST = "#EXT-X-ENDLIST"
    EXTINF = "#EXTINF"
    BYTERANGE = "#EXT-X-BYTERANGE"
    DISCONTINUITY = "#EXT-X-DISCONTINUITY"
    KEY = "#EXT-X-KEY"
    MAP = "#EXT-X-MAP"
    PROGRAM_DATE_TIME = "#EXT-X-PROGRAM-DATE-TIME"
    DATERANGE = "#EXT-X-DATERANGE"
    GAP = "#EXT-X-GAP"
    CUE_OUT = "#EXT-X-CUE-OUT"
    CUE_OUT_CONT = "#EXT-X-CUE-OUT-CONT"
    CUE_IN = "#EXT-X-CUE-IN"
    CUE = "#EXT-X-CUE"
    SCTE35 = "#EXT-SCTE35"
    X_SCTE35 = "#EXT-X-SCTE35"
    OATCLS_SCTE35 = "#EXT-OATCLS-SCTE35"


_TAGS_BY_NAME: Dict[str, Tag] = {tag.value: tag for tag in Tag}

VARIANT_TAGS = (Tag.STREAM_INF, Tag.I_FRAME_STREAM_INF)


class LineKind(str, Enum):
    TAG = "tag"
    UNKNOWN_TAG = "unknown-tag"
    COMMENT = "comment"
    URI = "uri"


@dataclass(frozen=True)
class Line:
    """One non-empty, trimmed playlist line."""
    line_no: int
    text: str
    kind: LineKind
    tag: Optional[Tag] = None
    name: str = ""    # tag name, also set for unknown tags
    value: str = ""   # text after the first ':'

    @property
    def is_tag(self) -> bool:
        return self.kind in (LineKind.TAG, LineKind.UNKNOWN_TAG)

    @property
    def is_uri(self) -> bool:
        return self.kind == LineKind.URI


def lex_line(text: str, line_no: int = 0) -> Optional[Line]:
    """
    Classify a single line.

    Args:
        text: Raw line, untrimmed
        line_no: 1-based position in the body

    Returns:
        Line record, or None for blank lines
    """
    line = text.strip()
    if not line:
        return None
    if not line.startswith('#'):
        return Line(line_no, line, LineKind.URI)
    if not line.startswith(TAG_PREFIX):
        return Line(line_no, line, LineKind.COMMENT)

    name, sep, value = line.partition(':')
    tag = _TAGS_BY_NAME.get(name)
    if tag is None:
        return Line(line_no, line, LineKind.UNKNOWN_TAG, name=name, value=value)
    return Line(line_no, line, LineKind.TAG, tag=tag, name=name, value=value)


def tokenize(body: str) -> List[Line]:
    """
    Split a playlist body into typed line records.

    Blank lines are dropped; line numbers refer to the original body.

    Example:
        >>> [line.kind.value for line in tokenize("#EXTM3U\\n#EXTINF:4,\\nseg.ts")]
        ['tag', 'tag', 'uri']
    """
    lines = []
    for line_no, raw in enumerate(body.splitlines(), start=1):
        line = lex_line(raw, line_no)
        if line is not None:
            lines.append(line)
    return lines


def classify(body: str) -> PlaylistKind:
    """
    Decide whether a body is a master or a media playlist.

    A body with any #EXT-X-STREAM-INF or #EXT-X-I-FRAME-STREAM-INF tag is a
    master playlist, anything else is a media playlist.
    """
    for line in tokenize(body):
        if line.tag in VARIANT_TAGS:
            return PlaylistKind.MASTER
    return PlaylistKind.MEDIA


def parse_attribute_list(value: str) -> Dict[str, str]:
    """
    Parse an HLS attribute list into a dict.

    Quoted values keep embedded commas and lose their quotes.

    Example:
        >>> parse_attribute_list('BANDWIDTH=1280000,CODECS="avc1.4d401f,mp4a.40.2"')
        {'BANDWIDTH': '1280000', 'CODECS': 'avc1.4d401f,mp4a.40.2'}
    """
    attributes = {}
    for key, raw in _ATTRIBUTE_RE.findall(value):
        raw = raw.strip()
        if len(raw) >= 2 and raw[0] == raw[-1] == '"':
            raw = raw[1:-1]
        attributes[key.upper()] = raw
    return attributes
