"""
Media playlist parser.

Scans a media playlist line by line, carrying key / map / program-date-time
context forward and building one Segment per #EXTINF + URI pair. Tag lines
are also collected, anchored to the media sequence of the segment they
precede, so the SCTE-35 pipeline can attribute cues to segments.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import (
    ByteRange,
    EncryptionKey,
    InitMap,
    MediaPlaylistMeta,
    ParseWarning,
    Segment,
)
from ..utils import parse_program_date_time, resolve_url
from .lexer import Line, Tag, parse_attribute_list, tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CueLine:
    """A tag line offered to the cue pipeline."""
    line_no: int
    text: str
    sequence: int  # media sequence of the next segment


@dataclass
class MediaParseResult:
    """Output of parse_media_playlist."""
    segments: List[Segment]
    meta: MediaPlaylistMeta
    cue_lines: List[CueLine] = field(default_factory=list)
    warnings: List[ParseWarning] = field(default_factory=list)


def parse_byte_range(value: str) -> Optional[ByteRange]:
    """
    Parse ``<length>[@<offset>]``.

    Example:
        >>> parse_byte_range("1024@2048")
        ByteRange(length=1024, offset=2048)
    """
    length, _, offset = value.strip().partition('@')
    try:
        return ByteRange(int(length), int(offset) if offset else None)
    except ValueError:
        return None


class _MediaParser:
    """Running state for a single parse pass."""

    def __init__(self, base_url: str, starting_sequence: int, playlist_id: str):
        self.base_url = base_url
        self.playlist_id = playlist_id

        self.sequence = starting_sequence
        self.discontinuity_sequence = 0
        self.target_duration: Optional[float] = None
        self.version: Optional[int] = None
        self.playlist_type: Optional[str] = None
        self.finished = False
        self.media_sequence = starting_sequence

        self.key: Optional[EncryptionKey] = None
        self.init_map: Optional[InitMap] = None
        self.program_date_time: Optional[datetime] = None
        self.pending: Optional[Dict[str, Any]] = None
        self.next_discontinuity = False
        self.last_byte_range: Optional[ByteRange] = None

        self.segments: List[Segment] = []
        self.cue_lines: List[CueLine] = []
        self.warnings: List[ParseWarning] = []

    def warn(self, line: Line, message: str) -> None:
        logger.warning(f"Line {line.line_no}: {message}")
        self.warnings.append(ParseWarning(line.line_no, message, line.text))

    def attach(self, name: str, value: Any) -> None:
        if self.pending is not None:
            self.pending[name] = value

    def feed(self, line: Line) -> None:
        if line.is_uri:
            self.on_uri(line)
            return
        if not line.is_tag:
            return

        self.cue_lines.append(CueLine(line.line_no, line.text, self.sequence))

        handler = self._handlers.get(line.tag)
        if handler is not None:
            handler(self, line)

    def on_extinf(self, line: Line) -> None:
        if self.pending is not None:
            self.warn(line, "#EXTINF without URI, previous entry dropped")
        duration_text, _, title = line.value.partition(',')
        try:
            duration = float(duration_text)
        except ValueError:
            self.warn(line, f"Invalid #EXTINF duration {duration_text!r}, using 0")
            duration = 0.0
        if duration < 0:
            self.warn(line, f"Negative #EXTINF duration {duration}, using 0")
            duration = 0.0
        self.pending = {
            'duration': duration,
            'title': title.strip(),
            'byte_range': None,
            'key': self.key,
            'init_map': self.init_map,
            'program_date_time': self.program_date_time,
            'discontinuity': self.next_discontinuity,
        }
        self.next_discontinuity = False

    def on_byte_range(self, line: Line) -> None:
        if self.pending is None:
            self.warn(line, "#EXT-X-BYTERANGE outside of a segment, ignored")
            return
        byte_range = parse_byte_range(line.value)
        if byte_range is None:
            self.warn(line, f"Invalid byte range {line.value!r}")
            return
        if byte_range.offset is None and self.last_byte_range is not None:
            byte_range = ByteRange(byte_range.length, self.last_byte_range.end)
        self.pending['byte_range'] = byte_range

    def on_key(self, line: Line) -> None:
        attributes = parse_attribute_list(line.value)
        method = attributes.get('METHOD', 'NONE')
        if method.upper() == 'NONE':
            self.key = None
        else:
            uri = attributes.get('URI')
            self.key = EncryptionKey(
                method=method,
                uri=resolve_url(uri, self.base_url) if uri else None,
                iv=attributes.get('IV'),
                key_format=attributes.get('KEYFORMAT'),
                key_format_versions=attributes.get('KEYFORMATVERSIONS'),
            )
        self.attach('key', self.key)

    def on_map(self, line: Line) -> None:
        attributes = parse_attribute_list(line.value)
        uri = attributes.get('URI')
        if not uri:
            self.warn(line, "#EXT-X-MAP without URI, ignored")
            return
        byte_range = parse_byte_range(attributes['BYTERANGE']) if 'BYTERANGE' in attributes else None
        self.init_map = InitMap(resolve_url(uri, self.base_url), byte_range)
        self.attach('init_map', self.init_map)

    def on_program_date_time(self, line: Line) -> None:
        value = parse_program_date_time(line.value)
        if value is None:
            self.warn(line, f"Invalid program date time {line.value!r}")
            return
        self.program_date_time = value
        self.attach('program_date_time', value)

    def on_discontinuity(self, line: Line) -> None:
        self.discontinuity_sequence += 1
        if self.pending is not None:
            self.pending['discontinuity'] = True
        else:
            self.next_discontinuity = True

    def on_media_sequence(self, line: Line) -> None:
        try:
            value = int(line.value)
        except ValueError:
            self.warn(line, f"Invalid media sequence {line.value!r}")
            return
        if self.segments or self.pending is not None:
            self.warn(line, "#EXT-X-MEDIA-SEQUENCE after the first segment, ignored")
            return
        self.sequence = self.media_sequence = value

    def on_discontinuity_sequence(self, line: Line) -> None:
        try:
            self.discontinuity_sequence = int(line.value)
        except ValueError:
            self.warn(line, f"Invalid discontinuity sequence {line.value!r}")

    def on_target_duration(self, line: Line) -> None:
        try:
            self.target_duration = float(line.value)
        except ValueError:
            self.warn(line, f"Invalid target duration {line.value!r}")

    def on_version(self, line: Line) -> None:
        try:
            self.version = int(line.value)
        except ValueError:
            self.warn(line, f"Invalid version {line.value!r}")

    def on_playlist_type(self, line: Line) -> None:
        self.playlist_type = line.value.strip().upper() or None

    def on_endlist(self, line: Line) -> None:
        self.finished = True

    def on_uri(self, line: Line) -> None:
        if self.pending is None:
            self.warn(line, "URI without #EXTINF, ignored")
            return
        pending = self.pending
        segment = Segment(
            id=f"{self.playlist_id}_seq{self.sequence}",
            url=resolve_url(line.text, self.base_url),
            duration=pending['duration'],
            sequence=self.sequence,
            title=pending['title'],
            byte_range=pending['byte_range'],
            key=pending['key'],
            init_map=pending['init_map'],
            program_date_time=pending['program_date_time'],
            discontinuity=pending['discontinuity'],
            discontinuity_sequence=self.discontinuity_sequence,
            playlist_id=self.playlist_id,
        )
        self.segments.append(segment)
        if segment.byte_range is not None:
            self.last_byte_range = segment.byte_range
        self.sequence += 1
        self.pending = None

    def result(self) -> MediaParseResult:
        meta = MediaPlaylistMeta(
            media_sequence=self.media_sequence,
            discontinuity_sequence=self.discontinuity_sequence,
            target_duration=self.target_duration,
            version=self.version,
            playlist_type=self.playlist_type,
            finished=self.finished,
        )
        return MediaParseResult(self.segments, meta, self.cue_lines, self.warnings)

    _handlers = {
        Tag.EXTINF: on_extinf,
        Tag.BYTERANGE: on_byte_range,
        Tag.KEY: on_key,
        Tag.MAP: on_map,
        Tag.PROGRAM_DATE_TIME: on_program_date_time,
        Tag.DISCONTINUITY: on_discontinuity,
        Tag.MEDIA_SEQUENCE: on_media_sequence,
        Tag.DISCONTINUITY_SEQUENCE: on_discontinuity_sequence,
        Tag.TARGETDURATION: on_target_duration,
        Tag.VERSION: on_version,
        Tag.PLAYLIST_TYPE: on_playlist_type,
        Tag.ENDLIST: on_endlist,
    }


def parse_media_playlist(
    body: str,
    base_url: str,
    starting_sequence: int = 0,
    playlist_id: str = "media",
) -> MediaParseResult:
    """
    Parse a media playlist into segments and metadata.

    Args:
        body: Media playlist text
        base_url: URL the playlist was fetched from, used to resolve URIs
        starting_sequence: Sequence of the first segment when the playlist has
            no #EXT-X-MEDIA-SEQUENCE tag (default: 0)
        playlist_id: Prefix of the generated segment ids

    Returns:
        MediaParseResult with segments, metadata, cue lines and warnings

    Example:
        >>> body = "#EXTM3U\\n#EXT-X-TARGETDURATION:10\\n#EXTINF:10.0,\\na.ts\\n#EXT-X-ENDLIST"
        >>> result = parse_media_playlist(body, "https://example.com/index.m3u8")
        >>> result.segments[0].url, result.meta.finished
        ('https://example.com/a.ts', True)
    """
    parser = _MediaParser(base_url, starting_sequence, playlist_id)
    for line in tokenize(body):
        parser.feed(line)

    if parser.pending is not None:
        logger.debug("Playlist ends with an #EXTINF and no URI (segment not yet published)")

    result = parser.result()
    logger.debug(
        f"Parsed media playlist: {len(result.segments)} segments, "
        f"sequence={result.meta.media_sequence}, finished={result.meta.finished}"
    )
    return result
