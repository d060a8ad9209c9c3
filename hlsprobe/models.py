"""
Data models for hlsprobe.

Defines the playlist, segment and cue structures shared by the parser, the
tracker and the SCTE-35 pipeline, plus the tracker configuration.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from .scte35.decoder import SpliceInfo


class PlaylistKind(str, Enum):
    """Classification of a playlist body."""
    MASTER = "master"
    MEDIA = "media"


@dataclass(frozen=True)
class VariantDescriptor:
    """One #EXT-X-STREAM-INF (or I-frame) entry of a master playlist."""
    uri: str
    bandwidth: int = 0
    average_bandwidth: Optional[int] = None
    resolution: Optional[Tuple[int, int]] = None  # (width, height), None for audio-only
    codecs: Optional[str] = None
    frame_rate: Optional[float] = None
    audio: Optional[str] = None
    video: Optional[str] = None
    subtitles: Optional[str] = None
    closed_captions: Optional[str] = None
    is_iframe: bool = False

    @property
    def resolution_label(self) -> Optional[str]:
        if not self.resolution:
            return None
        return f"{self.resolution[0]}x{self.resolution[1]}"


@dataclass(frozen=True)
class MediaRendition:
    """An #EXT-X-MEDIA alternative rendition."""
    type: str
    group_id: str
    name: str
    language: Optional[str] = None
    uri: Optional[str] = None
    default: bool = False
    autoselect: bool = False


@dataclass(frozen=True)
class ByteRange:
    """Sub-range of a resource, as given by #EXT-X-BYTERANGE."""
    length: int
    offset: Optional[int] = None

    @property
    def end(self) -> Optional[int]:
        if self.offset is None:
            return None
        return self.offset + self.length


@dataclass(frozen=True)
class EncryptionKey:
    """Key context from #EXT-X-KEY."""
    method: str
    uri: Optional[str] = None
    iv: Optional[str] = None
    key_format: Optional[str] = None
    key_format_versions: Optional[str] = None


@dataclass(frozen=True)
class InitMap:
    """Initialization section from #EXT-X-MAP."""
    uri: str
    byte_range: Optional[ByteRange] = None


@dataclass(frozen=True)
class Segment:
    """A media segment. Never modified once created."""
    id: str
    url: str
    duration: float
    sequence: int
    title: str = ""
    byte_range: Optional[ByteRange] = None
    key: Optional[EncryptionKey] = None
    init_map: Optional[InitMap] = None
    program_date_time: Optional[datetime] = None
    discontinuity: bool = False
    discontinuity_sequence: int = 0
    playlist_id: str = ""


@dataclass(frozen=True)
class MediaPlaylistMeta:
    """Scalar metadata of a media playlist."""
    media_sequence: int = 0
    discontinuity_sequence: int = 0
    target_duration: Optional[float] = None
    version: Optional[int] = None
    playlist_type: Optional[str] = None  # VOD / EVENT
    finished: bool = False


@dataclass(frozen=True)
class ParseWarning:
    """Non-fatal problem found while parsing a playlist."""
    line_no: int
    message: str
    line: str = ""


@dataclass
class MasterPlaylist:
    """A parsed master (multivariant) playlist."""
    url: str
    body: str
    variants: List[VariantDescriptor] = field(default_factory=list)
    renditions: List[MediaRendition] = field(default_factory=list)

    kind = PlaylistKind.MASTER


@dataclass
class MediaPlaylist:
    """
    A tracked media playlist.

    For live streams the same instance is updated on every refresh: ``body``
    and ``meta`` are replaced, ``segments`` only grows.
    """
    id: str
    url: str
    body: str = ""
    segments: List[Segment] = field(default_factory=list)
    meta: MediaPlaylistMeta = field(default_factory=MediaPlaylistMeta)
    variant: Optional[VariantDescriptor] = None

    kind = PlaylistKind.MEDIA

    @property
    def finished(self) -> bool:
        return self.meta.finished

    @property
    def is_live(self) -> bool:
        return not self.meta.finished

    @property
    def target_duration(self) -> Optional[float]:
        return self.meta.target_duration

    @property
    def last_sequence(self) -> int:
        """Highest known media sequence number, -1 when empty."""
        return self.segments[-1].sequence if self.segments else -1


class CueKind(str, Enum):
    """Normalized classification of a cue."""
    AD_START = "ad-start"
    AD_END = "ad-end"
    CANCEL = "cancel"
    OTHER = "other"


class CueSource(str, Enum):
    """Where a cue event came from."""
    MANIFEST = "manifest"
    DISCONTINUITY = "discontinuity"


@dataclass(frozen=True)
class HeuristicMarker:
    """Context of a discontinuity-based (unverified) ad boundary."""
    discontinuity_count: int
    sequence: int
    segment_url: str = ""
    likely_ad: bool = False


@dataclass(frozen=True)
class CueEvent:
    """An ad-signaling event, decoded or inferred."""
    id: str
    timestamp: datetime
    source: CueSource
    description: str
    kind: Optional[CueKind] = None
    message: Optional["SpliceInfo"] = None
    marker: Optional[HeuristicMarker] = None
    heuristic: bool = False
    raw_line: str = ""
    raw: bytes = b""
    error: Optional[str] = None
    playlist_url: Optional[str] = None
    sequence: Optional[int] = None

    @property
    def is_ad_signal(self) -> bool:
        if self.error:
            return False
        if self.heuristic:
            return self.marker is not None and self.marker.likely_ad
        return self.kind in (CueKind.AD_START, CueKind.AD_END)


@dataclass
class TrackerConfig:
    """Configuration for a TrackerSession."""
    fetch_timeout: float = 10.0
    verify_ssl: bool = True
    headers: Dict[str, str] = field(default_factory=dict)
    refresh_interval: float = 3.0      # used when the target duration is unknown
    min_refresh_interval: float = 1.0
    refresh_factor: float = 0.7        # fraction of the target duration
    auto_refresh: bool = True
    variant_policy: str = "first"      # first / highest-bandwidth / lowest-bandwidth
    cue_dedup_window: float = 5.0
    discontinuity_window: float = 2.0
    verify_crc: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackerConfig":
        """Build a config from a plain dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})
