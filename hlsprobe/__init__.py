"""
hlsprobe - HLS session inspector with SCTE-35 cue decoding

Tracks live and on-demand HLS streams and decodes the SCTE-35 ad signaling
embedded in their playlists.

Features:
- Load master or media playlists and pick a variant with a pluggable policy
- Follow live media playlists with a background refresh worker
- Merge refreshes into a deduplicated, append-only segment list
- Extract and decode SCTE-35 splice_info_section payloads from playlist tags
- Report everything as events (segments, discontinuities, cues, status)

Example usage:
    >>> from hlsprobe import TrackerSession, TrackerConfig, CueEvent
    >>>
    >>> session = TrackerSession(config=TrackerConfig(refresh_interval=2.0))
    >>> session.subscribe(lambda e: print(e.description) if isinstance(e, CueEvent) else None)
    >>> session.load("https://example.com/live/master.m3u8")  # doctest: +SKIP
    >>>
    >>> # Decode a single cue
    >>> from hlsprobe import decode, decode_text
    >>> info = decode(decode_text("/DAvAAAAAAAA///wFAVIAACPf+/+c2nALv4AUsz1AAAAAAAKAAhDVUVJAAABNWLbowo="))
"""

import logging

__version__ = "0.1.0"
__author__ = "hlsprobe Contributors"
__license__ = "MIT"

# Add NullHandler to prevent "No handler found" warnings
# Users should configure logging in their application if they want to see logs
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Errors
from .errors import (
    HLSProbeError,
    FetchError,
    FetchTimeout,
    HTTPStatusError,
    NotAPlaylistError,
    TransportError,
    DecodeError,
    BadTableId,
    Truncated,
    UnsupportedEncoding,
    CRCMismatch,
)

# Data models
from .models import (
    PlaylistKind,
    VariantDescriptor,
    MediaRendition,
    ByteRange,
    EncryptionKey,
    InitMap,
    Segment,
    MediaPlaylistMeta,
    ParseWarning,
    MasterPlaylist,
    MediaPlaylist,
    CueKind,
    CueSource,
    HeuristicMarker,
    CueEvent,
    TrackerConfig,
)

# Events
from .events import (
    EventBus,
    PlaylistParsed,
    SegmentAdded,
    StatusUpdate,
    DiscontinuityDetected,
    SegmentTypeUpdated,
)

# Playlist parsing
from .playlist import (
    classify,
    tokenize,
    parse_attribute_list,
    extract_variants,
    extract_renditions,
    parse_media_playlist,
    MediaParseResult,
    CueLine,
)
from .merger import merge_segments, new_segments, deduplicate_segments

# SCTE-35
from .scte35 import (
    decode,
    decode_text,
    encode_pts,
    extract,
    RawCuePayload,
    SpliceInfo,
    SpliceInsert,
    TimeSignal,
    SegmentationDescriptor,
    CueInterpreter,
)

# Main classes
from .fetcher import PlaylistFetcher
from .tracker import (
    TrackerSession,
    TrackerState,
    RefreshWorker,
    select_first,
    select_highest_bandwidth,
    select_lowest_bandwidth,
    session_from_config,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",

    # Main classes
    "TrackerSession",
    "TrackerState",
    "RefreshWorker",
    "PlaylistFetcher",
    "CueInterpreter",
    "EventBus",
    "session_from_config",

    # Variant policies
    "select_first",
    "select_highest_bandwidth",
    "select_lowest_bandwidth",

    # Playlist parsing
    "classify",
    "tokenize",
    "parse_attribute_list",
    "extract_variants",
    "extract_renditions",
    "parse_media_playlist",
    "MediaParseResult",
    "CueLine",
    "merge_segments",
    "new_segments",
    "deduplicate_segments",

    # SCTE-35
    "decode",
    "decode_text",
    "encode_pts",
    "extract",
    "RawCuePayload",
    "SpliceInfo",
    "SpliceInsert",
    "TimeSignal",
    "SegmentationDescriptor",

    # Events
    "PlaylistParsed",
    "SegmentAdded",
    "StatusUpdate",
    "DiscontinuityDetected",
    "SegmentTypeUpdated",

    # Models
    "PlaylistKind",
    "VariantDescriptor",
    "MediaRendition",
    "ByteRange",
    "EncryptionKey",
    "InitMap",
    "Segment",
    "MediaPlaylistMeta",
    "ParseWarning",
    "MasterPlaylist",
    "MediaPlaylist",
    "CueKind",
    "CueSource",
    "HeuristicMarker",
    "CueEvent",
    "TrackerConfig",

    # Errors
    "HLSProbeError",
    "FetchError",
    "FetchTimeout",
    "HTTPStatusError",
    "NotAPlaylistError",
    "TransportError",
    "DecodeError",
    "BadTableId",
    "Truncated",
    "UnsupportedEncoding",
    "CRCMismatch",
]
