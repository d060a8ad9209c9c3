"""
Cue interpreter: turns decoded SCTE-35 sections and discontinuity markers
into CueEvents with a normalized ad-start / ad-end classification and a
human-readable description.

The interpreter keeps per-session state (event counter, discontinuity
alternation, dedup memory). One instance belongs to one tracking session and
is reset together with it.
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple, Union

from ..errors import DecodeError
from ..models import CueEvent, CueKind, CueSource, HeuristicMarker, Segment
from ..utils import LRUCache, format_pts
from .decoder import OpaqueCommand, SpliceInfo, SpliceInsert, TimeSignal, decode
from .extractor import RawCuePayload, extract

logger = logging.getLogger(__name__)

AD_URL_RE = re.compile(r'/(?:creatives?|ads?|dai)/', re.IGNORECASE)

# Anchored payloads remembered per session
_SEEN_HISTORY = 1024


def classify(info: SpliceInfo) -> CueKind:
    """
    Classify a decoded section as ad start, ad end, cancel or other.

    Segmentation descriptors with an ad start/end type id win over the
    splice_insert out-of-network flag.
    """
    segmentation = info.segmentation_descriptors
    for descriptor in segmentation:
        if descriptor.is_ad_start:
            return CueKind.AD_START
        if descriptor.is_ad_end:
            return CueKind.AD_END

    command = info.command
    if isinstance(command, SpliceInsert):
        if command.cancel:
            return CueKind.CANCEL
        return CueKind.AD_START if command.out_of_network else CueKind.AD_END

    if segmentation and all(d.cancel for d in segmentation):
        return CueKind.CANCEL
    return CueKind.OTHER


def describe(info: SpliceInfo) -> str:
    """
    Render a one-line description of a decoded section.

    Splice inserts show direction, event id, splice time and break duration;
    segmentation descriptors are listed with type name, duration, segment
    numbering and formatted UPID.
    """
    text = f"SCTE-35 {info.command_name} (Table: 0x{info.table_id:02X})"
    command = info.command

    if info.encrypted_packet:
        return f"{text} (encrypted, algorithm {info.encryption_algorithm})"

    if isinstance(command, SpliceInsert):
        if command.cancel:
            return f"{text}: Cancel Splice Event ID {command.event_id}"
        text += " (OUT)" if command.out_of_network else " (IN)"
        text += f" Event ID: {command.event_id}"
        if command.immediate:
            text += " - Immediate"
        elif command.splice_time is not None and command.splice_time.specified:
            text += f" - at PTS {format_pts(command.splice_time.pts_time)}"
        if command.break_duration is not None:
            text += f" - Duration: {command.break_duration.seconds:.3f}s"
            if command.break_duration.auto_return:
                text += " (Auto Return)"
        if not command.program_splice:
            text += f" - Components: {command.component_count}"
    elif isinstance(command, TimeSignal):
        if command.splice_time.specified:
            text += f" - at PTS {format_pts(command.splice_time.pts_time)}"
        else:
            text += " - No Time Specified"
    elif isinstance(command, OpaqueCommand):
        text += f" - {len(command.data)} bytes"

    segmentation = info.segmentation_descriptors
    if segmentation:
        text += " | SegDesc:"
        for index, descriptor in enumerate(segmentation, start=1):
            if descriptor.cancel:
                text += f" [Cancel Event {descriptor.event_id}]"
                continue
            part = f" [{index}: {descriptor.type_name}"
            if descriptor.is_ad_start:
                part += " (Ad Start)"
            elif descriptor.is_ad_end:
                part += " (Ad End)"
            part += f" Event {descriptor.event_id}"
            if descriptor.duration is not None:
                part += f" Dur: {descriptor.duration_seconds:.3f}s"
            part += f" ({descriptor.segment_num}/{descriptor.segments_expected})"
            if descriptor.upid:
                part += f" UPID(0x{descriptor.upid_type:02X}): {descriptor.upid_text}"
            text += part + "]"
    elif info.descriptors:
        names = ", ".join(d.name for d in info.descriptors)
        text += f" | Descriptors: {names}"

    return text


class CueInterpreter:
    """
    Session-scoped cue pipeline: extract, decode, deduplicate, interpret.

    Args:
        dedup_window: Seconds during which an unanchored payload seen again
            is treated as a duplicate (default: 5.0)
        discontinuity_window: Seconds during which a heuristic of the same
            kind is suppressed (default: 2.0)
        verify_crc: Reject sections whose CRC_32 does not match
        clock: Monotonic clock in seconds, injectable for tests
        now: Wall clock used for event timestamps

    Example:
        >>> interpreter = CueInterpreter()
        >>> event = interpreter.process_line("#EXT-X-CUE-OUT:/DAvAAAAAAAA///wFAVIAACPf+/+c2nALv4AUsz1AAAAAAAKAAhDVUVJAAABNWLbowo=")
        >>> event.kind.value
        'ad-start'
    """

    def __init__(
        self,
        dedup_window: float = 5.0,
        discontinuity_window: float = 2.0,
        verify_crc: bool = False,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = None,
    ):
        self.dedup_window = dedup_window
        self.discontinuity_window = discontinuity_window
        self.verify_crc = verify_crc
        self.clock = clock
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.events: List[CueEvent] = []
        self.reset()

    def reset(self) -> None:
        """Forget all events, counters and dedup memory."""
        self.events = []
        self._counter = 0
        self._discontinuity_count = 0
        self._next_heuristic_kind = CueKind.AD_START
        self._last_heuristic_at: Dict[CueKind, float] = {}
        self._seen_anchored: LRUCache[Tuple[bytes, int], bool] = LRUCache(_SEEN_HISTORY)
        self._unanchored_at: LRUCache[bytes, float] = LRUCache(_SEEN_HISTORY)
        self._cue_sequences: LRUCache[int, bool] = LRUCache(_SEEN_HISTORY)

    def _next_id(self) -> str:
        self._counter += 1
        return f"scte_{self._counter}"

    def _record(self, event: CueEvent) -> CueEvent:
        self.events.append(event)
        logger.info(f"Cue {event.id}: {event.description}")
        return event

    def interpret(
        self,
        item: Union[SpliceInfo, HeuristicMarker],
        raw_line: str = "",
        raw: bytes = b"",
        playlist_url: Optional[str] = None,
        sequence: Optional[int] = None,
    ) -> CueEvent:
        """
        Build and record a CueEvent for a decoded section or a heuristic marker.

        No deduplication happens here; see process_line and
        process_discontinuity.
        """
        if isinstance(item, HeuristicMarker):
            kind = self._next_heuristic_kind
            self._next_heuristic_kind = CueKind.AD_END if kind == CueKind.AD_START else CueKind.AD_START
            boundary = "Ad Boundary" if item.likely_ad else "Content Boundary"
            return self._record(CueEvent(
                id=self._next_id(),
                timestamp=self.now(),
                source=CueSource.DISCONTINUITY,
                description=f"{boundary} (Heuristic: Discontinuity #{item.discontinuity_count})",
                kind=kind,
                marker=item,
                heuristic=True,
                raw_line=raw_line or f"#EXT-X-DISCONTINUITY (before seq {item.sequence})",
                playlist_url=playlist_url,
                sequence=item.sequence,
            ))

        return self._record(CueEvent(
            id=self._next_id(),
            timestamp=self.now(),
            source=CueSource.MANIFEST,
            description=describe(item),
            kind=classify(item),
            message=item,
            raw_line=raw_line,
            raw=raw,
            playlist_url=playlist_url,
            sequence=sequence,
        ))

    def interpret_error(
        self,
        error: DecodeError,
        raw_line: str = "",
        raw: bytes = b"",
        playlist_url: Optional[str] = None,
        sequence: Optional[int] = None,
    ) -> CueEvent:
        return self._record(CueEvent(
            id=self._next_id(),
            timestamp=self.now(),
            source=CueSource.MANIFEST,
            description=f"Error parsing SCTE-35: {str(error)}",
            raw_line=raw_line,
            raw=raw,
            error=str(error),
            playlist_url=playlist_url,
            sequence=sequence,
        ))

    def _is_duplicate(self, payload: RawCuePayload, sequence: Optional[int]) -> bool:
        if sequence is not None:
            key = (payload.data, sequence)
            if self._seen_anchored.get(key):
                return True
            self._seen_anchored.set(key, True)
            return False

        now = self.clock()
        last = self._unanchored_at.get(payload.data)
        if last is not None and now - last < self.dedup_window:
            return True
        self._unanchored_at.set(payload.data, now)
        return False

    def process_payload(
        self,
        payload: RawCuePayload,
        playlist_url: Optional[str] = None,
        sequence: Optional[int] = None,
    ) -> Optional[CueEvent]:
        """Decode and interpret an extracted payload, unless it is a duplicate."""
        if self._is_duplicate(payload, sequence):
            logger.debug(f"Skipping duplicate cue payload on {payload.carrier} (sequence {sequence})")
            return None
        try:
            info = decode(payload.data, verify_crc=self.verify_crc)
        except DecodeError as e:
            logger.warning(f"Failed to decode SCTE-35 from {payload.carrier}: {str(e)}")
            return self.interpret_error(e, payload.line, payload.data, playlist_url, sequence)

        if sequence is not None:
            self._cue_sequences.set(sequence, True)
        return self.interpret(info, payload.line, payload.data, playlist_url, sequence)

    def process_line(
        self,
        line: str,
        playlist_url: Optional[str] = None,
        sequence: Optional[int] = None,
    ) -> Optional[CueEvent]:
        """
        Run one playlist line through the cue pipeline.

        Args:
            line: Raw playlist line
            playlist_url: URL of the playlist the line came from
            sequence: Media sequence of the segment the line precedes

        Returns:
            The new CueEvent, or None if the line has no payload or the
            payload was already reported
        """
        payload = extract(line)
        if payload is None:
            return None
        return self.process_payload(payload, playlist_url, sequence)

    def has_cue_for(self, sequence: int) -> bool:
        """True if a decoded cue has been anchored to this media sequence."""
        return bool(self._cue_sequences.get(sequence))

    def process_discontinuity(self, segment: Segment, playlist_url: Optional[str] = None) -> Optional[CueEvent]:
        """
        Emit a heuristic ad boundary for a discontinuity segment.

        Successive discontinuities alternate between ad start and ad end.
        Nothing is emitted when a decoded cue is anchored to the segment, or
        when a heuristic of the same kind was emitted within
        ``discontinuity_window`` seconds. A suppressed heuristic does not
        advance the alternation.
        """
        if self.has_cue_for(segment.sequence):
            logger.debug(f"Discontinuity at sequence {segment.sequence} already covered by a decoded cue")
            return None

        self._discontinuity_count += 1
        kind = self._next_heuristic_kind
        now = self.clock()
        last = self._last_heuristic_at.get(kind)
        if last is not None and now - last < self.discontinuity_window:
            logger.debug(f"Skipping rapid {kind.value} discontinuity heuristic at sequence {segment.sequence}")
            return None
        self._last_heuristic_at[kind] = now

        marker = HeuristicMarker(
            discontinuity_count=self._discontinuity_count,
            sequence=segment.sequence,
            segment_url=segment.url,
            likely_ad=bool(AD_URL_RE.search(segment.url or "")),
        )
        return self.interpret(marker, playlist_url=playlist_url)

    def summary(self) -> Dict[str, object]:
        """Totals over the events recorded in this session."""
        return {
            "total": len(self.events),
            "ad_related": sum(1 for e in self.events if e.is_ad_signal),
            "ad_starts": sum(1 for e in self.events if e.kind == CueKind.AD_START),
            "ad_ends": sum(1 for e in self.events if e.kind == CueKind.AD_END),
            "heuristic": sum(1 for e in self.events if e.heuristic),
            "errors": sum(1 for e in self.events if e.error),
            "last": self.events[-1].description if self.events else None,
        }
