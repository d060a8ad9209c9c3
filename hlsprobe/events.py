"""
Output events and a minimal observer.

The tracker and the cue interpreter describe everything they discover as
event objects. Consumers register callbacks on an EventBus.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

from .models import ByteRange, CueEvent, EncryptionKey, PlaylistKind, Segment, VariantDescriptor

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


@dataclass(frozen=True)
class PlaylistParsed:
    """A master or media playlist was parsed for the first time."""
    kind: PlaylistKind
    url: str
    variants: List[VariantDescriptor]
    segment_count: int = 0


@dataclass(frozen=True)
class SegmentAdded:
    """A new segment was discovered."""
    id: str
    url: str
    sequence: int
    duration: float
    discontinuity: bool = False
    encryption: Optional[EncryptionKey] = None
    program_date_time: Optional[datetime] = None
    playlist_id: str = ""
    title: str = ""
    byte_range: Optional[ByteRange] = None

    @classmethod
    def from_segment(cls, segment: Segment) -> "SegmentAdded":
        return cls(
            id=segment.id,
            url=segment.url,
            sequence=segment.sequence,
            duration=segment.duration,
            discontinuity=segment.discontinuity,
            encryption=segment.key,
            program_date_time=segment.program_date_time,
            playlist_id=segment.playlist_id,
            title=segment.title,
            byte_range=segment.byte_range,
        )


@dataclass(frozen=True)
class StatusUpdate:
    """Human-readable progress or failure message."""
    message: str


@dataclass(frozen=True)
class DiscontinuityDetected:
    """A newly added segment carries #EXT-X-DISCONTINUITY."""
    segment_id: str
    sequence: int
    url: str


@dataclass(frozen=True)
class SegmentTypeUpdated:
    """The root URL was classified ("master", "media" or "error")."""
    url: str
    kind: str
    title: str = ""


Event = Any  # one of the dataclasses above, or CueEvent


class EventBus:
    """
    Synchronous observer.

    Callbacks run on the emitting thread in subscription order. A callback
    that raises is logged and skipped; the remaining callbacks still run.

    Example:
        >>> bus = EventBus()
        >>> received = []
        >>> bus.subscribe(received.append)
        >>> bus.emit(StatusUpdate("Loading"))
        >>> received[0].message
        'Loading'
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    def emit(self, event: Event) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber failed on {type(event).__name__}: {str(e)}", exc_info=True)

    def __len__(self) -> int:
        return len(self._subscribers)
