"""
Segment merging and deduplication for live playlists.

Each refresh of a live media playlist returns a sliding window of segments
that mostly overlaps with what is already known. Merging keeps the known
Segment objects untouched and appends only segments with a media sequence
greater than the highest one seen so far.
"""

import logging
from typing import Iterable, List, Set

from .models import MediaPlaylist, Segment

logger = logging.getLogger(__name__)


def deduplicate_segments(segments: Iterable[Segment]) -> List[Segment]:
    """
    Drop segments whose sequence number was already seen.

    The first occurrence wins and order is preserved.

    Example:
        >>> a = Segment(id="media_seq0", url="a.ts", duration=4.0, sequence=0)
        >>> b = Segment(id="media_seq0", url="b.ts", duration=4.0, sequence=0)
        >>> [s.url for s in deduplicate_segments([a, b])]
        ['a.ts']
    """
    seen: Set[int] = set()
    unique = []
    for segment in segments:
        if segment.sequence in seen:
            continue
        seen.add(segment.sequence)
        unique.append(segment)
    return unique


def new_segments(existing: List[Segment], incoming: List[Segment]) -> List[Segment]:
    """
    Select the incoming segments that are not yet known.

    Args:
        existing: Segments already stored for the playlist, in sequence order
        incoming: Segments from the latest parse

    Returns:
        Segments with a sequence greater than the highest existing one,
        deduplicated and in playlist order

    Example:
        >>> known = [Segment(id=f"media_seq{i}", url=f"{i}.ts", duration=4.0, sequence=i) for i in range(3)]
        >>> fresh = [Segment(id=f"media_seq{i}", url=f"{i}.ts", duration=4.0, sequence=i) for i in range(4)]
        >>> [s.sequence for s in new_segments(known, fresh)]
        [3]
    """
    last_sequence = existing[-1].sequence if existing else -1
    if incoming and existing and incoming[-1].sequence < last_sequence:
        logger.warning(
            f"Playlist went backwards: latest sequence {incoming[-1].sequence} "
            f"< known {last_sequence}, ignoring stale segments"
        )
    return deduplicate_segments(s for s in incoming if s.sequence > last_sequence)


def merge_segments(playlist: MediaPlaylist, incoming: List[Segment]) -> List[Segment]:
    """
    Append unknown segments to a playlist in place.

    Existing Segment objects are never replaced, so references held by
    callers stay valid across refreshes.

    Args:
        playlist: Tracked media playlist (mutated)
        incoming: Segments from the latest parse

    Returns:
        The segments that were appended
    """
    appended = new_segments(playlist.segments, incoming)
    playlist.segments.extend(appended)
    if appended:
        logger.debug(
            f"Merged {len(appended)} new segments into {playlist.id} "
            f"(sequences {appended[0].sequence}-{appended[-1].sequence}, total {len(playlist.segments)})"
        )
    return appended
