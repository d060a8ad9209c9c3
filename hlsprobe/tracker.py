"""
Playlist tracking session.

TrackerSession owns the whole model of one HLS session: it loads the root
URL, resolves a master playlist to one of its variants, parses the media
playlist and, for live streams, keeps refreshing it from a background
RefreshWorker. Everything it discovers is published on an EventBus, and
every playlist line is run through the SCTE-35 cue pipeline.

Example:
    >>> from hlsprobe import TrackerSession
    >>> session = TrackerSession()
    >>> session.subscribe(lambda event: print(event))
    >>> session.load("https://example.com/live/master.m3u8")  # doctest: +SKIP
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, List, Optional

from .errors import FetchError
from .events import (
    DiscontinuityDetected,
    EventBus,
    PlaylistParsed,
    SegmentAdded,
    SegmentTypeUpdated,
    StatusUpdate,
    Subscriber,
)
from .fetcher import PlaylistFetcher
from .merger import merge_segments
from .models import (
    MasterPlaylist,
    MediaPlaylist,
    PlaylistKind,
    Segment,
    TrackerConfig,
    VariantDescriptor,
)
from .playlist import classify, extract_renditions, extract_variants, parse_media_playlist
from .playlist.media import MediaParseResult
from .scte35.interpreter import CueInterpreter
from .utils import resolve_url, short_url

logger = logging.getLogger(__name__)


class TrackerState(str, Enum):
    IDLE = "idle"
    MASTER_LOADING = "master-loading"
    VARIANT_SELECTING = "variant-selecting"
    MEDIA_LOADING = "media-loading"
    VOD = "vod"
    LIVE = "live"
    FAILED = "failed"


VariantPolicy = Callable[[List[VariantDescriptor]], Optional[int]]


def select_first(variants: List[VariantDescriptor]) -> Optional[int]:
    """Index of the first regular (non I-frame) variant in playlist order."""
    for index, variant in enumerate(variants):
        if not variant.is_iframe:
            return index
    return None


def select_highest_bandwidth(variants: List[VariantDescriptor]) -> Optional[int]:
    candidates = [(v.bandwidth, -i, i) for i, v in enumerate(variants) if not v.is_iframe]
    return max(candidates)[2] if candidates else None


def select_lowest_bandwidth(variants: List[VariantDescriptor]) -> Optional[int]:
    candidates = [(v.bandwidth, i) for i, v in enumerate(variants) if not v.is_iframe]
    return min(candidates)[1] if candidates else None


VARIANT_POLICIES: Dict[str, VariantPolicy] = {
    "first": select_first,
    "highest-bandwidth": select_highest_bandwidth,
    "lowest-bandwidth": select_lowest_bandwidth,
}


def get_variant_policy(name: str) -> VariantPolicy:
    policy = VARIANT_POLICIES.get(name)
    if policy is None:
        raise ValueError(f"Unsupported variant policy: {name}")
    return policy


class RefreshWorker(threading.Thread):
    """
    Background refresh loop for one live media playlist.

    Sleeps for the session's refresh interval between ticks and stops as soon
    as it is closed, the session leaves the LIVE state or the session moves
    on to a newer generation.
    """

    def __init__(self, session: "TrackerSession", generation: int):
        super().__init__(name=f"hlsprobe-refresh-{generation}", daemon=True)
        self.session = session
        self.generation = generation
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()

    def run(self) -> None:
        logger.debug(f"Refresh worker {self.generation} started")
        while not self._closed.is_set():
            if self._closed.wait(self.session.refresh_interval()):
                break
            self.session.refresh(generation=self.generation)
            if not self.session.is_current(self.generation, TrackerState.LIVE):
                break
        logger.debug(f"Refresh worker {self.generation} stopped")


class TrackerSession:
    """
    Tracks one HLS session (master and media playlists).

    The session is the only writer of its playlist model. State changes are
    serialized with a re-entrant lock; network fetches run outside the lock
    and their results are dropped if the session was reset meanwhile.
    """

    def __init__(
        self,
        fetcher: Optional[PlaylistFetcher] = None,
        config: Optional[TrackerConfig] = None,
        bus: Optional[EventBus] = None,
        interpreter: Optional[CueInterpreter] = None,
        variant_policy: Optional[VariantPolicy] = None,
    ):
        """
        Initialize a tracking session.

        Args:
            fetcher: Playlist fetcher (default: built from config)
            config: TrackerConfig (default: TrackerConfig())
            bus: Event bus to publish on (default: a new EventBus)
            interpreter: Cue interpreter (default: built from config)
            variant_policy: Callable picking a variant index (default: from
                config.variant_policy)
        """
        self.config = config or TrackerConfig()
        self.fetcher = fetcher or PlaylistFetcher.from_config(self.config)
        self.bus = bus or EventBus()
        self.interpreter = interpreter or CueInterpreter(
            dedup_window=self.config.cue_dedup_window,
            discontinuity_window=self.config.discontinuity_window,
            verify_crc=self.config.verify_crc,
        )
        self.variant_policy = variant_policy or get_variant_policy(self.config.variant_policy)

        self._lock = threading.RLock()
        self._in_flight: Optional[int] = None  # generation with a refresh fetch running
        self._generation = 0
        self._worker: Optional[RefreshWorker] = None

        self.state = TrackerState.IDLE
        self.url: Optional[str] = None
        self.master: Optional[MasterPlaylist] = None
        self.media: Optional[MediaPlaylist] = None
        self.variant_index: Optional[int] = None
        self.last_error: Optional[Exception] = None

    def subscribe(self, callback: Subscriber) -> None:
        self.bus.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self.bus.unsubscribe(callback)

    def _emit(self, event) -> None:
        self.bus.emit(event)

    def _status(self, message: str) -> None:
        self._emit(StatusUpdate(message))

    @property
    def segments(self) -> List[Segment]:
        return self.media.segments if self.media else []

    @property
    def variants(self) -> List[VariantDescriptor]:
        return self.master.variants if self.master else []

    def is_current(self, generation: int, state: Optional[TrackerState] = None) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            return state is None or self.state == state

    def _set_state(self, state: TrackerState) -> None:
        if state != self.state:
            logger.info(f"Tracker state {self.state.value} -> {state.value}")
            self.state = state

    def _detach_worker(self) -> Optional[RefreshWorker]:
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.close()
        return worker

    def refresh_interval(self) -> float:
        """Seconds to wait between live refreshes."""
        media = self.media
        target = media.target_duration if media else None
        if not target:
            return self.config.refresh_interval
        return max(self.config.min_refresh_interval, target * self.config.refresh_factor)

    def reset(self) -> None:
        """
        Return to IDLE.

        Stops the refresh worker and invalidates any fetch still in flight;
        its result is discarded when it completes.
        """
        with self._lock:
            self._generation += 1
            worker = self._detach_worker()
            self.state = TrackerState.IDLE
            self.url = None
            self.master = None
            self.media = None
            self.variant_index = None
            self.last_error = None
            self.interpreter.reset()
        if worker is not None:
            logger.debug(f"Cancelled refresh worker {worker.generation}")

    def close(self) -> None:
        """Reset the session and release the HTTP session."""
        self.reset()
        self.fetcher.close()

    def _fail(self, generation: int, url: str, message: str, error: Optional[Exception] = None) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._detach_worker()
            self.last_error = error
            self._set_state(TrackerState.FAILED)
            logger.error(message)
            self._emit(SegmentTypeUpdated(url, "error", message))
            self._status(message)

    def _fetch_initial(self, url: str, generation: int) -> Optional[str]:
        try:
            return self.fetcher.fetch(url)
        except FetchError as e:
            self._fail(generation, url, f"Failed to load {short_url(url)}: {str(e)}", e)
            return None

    def load(self, url: str) -> TrackerState:
        """
        Load a stream from its root URL.

        Any previous session is reset first. Returns once the first media
        playlist has been parsed (VOD or LIVE) or loading failed (FAILED).
        Live streams keep refreshing in the background while
        ``config.auto_refresh`` is set.

        Args:
            url: Master or media playlist URL

        Returns:
            The resulting TrackerState
        """
        self.reset()
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.url = url
            self._set_state(TrackerState.MASTER_LOADING)
        logger.info(f"Loading stream {url}")
        self._status(f"Loading {short_url(url)}")

        body = self._fetch_initial(url, generation)
        if body is None:
            return self.state

        with self._lock:
            if generation != self._generation:
                return self.state
            kind = classify(body)
            if kind == PlaylistKind.MEDIA:
                self._emit(SegmentTypeUpdated(url, kind.value, "Media Playlist"))
                self._set_state(TrackerState.MEDIA_LOADING)
                self._accept_media(url, body, None, "media", generation)
                return self.state

            self._emit(SegmentTypeUpdated(url, kind.value, "Master Playlist"))
            index = self._accept_master(url, body, generation)
            if index is None:
                return self.state
            variant = self.master.variants[index]
            media_url = resolve_url(variant.uri, url)
            self._set_state(TrackerState.MEDIA_LOADING)

        return self._load_media(media_url, variant, index, generation)

    def _accept_master(self, url: str, body: str, generation: int) -> Optional[int]:
        warnings = []
        variants = extract_variants(body, warnings)
        self.master = MasterPlaylist(url=url, body=body, variants=variants, renditions=extract_renditions(body))
        self._emit(PlaylistParsed(PlaylistKind.MASTER, url, list(variants), 0))
        self._scan_lines(body.splitlines(), url)

        if not variants:
            self._fail(generation, url, f"Master playlist {short_url(url)} has no variants")
            return None

        self._set_state(TrackerState.VARIANT_SELECTING)
        index = self.variant_policy(variants)
        if index is None or not 0 <= index < len(variants):
            self._fail(generation, url, f"No playable variant in {short_url(url)}")
            return None
        self.variant_index = index
        variant = variants[index]
        logger.info(
            f"Selected variant {index}: {variant.bandwidth} bps "
            f"{variant.resolution_label or 'audio-only'} -> {short_url(variant.uri)}"
        )
        return index

    def _load_media(
        self,
        url: str,
        variant: Optional[VariantDescriptor],
        index: Optional[int],
        generation: int,
    ) -> TrackerState:
        body = self._fetch_initial(url, generation)
        if body is None:
            return self.state
        with self._lock:
            if generation != self._generation:
                return self.state
            if classify(body) != PlaylistKind.MEDIA:
                self._fail(generation, url, f"Variant {short_url(url)} is not a media playlist")
                return self.state
            playlist_id = f"variant_{index}" if index is not None else "media"
            self._accept_media(url, body, variant, playlist_id, generation)
        return self.state

    def _accept_media(
        self,
        url: str,
        body: str,
        variant: Optional[VariantDescriptor],
        playlist_id: str,
        generation: int,
    ) -> None:
        result = parse_media_playlist(body, url, playlist_id=playlist_id)
        self.media = MediaPlaylist(id=playlist_id, url=url, body=body, meta=result.meta, variant=variant)
        self._emit(PlaylistParsed(PlaylistKind.MEDIA, url, [], len(result.segments)))
        self._publish(result)

        if self.media.finished:
            self._set_state(TrackerState.VOD)
            self._status(f"VOD playlist loaded: {len(self.media.segments)} segments")
            return

        self._set_state(TrackerState.LIVE)
        self._status(
            f"Live playlist loaded: {len(self.media.segments)} segments, "
            f"refreshing every {self.refresh_interval():.1f}s"
        )
        if self.config.auto_refresh:
            self._worker = RefreshWorker(self, generation)
            self._worker.start()

    def refresh(self, generation: Optional[int] = None) -> bool:
        """
        Run one live refresh tick.

        A tick that finds another refresh of the same generation in flight is
        skipped, never queued. A fetch still running for a superseded
        generation does not block the current one.
        Fetch failures are reported and the playlist is left as it was.

        Args:
            generation: Only refresh if the session is still on this
                generation (used by the refresh worker)

        Returns:
            True if a fetch was attempted, False if the tick was skipped
        """
        with self._lock:
            if self.state != TrackerState.LIVE or self.media is None:
                return False
            if generation is not None and generation != self._generation:
                return False
            if self._in_flight == self._generation:
                logger.debug("Refresh already in flight, skipping tick")
                return False
            generation = self._in_flight = self._generation
            url = self.media.url

        try:
            self._fetch_and_apply(url, generation)
        finally:
            with self._lock:
                if self._in_flight == generation:
                    self._in_flight = None
        return True

    def _fetch_and_apply(self, url: str, generation: int) -> None:
        try:
            body = self.fetcher.fetch(url)
        except FetchError as e:
            with self._lock:
                if generation == self._generation:
                    self.last_error = e
                    logger.warning(f"Refresh of {short_url(url)} failed: {str(e)}")
                    self._status(f"Refresh failed: {str(e)}")
            return

        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding refresh result for superseded generation {generation}")
                return
            self._apply_refresh(body)

    def _apply_refresh(self, body: str) -> None:
        media = self.media
        if body == media.body:
            logger.debug(f"Playlist {media.id} unchanged")
            return

        result = parse_media_playlist(body, media.url, playlist_id=media.id)
        media.body = body
        media.meta = result.meta
        appended = self._publish(result)
        logger.debug(f"Refresh of {media.id}: {len(appended)} new segments")

        if media.finished:
            self._detach_worker()
            self._set_state(TrackerState.VOD)
            self._status(f"Stream ended: {len(media.segments)} segments")

    def _publish(self, result: MediaParseResult) -> List[Segment]:
        """
        Merge parsed segments and emit events in discovery order.

        Cue lines anchored to a new segment are reported before its
        SegmentAdded event, the discontinuity heuristic after it. Lines
        trailing the last segment come last.
        """
        media = self.media
        appended = merge_segments(media, result.segments)
        lines = list(result.cue_lines)
        position = 0

        for segment in appended:
            while position < len(lines) and lines[position].sequence <= segment.sequence:
                line = lines[position]
                self._scan_line(line.text, media.url, line.sequence)
                position += 1
            self._emit(SegmentAdded.from_segment(segment))
            if segment.discontinuity:
                self._emit(DiscontinuityDetected(segment.id, segment.sequence, segment.url))
                cue = self.interpreter.process_discontinuity(segment, media.url)
                if cue is not None:
                    self._emit(cue)

        for line in lines[position:]:
            self._scan_line(line.text, media.url, line.sequence)
        return appended

    def _scan_line(self, text: str, playlist_url: str, sequence: Optional[int]) -> None:
        cue = self.interpreter.process_line(text, playlist_url, sequence)
        if cue is not None:
            self._emit(cue)

    def _scan_lines(self, lines: List[str], playlist_url: str) -> None:
        for text in lines:
            self._scan_line(text, playlist_url, None)

    def select_variant(self, index: int) -> TrackerState:
        """
        Switch the session to another variant of the loaded master playlist.

        The current media playlist and its refresh worker are dropped and the
        chosen variant is loaded from scratch.

        Raises:
            ValueError: No master playlist is loaded
            IndexError: index is out of range
        """
        with self._lock:
            if self.master is None:
                raise ValueError("No master playlist loaded")
            if not 0 <= index < len(self.master.variants):
                raise IndexError(f"Variant index {index} out of range (0-{len(self.master.variants) - 1})")
            self._generation += 1
            generation = self._generation
            self._detach_worker()
            self.media = None
            self.last_error = None
            self.variant_index = index
            variant = self.master.variants[index]
            media_url = resolve_url(variant.uri, self.master.url)
            self._set_state(TrackerState.MEDIA_LOADING)
        self._status(f"Switching to variant {index} ({short_url(media_url)})")
        return self._load_media(media_url, variant, index, generation)


def session_from_config(
    config: TrackerConfig,
    fetcher: Optional[PlaylistFetcher] = None,
    bus: Optional[EventBus] = None,
) -> TrackerSession:
    """Create a TrackerSession from a TrackerConfig object."""
    return TrackerSession(fetcher=fetcher, config=config, bus=bus)
