import base64
import threading

import pytest

from hlsprobe.errors import HTTPStatusError, TransportError
from hlsprobe.events import (
    DiscontinuityDetected,
    PlaylistParsed,
    SegmentAdded,
    SegmentTypeUpdated,
    StatusUpdate,
)
from hlsprobe.models import CueEvent, CueKind, PlaylistKind, TrackerConfig
from hlsprobe.playlist import extract_variants
from hlsprobe.tracker import (
    TrackerSession,
    TrackerState,
    get_variant_policy,
    select_first,
    select_highest_bandwidth,
    select_lowest_bandwidth,
    session_from_config,
)

MASTER_URL = "https://example.com/stream/master.m3u8"
LIVE_URL = "https://example.com/live/index.m3u8"
CUE_B64 = "/DAvAAAAAAAA///wFAVIAACPf+/+c2nALv4AUsz1AAAAAAAKAAhDVUVJAAABNWLbowo="

MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360
low/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=2400000,RESOLUTION=1280x720
high/index.m3u8
"""


def media_body(start, count, endlist=False, target=6, lines_before=None):
    """Build a media playlist; lines_before maps a sequence to tag lines placed before it."""
    lines_before = lines_before or {}
    lines = ["#EXTM3U", "#EXT-X-VERSION:3", f"#EXT-X-TARGETDURATION:{target}", f"#EXT-X-MEDIA-SEQUENCE:{start}"]
    for sequence in range(start, start + count):
        lines.extend(lines_before.get(sequence, []))
        lines.append(f"#EXTINF:{target}.000,")
        lines.append(f"seg{sequence}.ts")
    if endlist:
        lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"


class FakeFetcher:
    """Serves canned bodies (or raises canned errors) per URL."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.requests = []
        self.on_fetch = None
        self.closed = False

    def fetch(self, url):
        self.requests.append(url)
        if self.on_fetch is not None:
            self.on_fetch(url)
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


def make_session(responses, **config):
    config.setdefault("auto_refresh", False)
    fetcher = FakeFetcher(responses)
    session = TrackerSession(fetcher=fetcher, config=TrackerConfig(**config))
    events = []
    session.subscribe(events.append)
    return session, fetcher, events


def of_type(events, cls):
    return [event for event in events if isinstance(event, cls)]


def test_vod_media_playlist():
    session, _, events = make_session({LIVE_URL: media_body(0, 3, endlist=True)})

    assert session.load(LIVE_URL) == TrackerState.VOD
    assert [s.sequence for s in session.segments] == [0, 1, 2]
    assert session.segments[0].url == "https://example.com/live/seg0.ts"
    assert session.segments[0].id == "media_seq0"

    assert isinstance(events[0], StatusUpdate)
    assert events[1] == SegmentTypeUpdated(LIVE_URL, "media", "Media Playlist")
    assert events[2] == PlaylistParsed(PlaylistKind.MEDIA, LIVE_URL, [], 3)
    assert [e.sequence for e in of_type(events, SegmentAdded)] == [0, 1, 2]
    assert events[-1].message == "VOD playlist loaded: 3 segments"


def test_live_playlist_grows_in_place():
    session, fetcher, events = make_session({LIVE_URL: media_body(0, 3)})
    assert session.load(LIVE_URL) == TrackerState.LIVE
    first = session.segments[0]
    segments = session.segments

    fetcher.responses[LIVE_URL] = media_body(1, 3)
    events.clear()
    assert session.refresh()

    assert [s.sequence for s in session.segments] == [0, 1, 2, 3]
    assert session.segments is segments
    assert session.segments[0] is first
    assert [e.sequence for e in of_type(events, SegmentAdded)] == [3]
    assert session.state == TrackerState.LIVE


def test_refresh_with_unchanged_body_emits_nothing():
    session, _, events = make_session({LIVE_URL: media_body(0, 3)})
    session.load(LIVE_URL)
    events.clear()

    assert session.refresh()
    assert session.refresh()
    assert events == []
    assert len(session.segments) == 3


def test_playlist_sliding_past_known_segments():
    session, fetcher, _ = make_session({LIVE_URL: media_body(0, 3)})
    session.load(LIVE_URL)

    # the window moved further than its length between two refreshes
    fetcher.responses[LIVE_URL] = media_body(10, 3)
    session.refresh()
    assert [s.sequence for s in session.segments] == [0, 1, 2, 10, 11, 12]

    # a stale window never rewrites history
    fetcher.responses[LIVE_URL] = media_body(5, 3)
    session.refresh()
    assert [s.sequence for s in session.segments] == [0, 1, 2, 10, 11, 12]


def test_live_stream_ending():
    session, fetcher, events = make_session({LIVE_URL: media_body(0, 2)})
    session.load(LIVE_URL)

    fetcher.responses[LIVE_URL] = media_body(0, 3, endlist=True)
    session.refresh()

    assert session.state == TrackerState.VOD
    assert len(session.segments) == 3
    assert events[-1].message == "Stream ended: 3 segments"
    # no more refreshes once the playlist is finished
    assert not session.refresh()


def test_master_playlist_selects_first_variant():
    session, fetcher, events = make_session({
        MASTER_URL: MASTER,
        "https://example.com/stream/low/index.m3u8": media_body(0, 2, endlist=True),
    })

    assert session.load(MASTER_URL) == TrackerState.VOD
    assert fetcher.requests == [MASTER_URL, "https://example.com/stream/low/index.m3u8"]
    assert session.variant_index == 0
    assert [v.bandwidth for v in session.variants] == [800000, 2400000]
    assert session.segments[0].id == "variant_0_seq0"
    assert session.segments[0].url == "https://example.com/stream/low/seg0.ts"
    assert session.media.variant.bandwidth == 800000

    assert events[1] == SegmentTypeUpdated(MASTER_URL, "master", "Master Playlist")
    parsed = of_type(events, PlaylistParsed)
    assert parsed[0].kind == PlaylistKind.MASTER
    assert len(parsed[0].variants) == 2
    assert parsed[1].kind == PlaylistKind.MEDIA


def test_highest_bandwidth_policy():
    session, fetcher, _ = make_session({
        MASTER_URL: MASTER,
        "https://example.com/stream/high/index.m3u8": media_body(0, 2, endlist=True),
    }, variant_policy="highest-bandwidth")

    session.load(MASTER_URL)
    assert session.variant_index == 1
    assert session.segments[0].id == "variant_1_seq0"


def test_select_variant():
    session, fetcher, events = make_session({
        MASTER_URL: MASTER,
        "https://example.com/stream/low/index.m3u8": media_body(0, 2),
        "https://example.com/stream/high/index.m3u8": media_body(0, 4, endlist=True),
    })
    session.load(MASTER_URL)
    assert session.state == TrackerState.LIVE

    assert session.select_variant(1) == TrackerState.VOD
    assert session.variant_index == 1
    assert len(session.segments) == 4
    assert session.segments[0].id == "variant_1_seq0"
    assert any(isinstance(e, StatusUpdate) and e.message.startswith("Switching to variant 1") for e in events)

    with pytest.raises(IndexError):
        session.select_variant(2)


def test_select_variant_without_master():
    session, _, _ = make_session({LIVE_URL: media_body(0, 2)})
    session.load(LIVE_URL)
    with pytest.raises(ValueError):
        session.select_variant(0)


def test_load_failure():
    error = HTTPStatusError(404, url=LIVE_URL, reason="Not Found")
    session, _, events = make_session({LIVE_URL: error})

    assert session.load(LIVE_URL) == TrackerState.FAILED
    assert session.last_error is error
    assert session.segments == []
    [update] = of_type(events, SegmentTypeUpdated)
    assert update.kind == "error"
    assert "404" in update.title
    assert "404" in events[-1].message


def test_master_without_variants_fails():
    session, _, events = make_session({MASTER_URL: "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1000\n"})

    assert session.load(MASTER_URL) == TrackerState.FAILED
    assert "has no variants" in events[-1].message


def test_variant_that_is_not_media_fails():
    session, _, _ = make_session({
        MASTER_URL: MASTER,
        "https://example.com/stream/low/index.m3u8": MASTER,
    })
    assert session.load(MASTER_URL) == TrackerState.FAILED


def test_refresh_failure_keeps_playlist():
    session, fetcher, events = make_session({LIVE_URL: media_body(0, 3)})
    session.load(LIVE_URL)

    fetcher.responses[LIVE_URL] = TransportError("Request failed: connection reset", url=LIVE_URL)
    events.clear()
    assert session.refresh()

    assert session.state == TrackerState.LIVE
    assert len(session.segments) == 3
    assert isinstance(session.last_error, TransportError)
    assert events == [StatusUpdate("Refresh failed: Request failed: connection reset")]

    # the next successful tick carries on
    fetcher.responses[LIVE_URL] = media_body(1, 3)
    session.refresh()
    assert len(session.segments) == 4


def test_refresh_skipped_while_in_flight():
    session, fetcher, _ = make_session({LIVE_URL: media_body(0, 3)})
    session.load(LIVE_URL)
    fetcher.requests.clear()
    nested = []

    def tick_during_fetch(url):
        fetcher.on_fetch = None
        nested.append(session.refresh())

    fetcher.on_fetch = tick_during_fetch
    assert session.refresh()

    assert nested == [False]
    assert fetcher.requests == [LIVE_URL]
    # the guard is released once the fetch completes
    assert session.refresh()


def test_reset_discards_in_flight_refresh():
    session, fetcher, events = make_session({LIVE_URL: media_body(0, 3)})
    session.load(LIVE_URL)

    fetcher.responses[LIVE_URL] = media_body(0, 5)
    fetcher.on_fetch = lambda url: session.reset()
    events.clear()
    session.refresh()

    assert session.state == TrackerState.IDLE
    assert session.media is None
    assert of_type(events, SegmentAdded) == []


def test_superseded_fetch_does_not_block_new_stream():
    other_url = "https://example.com/other/index.m3u8"
    session, fetcher, _ = make_session({
        LIVE_URL: media_body(0, 3),
        other_url: media_body(100, 2),
    })
    session.load(LIVE_URL)
    fetcher.responses[LIVE_URL] = media_body(0, 5)
    new_stream_ticks = []

    def switch_streams(url):
        fetcher.on_fetch = None
        session.load(other_url)
        fetcher.responses[other_url] = media_body(100, 3)
        new_stream_ticks.append(session.refresh())

    fetcher.on_fetch = switch_streams
    assert session.refresh()

    assert new_stream_ticks == [True]
    assert fetcher.requests[-3:] == [LIVE_URL, other_url, other_url]
    assert session.url == other_url
    assert session.state == TrackerState.LIVE
    assert [s.sequence for s in session.segments] == [100, 101, 102]
    assert session.refresh()


def test_stale_generation_refresh_is_ignored():
    session, fetcher, _ = make_session({LIVE_URL: media_body(0, 3)})
    session.load(LIVE_URL)
    fetcher.requests.clear()

    assert not session.refresh(generation=-1)
    assert fetcher.requests == []


def test_cue_events_interleave_with_segments():
    body = media_body(0, 3, lines_before={1: [f"#EXT-X-CUE-OUT:{CUE_B64}"]})
    session, _, events = make_session({LIVE_URL: body})
    session.load(LIVE_URL)

    ordered = [e for e in events if isinstance(e, (SegmentAdded, CueEvent))]
    assert [type(e).__name__ for e in ordered] == ["SegmentAdded", "CueEvent", "SegmentAdded", "SegmentAdded"]
    cue = ordered[1]
    assert cue.kind == CueKind.AD_START
    assert cue.sequence == 1
    assert cue.playlist_url == LIVE_URL


def test_cue_repeated_in_live_window_reported_once():
    session, fetcher, events = make_session({
        LIVE_URL: media_body(0, 3, lines_before={1: [f"#EXT-X-CUE-OUT:{CUE_B64}"]}),
    })
    session.load(LIVE_URL)
    fetcher.responses[LIVE_URL] = media_body(1, 3, lines_before={1: [f"#EXT-X-CUE-OUT:{CUE_B64}"]})
    session.refresh()

    assert len(of_type(events, CueEvent)) == 1
    assert session.interpreter.summary()["ad_starts"] == 1


def test_discontinuity_heuristic():
    body = media_body(0, 4, lines_before={1: ["#EXT-X-DISCONTINUITY"], 3: ["#EXT-X-DISCONTINUITY"]})
    session, _, events = make_session({LIVE_URL: body}, discontinuity_window=0.0)
    session.load(LIVE_URL)

    ordered = [e for e in events if isinstance(e, (SegmentAdded, DiscontinuityDetected, CueEvent))]
    assert [type(e).__name__ for e in ordered] == [
        "SegmentAdded",
        "SegmentAdded", "DiscontinuityDetected", "CueEvent",
        "SegmentAdded",
        "SegmentAdded", "DiscontinuityDetected", "CueEvent",
    ]
    cues = of_type(events, CueEvent)
    assert [c.kind for c in cues] == [CueKind.AD_START, CueKind.AD_END]
    assert all(c.heuristic for c in cues)
    assert cues[0].sequence == 1
    assert of_type(events, DiscontinuityDetected)[0].segment_id == "media_seq1"


def test_decoded_cue_replaces_discontinuity_heuristic():
    body = media_body(0, 3, lines_before={1: ["#EXT-X-DISCONTINUITY", f"#EXT-X-CUE-OUT:{CUE_B64}"]})
    session, _, events = make_session({LIVE_URL: body})
    session.load(LIVE_URL)

    cues = of_type(events, CueEvent)
    assert len(cues) == 1
    assert not cues[0].heuristic
    assert len(of_type(events, DiscontinuityDetected)) == 1


def test_master_level_cues_are_unanchored():
    master = MASTER + f'#EXT-X-DATERANGE:ID="1",SCTE35-OUT=0x{base64.b64decode(CUE_B64).hex()}\n'
    session, _, events = make_session({
        MASTER_URL: master,
        "https://example.com/stream/low/index.m3u8": media_body(0, 1, endlist=True),
    })
    session.load(MASTER_URL)

    [cue] = of_type(events, CueEvent)
    assert cue.sequence is None
    assert cue.playlist_url == MASTER_URL


def test_refresh_interval():
    session, fetcher, _ = make_session({LIVE_URL: media_body(0, 2, target=6)})
    assert session.refresh_interval() == 3.0

    session.load(LIVE_URL)
    assert session.refresh_interval() == pytest.approx(4.2)

    fetcher.responses[LIVE_URL] = media_body(0, 2, target=1)
    session.load(LIVE_URL)
    assert session.refresh_interval() == 1.0


def test_reset_returns_to_idle():
    session, _, _ = make_session({LIVE_URL: media_body(0, 2, lines_before={0: [f"#EXT-X-CUE-OUT:{CUE_B64}"]})})
    session.load(LIVE_URL)
    assert session.interpreter.events

    session.reset()
    assert session.state == TrackerState.IDLE
    assert session.url is None
    assert session.segments == []
    assert session.interpreter.events == []


def test_background_refresh_worker():
    session, fetcher, _ = make_session(
        {LIVE_URL: media_body(0, 2, target=1)},
        auto_refresh=True,
        min_refresh_interval=0.01,
        refresh_factor=0.01,
    )
    refreshed = threading.Event()

    def count_fetches(url):
        if len(fetcher.requests) >= 3:
            refreshed.set()

    fetcher.on_fetch = count_fetches
    assert session.load(LIVE_URL) == TrackerState.LIVE
    worker = session._worker
    assert worker is not None and worker.daemon

    assert refreshed.wait(timeout=5)
    session.close()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert worker.closed
    assert fetcher.closed


def test_variant_policies():
    variants = extract_variants(
        "#EXTM3U\n"
        '#EXT-X-I-FRAME-STREAM-INF:BANDWIDTH=90000,URI="iframe.m3u8"\n'
        "#EXT-X-STREAM-INF:BANDWIDTH=2400000\nhigh.m3u8\n"
        "#EXT-X-STREAM-INF:BANDWIDTH=800000\nlow.m3u8\n"
        "#EXT-X-STREAM-INF:BANDWIDTH=2400000\nhigh-backup.m3u8\n"
    )
    assert select_first(variants) == 1
    assert select_highest_bandwidth(variants) == 1
    assert select_lowest_bandwidth(variants) == 2
    assert select_first([]) is None
    assert get_variant_policy("lowest-bandwidth") is select_lowest_bandwidth
    with pytest.raises(ValueError):
        get_variant_policy("random")


def test_session_from_config():
    config = TrackerConfig.from_dict({
        "variant_policy": "lowest-bandwidth",
        "cue_dedup_window": 9.0,
        "verify_crc": True,
        "unknown_option": 1,
    })
    fetcher = FakeFetcher()
    session = session_from_config(config, fetcher=fetcher)

    assert session.fetcher is fetcher
    assert session.variant_policy is select_lowest_bandwidth
    assert session.interpreter.dedup_window == 9.0
    assert session.interpreter.verify_crc
    assert session.state == TrackerState.IDLE


def test_unknown_policy_in_config():
    with pytest.raises(ValueError):
        TrackerSession(fetcher=FakeFetcher(), config=TrackerConfig(variant_policy="random"))
