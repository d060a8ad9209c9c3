"""
Live stream inspection example.

Loads an HLS stream, follows it for a while and prints every segment and
every SCTE-35 cue as it is discovered.

Pipeline:
1. Load master playlist and pick the highest-bandwidth variant
2. Parse the media playlist and start background refreshes
3. Print segments, discontinuities and decoded cues
4. Print a cue summary and stop
"""

import logging
import time

from hlsprobe import (
    CueEvent,
    DiscontinuityDetected,
    SegmentAdded,
    StatusUpdate,
    TrackerConfig,
    TrackerState,
    session_from_config,
)

# Configure logging to see hlsprobe internal logs
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def on_event(event):
    if isinstance(event, SegmentAdded):
        print(f"[segment] #{event.sequence} {event.duration:.3f}s {event.url}")
    elif isinstance(event, DiscontinuityDetected):
        print(f"[discontinuity] before #{event.sequence}")
    elif isinstance(event, CueEvent):
        flag = " (heuristic)" if event.heuristic else ""
        print(f"[cue] {event.id}{flag}: {event.description}")
    elif isinstance(event, StatusUpdate):
        print(f"[status] {event.message}")


def main():
    stream_url = "https://example.com/live/master.m3u8"
    watch_seconds = 60

    config = TrackerConfig(variant_policy="highest-bandwidth", verify_crc=True)
    session = session_from_config(config)
    session.subscribe(on_event)

    state = session.load(stream_url)
    if state == TrackerState.FAILED:
        print(f"Could not load stream: {session.last_error}")
        return

    if state == TrackerState.LIVE:
        print(f"\nWatching live stream for {watch_seconds}s...")
        try:
            time.sleep(watch_seconds)
        except KeyboardInterrupt:
            pass

    summary = session.interpreter.summary()
    session.close()

    print("\nCue summary:")
    print(f"  Total events: {summary['total']}")
    print(f"  Ad starts: {summary['ad_starts']}")
    print(f"  Ad ends: {summary['ad_ends']}")
    print(f"  Heuristic: {summary['heuristic']}")
    print(f"  Decode errors: {summary['errors']}")


if __name__ == "__main__":
    main()
