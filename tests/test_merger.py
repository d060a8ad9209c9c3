import random

from hlsprobe.merger import deduplicate_segments, merge_segments, new_segments
from hlsprobe.models import MediaPlaylist, Segment


def make_segments(sequences):
    return [Segment(id=f"media_seq{n}", url=f"https://example.com/{n}.ts", duration=4.0, sequence=n) for n in sequences]


def test_new_segments_only_returns_higher_sequences():
    known = make_segments(range(3))
    fresh = make_segments(range(4))
    assert [s.sequence for s in new_segments(known, fresh)] == [3]


def test_merge_keeps_existing_objects():
    playlist = MediaPlaylist(id="media", url="https://example.com/index.m3u8")
    first = make_segments(range(3))
    merge_segments(playlist, first)
    appended = merge_segments(playlist, make_segments(range(4)))

    assert [s.sequence for s in playlist.segments] == [0, 1, 2, 3]
    assert all(a is b for a, b in zip(playlist.segments[:3], first))
    assert [s.sequence for s in appended] == [3]


def test_merging_same_window_twice_adds_nothing():
    playlist = MediaPlaylist(id="media", url="https://example.com/index.m3u8")
    merge_segments(playlist, make_segments(range(5, 8)))
    assert merge_segments(playlist, make_segments(range(5, 8))) == []
    assert len(playlist.segments) == 3


def test_stale_window_is_ignored():
    playlist = MediaPlaylist(id="media", url="https://example.com/index.m3u8")
    merge_segments(playlist, make_segments(range(10, 13)))
    assert merge_segments(playlist, make_segments(range(7, 10))) == []
    assert playlist.last_sequence == 12


def test_deduplicate_segments_first_wins():
    segments = make_segments([1, 1, 2])
    unique = deduplicate_segments(segments)
    assert [s.sequence for s in unique] == [1, 2]
    assert unique[0] is segments[0]


def test_sliding_windows_keep_unique_increasing_sequences():
    rng = random.Random(1234)
    playlist = MediaPlaylist(id="media", url="https://example.com/index.m3u8")
    observed = set()
    start = 0
    for _ in range(50):
        start += rng.randint(0, 3)
        window = list(range(start, start + rng.randint(1, 6)))
        observed.update(window)
        merge_segments(playlist, make_segments(window))

    sequences = [s.sequence for s in playlist.segments]
    assert sequences == sorted(set(sequences))
    assert set(sequences) == {n for n in observed if n >= sequences[0]}
