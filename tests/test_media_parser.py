from datetime import datetime, timedelta, timezone

from hlsprobe.models import ByteRange
from hlsprobe.playlist.media import parse_byte_range, parse_media_playlist


BASE = "https://cdn.example.com/live/index.m3u8"

VOD = """#EXTM3U
#EXT-X-TARGETDURATION:10
#EXT-X-PLAYLIST-TYPE:VOD
#EXTINF:10.0,
seg0.ts
#EXTINF:10.0,
seg1.ts
#EXT-X-ENDLIST
"""


def test_simple_vod_playlist():
    result = parse_media_playlist(VOD, BASE)
    assert [s.sequence for s in result.segments] == [0, 1]
    assert [s.url for s in result.segments] == [
        "https://cdn.example.com/live/seg0.ts",
        "https://cdn.example.com/live/seg1.ts",
    ]
    assert result.meta.finished
    assert result.meta.target_duration == 10.0
    assert result.meta.playlist_type == "VOD"
    assert result.segments[0].id == "media_seq0"
    assert result.warnings == []


def test_media_sequence_and_playlist_id():
    body = "#EXTM3U\n#EXT-X-MEDIA-SEQUENCE:100\n#EXTINF:4,title one\na.ts\n#EXTINF:4,\nb.ts\n"
    result = parse_media_playlist(body, BASE, playlist_id="variant_0")
    assert [s.sequence for s in result.segments] == [100, 101]
    assert result.segments[0].id == "variant_0_seq100"
    assert result.segments[0].title == "title one"
    assert result.meta.media_sequence == 100
    assert not result.meta.finished


def test_starting_sequence_without_media_sequence_tag():
    body = "#EXTM3U\n#EXTINF:4,\na.ts\n"
    result = parse_media_playlist(body, BASE, starting_sequence=7)
    assert result.segments[0].sequence == 7


def test_discontinuity_flags_next_segment():
    body = """#EXTM3U
#EXT-X-DISCONTINUITY-SEQUENCE:3
#EXTINF:4,
a.ts
#EXT-X-DISCONTINUITY
#EXTINF:4,
b.ts
#EXTINF:4,
#EXT-X-DISCONTINUITY
c.ts
"""
    result = parse_media_playlist(body, BASE)
    assert [s.discontinuity for s in result.segments] == [False, True, True]
    assert [s.discontinuity_sequence for s in result.segments] == [3, 4, 5]
    assert result.meta.discontinuity_sequence == 5


def test_key_context_carries_forward_and_method_none_clears():
    body = """#EXTM3U
#EXT-X-KEY:METHOD=AES-128,URI="keys/k1.bin",IV=0x0123
#EXTINF:4,
a.ts
#EXTINF:4,
b.ts
#EXT-X-KEY:METHOD=NONE
#EXTINF:4,
c.ts
"""
    segments = parse_media_playlist(body, BASE).segments
    assert segments[0].key.method == "AES-128"
    assert segments[0].key.uri == "https://cdn.example.com/live/keys/k1.bin"
    assert segments[0].key.iv == "0x0123"
    assert segments[1].key == segments[0].key
    assert segments[2].key is None


def test_map_and_byte_ranges():
    body = """#EXTM3U
#EXT-X-MAP:URI="init.mp4",BYTERANGE="720@0"
#EXTINF:4,
#EXT-X-BYTERANGE:1000@720
media.mp4
#EXTINF:4,
#EXT-X-BYTERANGE:500
media.mp4
"""
    segments = parse_media_playlist(body, BASE).segments
    assert segments[0].init_map.uri == "https://cdn.example.com/live/init.mp4"
    assert segments[0].init_map.byte_range == ByteRange(720, 0)
    assert segments[0].byte_range == ByteRange(1000, 720)
    assert segments[1].byte_range == ByteRange(500, 1720)


def test_parse_byte_range():
    assert parse_byte_range("1024@2048") == ByteRange(1024, 2048)
    assert parse_byte_range("1024") == ByteRange(1024, None)
    assert parse_byte_range("x@y") is None


def test_program_date_time_context():
    body = """#EXTM3U
#EXT-X-PROGRAM-DATE-TIME:2024-05-01T12:00:00.000Z
#EXTINF:6,
a.ts
#EXTINF:6,
b.ts
"""
    segments = parse_media_playlist(body, BASE).segments
    expected = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert segments[0].program_date_time == expected
    assert segments[0].program_date_time.utcoffset() == timedelta(0)
    assert segments[1].program_date_time == expected


def test_invalid_duration_becomes_zero_with_warning():
    body = "#EXTM3U\n#EXTINF:abc,\na.ts\n#EXTINF:-2,\nb.ts\n"
    result = parse_media_playlist(body, BASE)
    assert [s.duration for s in result.segments] == [0.0, 0.0]
    assert len(result.warnings) == 2


def test_uri_without_extinf_is_a_warning():
    body = "#EXTM3U\nstray.ts\n#EXTINF:4,\na.ts\n"
    result = parse_media_playlist(body, BASE)
    assert len(result.segments) == 1
    assert result.warnings[0].line_no == 2
    assert result.warnings[0].line == "stray.ts"


def test_absolute_segment_urls_are_kept():
    body = "#EXTM3U\n#EXTINF:4,\nhttps://other.example.com/a.ts\n"
    assert parse_media_playlist(body, BASE).segments[0].url == "https://other.example.com/a.ts"


def test_cue_lines_are_anchored_to_the_following_segment():
    body = """#EXTM3U
#EXT-X-MEDIA-SEQUENCE:10
#EXTINF:4,
a.ts
#EXT-X-CUE-OUT:30
#EXTINF:4,
b.ts
#EXT-X-CUE-IN
"""
    result = parse_media_playlist(body, BASE)
    anchors = {line.text: line.sequence for line in result.cue_lines}
    assert anchors["#EXT-X-CUE-OUT:30"] == 11
    assert anchors["#EXT-X-CUE-IN"] == 12
    assert all(not line.text.endswith(".ts") for line in result.cue_lines)
