from hlsprobe.playlist.variants import extract_renditions, extract_variants


MASTER = """#EXTM3U
#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aud",NAME="English",LANGUAGE="en",DEFAULT=YES,AUTOSELECT=YES,URI="audio/en.m3u8"
#EXT-X-STREAM-INF:BANDWIDTH=2500000,AVERAGE-BANDWIDTH=2200000,RESOLUTION=1280x720,CODECS="avc1.4d401f,mp4a.40.2",FRAME-RATE=29.970,AUDIO="aud"
hd/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360
sd/index.m3u8
#EXT-X-I-FRAME-STREAM-INF:BANDWIDTH=90000,URI="hd/iframe.m3u8"
#EXT-X-STREAM-INF:BANDWIDTH=64000,CODECS="mp4a.40.2"
audio_only.m3u8
"""


def test_extract_variants_preserves_source_order():
    variants = extract_variants(MASTER)
    assert [v.uri for v in variants] == [
        "hd/index.m3u8", "sd/index.m3u8", "hd/iframe.m3u8", "audio_only.m3u8",
    ]


def test_extract_variant_attributes():
    hd = extract_variants(MASTER)[0]
    assert hd.bandwidth == 2500000
    assert hd.average_bandwidth == 2200000
    assert hd.resolution == (1280, 720)
    assert hd.resolution_label == "1280x720"
    assert hd.codecs == "avc1.4d401f,mp4a.40.2"
    assert abs(hd.frame_rate - 29.97) < 1e-6
    assert hd.audio == "aud"
    assert not hd.is_iframe


def test_iframe_and_audio_only_variants():
    variants = extract_variants(MASTER)
    assert variants[2].is_iframe
    assert variants[3].resolution is None
    assert variants[3].resolution_label is None


def test_stream_inf_without_uri_is_dropped_with_warning():
    body = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1\n#EXT-X-STREAM-INF:BANDWIDTH=2\nb.m3u8\n#EXT-X-STREAM-INF:BANDWIDTH=3\n"
    warnings = []
    variants = extract_variants(body, warnings)
    assert [v.bandwidth for v in variants] == [2]
    assert [w.line_no for w in warnings] == [2, 5]


def test_extract_renditions():
    renditions = extract_renditions(MASTER)
    assert len(renditions) == 1
    audio = renditions[0]
    assert audio.type == "AUDIO"
    assert audio.group_id == "aud"
    assert audio.language == "en"
    assert audio.default and audio.autoselect
    assert audio.uri == "audio/en.m3u8"
