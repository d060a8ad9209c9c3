"""
Shared utility functions for hlsprobe.

URL helpers, 90 kHz clock conversions and small text decoders used across
the playlist and SCTE-35 modules.
"""

import base64
import binascii
import re
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Generic, Hashable, Optional, TypeVar
from urllib.parse import urljoin, urlparse

PTS_CLOCK = 90000

_HEX_RE = re.compile(r'^[0-9A-Fa-f]+$')
_BASE64_RE = re.compile(r'^[A-Za-z0-9+/]+={0,2}$')
_ABSOLUTE_RE = re.compile(r'^(https?|blob|data):', re.IGNORECASE)


def is_hls_playlist(content: str) -> bool:
    """
    Check if content is an HLS playlist (M3U8 format).

    Args:
        content: Content to check

    Returns:
        True if content starts with #EXTM3U, False otherwise
    """
    return content.lstrip('\ufeff').strip().startswith('#EXTM3U')


def resolve_url(uri: str, base_url: str) -> str:
    """
    Resolve a playlist URI against the URL of the playlist that references it.

    Args:
        uri: Absolute or relative URI as written in the playlist
        base_url: URL of the referencing playlist

    Returns:
        Absolute URL

    Example:
        >>> resolve_url("seg1.ts", "https://cdn.example.com/live/index.m3u8")
        'https://cdn.example.com/live/seg1.ts'
    """
    if not uri or not base_url:
        return uri
    if _ABSOLUTE_RE.match(uri):
        return uri
    return urljoin(base_url, uri)


def short_url(url: str, max_length: int = 50) -> str:
    """
    Shorten a URL for status messages.

    Keeps the host and the first characters of the file name.

    Example:
        >>> short_url("https://cdn.example.com/a/very/long/path/to/index_1080p_main.m3u8?token=x")
        'cdn.example.com/.../index_1080p_mai...?token=x'
    """
    if not url or len(url) <= max_length:
        return url or ''
    parsed = urlparse(url)
    if not parsed.netloc:
        half = max_length // 2
        return f"{url[:half]}...{url[-half:]}"
    parts = [p for p in parsed.path.split('/') if p]
    name = parts[-1] if parts else ''
    shown = name[:15] + ('...' if len(name) > 15 else '')
    query = f"?{parsed.query}" if parsed.query else ''
    return f"{parsed.netloc}/.../{shown}{query}"


def ticks_to_seconds(ticks: int) -> float:
    """Convert 90 kHz clock ticks to seconds."""
    return ticks / PTS_CLOCK


def format_pts(ticks: Optional[int]) -> str:
    """
    Render a PTS value as ticks plus seconds.

    Example:
        >>> format_pts(900000)
        '900000 (10.000s)'
    """
    if ticks is None:
        return 'N/A'
    return f"{ticks} ({ticks_to_seconds(ticks):.3f}s)"


def parse_program_date_time(value: str) -> Optional[datetime]:
    """
    Parse an #EXT-X-PROGRAM-DATE-TIME value (ISO 8601).

    Accepts a trailing 'Z', '+hh:mm' / '+hhmm' offsets and any number of
    fractional digits. Naive values are taken as UTC.

    Returns:
        Timezone-aware datetime, or None if the value cannot be parsed
    """
    text = value.strip()
    if not text:
        return None
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    match = re.match(r'^(.*[T ]\d{2}:\d{2}:\d{2})(\.\d+)?([+-]\d{2}:?\d{2})?$', text)
    if not match:
        return None
    base, fraction, offset = match.groups()
    if fraction:
        fraction = (fraction[1:] + '000000')[:6]
        base = f"{base}.{fraction}"
    if offset and ':' not in offset:
        offset = f"{offset[:3]}:{offset[3:]}"
    try:
        parsed = datetime.fromisoformat(base + (offset or ''))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def decode_hex(text: str) -> Optional[bytes]:
    """
    Decode a hex string, with or without a 0x prefix.

    Returns:
        Decoded bytes, or None if the text is not valid hex
    """
    clean = text.strip()
    if clean[:2].lower() == '0x':
        clean = clean[2:]
    if not clean or len(clean) % 2 != 0 or not _HEX_RE.match(clean):
        return None
    return bytes.fromhex(clean)


def decode_base64(text: str) -> Optional[bytes]:
    """
    Decode a standard base64 string.

    Returns:
        Decoded bytes, or None if the text is not valid base64
    """
    clean = text.strip()
    if not clean or len(clean) % 4 != 0 or not _BASE64_RE.match(clean):
        return None
    try:
        return base64.b64decode(clean, validate=True)
    except (binascii.Error, ValueError):
        return None


TKey = TypeVar("TKey", bound=Hashable)
TValue = TypeVar("TValue")


class LRUCache(Generic[TKey, TValue]):
    """Small bounded mapping that evicts the least recently used key."""

    def __init__(self, num: int):
        self.cache: "OrderedDict[TKey, TValue]" = OrderedDict()
        self.num = num

    def get(self, key: TKey) -> Optional[TValue]:
        if key not in self.cache:
            return None
        self.cache.move_to_end(key)
        return self.cache[key]

    def set(self, key: TKey, value: TValue) -> None:
        self.cache[key] = value
        self.cache.move_to_end(key)
        if len(self.cache) > self.num:
            self.cache.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        return key in self.cache

    def __len__(self) -> int:
        return len(self.cache)

    def clear(self) -> None:
        self.cache.clear()
