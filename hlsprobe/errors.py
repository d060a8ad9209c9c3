"""
Exception hierarchy for hlsprobe.

Fetch errors are raised by the playlist fetcher and reported by the tracker
as status updates. Decode errors are raised by the SCTE-35 decoder and turned
into error cue events by the interpreter. Neither ever ends the session.
"""

from typing import Optional


class HLSProbeError(Exception):
    """Base class for all hlsprobe errors."""


class FetchError(HLSProbeError):
    """A playlist could not be retrieved."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class FetchTimeout(FetchError):
    """The request did not complete within the configured timeout."""


class HTTPStatusError(FetchError):
    """The server answered with a non-2xx status code."""

    def __init__(self, status: int, url: Optional[str] = None, reason: str = ""):
        message = f"HTTP error {status}"
        if reason:
            message += f": {reason}"
        super().__init__(message, url=url)
        self.status = status


class NotAPlaylistError(FetchError):
    """The response body does not start with #EXTM3U."""


class TransportError(FetchError):
    """Connection-level failure (DNS, TLS, reset, invalid URL...)."""


class DecodeError(HLSProbeError):
    """An SCTE-35 payload could not be decoded."""


class BadTableId(DecodeError):
    """First byte is not the splice_info_section table id (0xFC)."""

    def __init__(self, table_id: int):
        super().__init__(f"Not a splice_info_section (table id 0x{table_id:02X}, expected 0xFC)")
        self.table_id = table_id


class Truncated(DecodeError):
    """A field extends past the end of the available data."""


class UnsupportedEncoding(DecodeError):
    """Cue text is neither valid hex nor valid base64."""


class CRCMismatch(DecodeError):
    """Trailing CRC_32 does not match the section contents."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"CRC_32 mismatch (section says 0x{expected:08X}, computed 0x{actual:08X})")
        self.expected = expected
        self.actual = actual
