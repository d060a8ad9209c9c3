"""
HLS playlist parsing: lexer, master playlist variants and media playlists.
"""

from .lexer import Line, LineKind, Tag, classify, parse_attribute_list, tokenize
from .media import CueLine, MediaParseResult, parse_byte_range, parse_media_playlist
from .variants import extract_renditions, extract_variants

__all__ = [
    "CueLine",
    "Line",
    "LineKind",
    "MediaParseResult",
    "Tag",
    "classify",
    "extract_renditions",
    "extract_variants",
    "parse_attribute_list",
    "parse_byte_range",
    "parse_media_playlist",
    "tokenize",
]
