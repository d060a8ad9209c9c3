"""
Big-endian bit reader for SCTE-35 sections.
"""

from ..errors import Truncated

PTS_MASK = (1 << 33) - 1


class BitReader:
    """
    Sequential MSB-first reader over a bytes object.

    Reads past the end raise Truncated, so a decoder never returns a
    partially filled structure.

    Example:
        >>> reader = BitReader(bytes([0b10110000]))
        >>> reader.read(1), reader.read(3)
        (1, 3)
    """

    def __init__(self, data: bytes, start: int = 0, end: int = None):
        self.data = data
        self.end = len(data) * 8 if end is None else end
        self.position = start  # in bits

    @property
    def remaining(self) -> int:
        """Bits left before the end of the readable region."""
        return self.end - self.position

    @property
    def byte_position(self) -> int:
        return self.position // 8

    def _require(self, bits: int, what: str) -> None:
        if bits > self.remaining:
            raise Truncated(
                f"Need {bits} bits for {what} at bit {self.position}, only {max(self.remaining, 0)} available"
            )

    def read(self, bits: int, what: str = "field") -> int:
        """Read an unsigned big-endian integer of ``bits`` bits."""
        if bits == 0:
            return 0
        self._require(bits, what)
        first = self.position // 8
        last = (self.position + bits - 1) // 8
        chunk = int.from_bytes(self.data[first:last + 1], "big")
        trailing = (last + 1) * 8 - (self.position + bits)
        self.position += bits
        return (chunk >> trailing) & ((1 << bits) - 1)

    def flag(self, what: str = "flag") -> bool:
        return bool(self.read(1, what))

    def skip(self, bits: int, what: str = "reserved") -> None:
        self._require(bits, what)
        self.position += bits

    def read_bytes(self, count: int, what: str = "bytes") -> bytes:
        """Read ``count`` whole bytes; the reader must be byte aligned."""
        if self.position % 8:
            raise ValueError("read_bytes on an unaligned reader")
        self._require(count * 8, what)
        start = self.position // 8
        self.position += count * 8
        return bytes(self.data[start:start + count])

    def sub_reader(self, count: int, what: str = "region") -> "BitReader":
        """
        Split off a reader bounded to the next ``count`` bytes.

        This reader skips past the region.
        """
        self._require(count * 8, what)
        reader = BitReader(self.data, self.position, self.position + count * 8)
        self.position += count * 8
        return reader


def encode_pts(value: int) -> bytes:
    """
    Pack a 33-bit PTS into the 5-byte splice_time layout.

    The first bit is time_specified_flag (1) followed by six reserved bits
    set to 1.

    Example:
        >>> encode_pts(900000).hex().upper()
        'FE000DBBA0'
    """
    return ((0x7F << 33) | (value & PTS_MASK)).to_bytes(5, "big")
