"""
Decode a single SCTE-35 cue.

Accepts base64 or 0x-prefixed hex, as found in playlist tags.
"""

import sys

from hlsprobe import DecodeError, decode, decode_text
from hlsprobe.scte35 import classify, describe


def main():
    text = sys.argv[1] if len(sys.argv) > 1 else "/DAvAAAAAAAA///wFAVIAACPf+/+c2nALv4AUsz1AAAAAAAKAAhDVUVJAAABNWLbowo="

    try:
        info = decode(decode_text(text))
    except DecodeError as e:
        print(f"Error decoding cue: {e}")
        sys.exit(1)

    print(describe(info))
    print(f"Classification: {classify(info).value}")
    print(f"Command: {info.command_name} (0x{info.splice_command_type:02X})")
    print(f"PTS adjustment: {info.pts_adjustment}")
    for descriptor in info.descriptors:
        print(f"Descriptor: {descriptor}")


if __name__ == "__main__":
    main()
