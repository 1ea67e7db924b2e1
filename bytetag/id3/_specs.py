# Copyright (C) 2005  Michael Urman
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

from enum import IntEnum

from bytetag._util import decode_terminated

from ._util import ID3JunkFrameError


class PictureType(IntEnum):
    """Enumeration of image types defined by the ID3 standard for the APIC
    frame, but also reused in FLAC/VorbisComment.
    """

    OTHER = 0
    """Other"""

    FILE_ICON = 1
    """32x32 pixels 'file icon' (PNG only)"""

    OTHER_FILE_ICON = 2
    """Other file icon"""

    COVER_FRONT = 3
    """Cover (front)"""

    COVER_BACK = 4
    """Cover (back)"""

    LEAFLET_PAGE = 5
    """Leaflet page"""

    MEDIA = 6
    """Media (e.g. label side of CD)"""

    LEAD_ARTIST = 7
    """Lead artist/lead performer/soloist"""

    ARTIST = 8
    """Artist/performer"""

    CONDUCTOR = 9
    """Conductor"""

    BAND = 10
    """Band/Orchestra"""

    COMPOSER = 11
    """Composer"""

    LYRICIST = 12
    """Lyricist/text writer"""

    RECORDING_LOCATION = 13
    """Recording Location"""

    DURING_RECORDING = 14
    """During recording"""

    DURING_PERFORMANCE = 15
    """During performance"""

    SCREEN_CAPTURE = 16
    """Movie/video screen capture"""

    FISH = 17
    """A bright colored fish"""

    ILLUSTRATION = 18
    """Illustration"""

    BAND_LOGOTYPE = 19
    """Band/artist logotype"""

    PUBLISHER_LOGOTYPE = 20
    """Publisher/Studio logotype"""


class Encoding(IntEnum):
    """Text Encoding"""

    LATIN1 = 0
    """ISO-8859-1"""

    UTF16 = 1
    """UTF-16 with BOM"""

    UTF16BE = 2
    """UTF-16BE without BOM"""

    UTF8 = 3
    """UTF-8"""

    @property
    def codec(self) -> str:
        return _CODECS[self]

    @property
    def terminator(self) -> bytes:
        if self in (Encoding.UTF16, Encoding.UTF16BE):
            return b"\x00\x00"
        return b"\x00"


_CODECS = {
    Encoding.LATIN1: "latin-1",
    Encoding.UTF16: "utf-16",
    Encoding.UTF16BE: "utf-16-be",
    Encoding.UTF8: "utf-8",
}


def read_encoding(data: bytes) -> tuple[Encoding, bytes]:
    """Reads the leading encoding byte.

    Raises ID3JunkFrameError
    """

    if not data:
        raise ID3JunkFrameError("missing encoding")
    try:
        return Encoding(data[0]), data[1:]
    except ValueError:
        raise ID3JunkFrameError("invalid encoding %r" % data[0])


def decode_text(encoding: Encoding, data: bytes) -> list[str]:
    """Decodes a text payload into its NUL separated values.

    Trailing terminators are dropped, an empty payload gives no values.

    Raises ID3JunkFrameError
    """

    values = []
    while data:
        try:
            value, data = decode_terminated(data, encoding.codec,
                                            strict=False)
        except UnicodeError as e:
            raise ID3JunkFrameError(e) from e
        values.append(value)
    return values


def read_terminated(encoding: Encoding, data: bytes) -> tuple[str, bytes]:
    """Reads one terminated string and returns it with the remaining
    data. A missing terminator consumes all data.

    Raises ID3JunkFrameError
    """

    try:
        return decode_terminated(data, encoding.codec, strict=False)
    except UnicodeError as e:
        raise ID3JunkFrameError(e) from e


def encode_text(encoding: Encoding, value: str) -> bytes:
    return value.encode(encoding.codec)
