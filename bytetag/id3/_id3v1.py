# Copyright (C) 2005  Michael Urman
#               2006  Lukas Lalinsky
#               2013  Christoph Reiter
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

from bytetag._constants import GENRES


def find_id3v1(data: bytes) -> bytes | None:
    """Returns the 128 byte ID3v1 tag at the end of `data` or None"""

    if len(data) < 128:
        return None
    tag = data[-128:]
    if tag[:3] != b"TAG":
        return None
    return tag


def ParseID3v1(data: bytes) -> dict[str, str]:
    """Parse an ID3v1 tag, returning a dict of field names to values.

    Keys are the Metadata field names ``title``, ``artist``, ``album``,
    ``date``, ``comment``, ``track_number`` and ``genre``. Empty fields
    are left out. Returns an empty dict if `data` isn't an ID3v1 tag.
    """

    if len(data) != 128 or data[:3] != b"TAG":
        return {}

    def fix(data: bytes) -> str:
        return data.split(b"\x00")[0].strip().decode("latin1")

    title, artist, album, year, comment = map(
        fix, [data[3:33], data[33:63], data[63:93], data[93:97],
              data[97:125]])

    frames = {}
    if title:
        frames["title"] = title
    if artist:
        frames["artist"] = artist
    if album:
        frames["album"] = album
    if year:
        frames["date"] = year

    # ID3v1.1 stores the track in the last two comment bytes
    if data[125] == 0 and data[126] != 0:
        frames["track_number"] = str(data[126])
    else:
        comment = fix(data[97:127])
    if comment:
        frames["comment"] = comment

    genre = data[127]
    if genre < len(GENRES):
        frames["genre"] = GENRES[genre]

    return frames
