# Copyright (C) 2006  Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""MPEG audio stream tags.

Tags are read from a leading ID3v2 tag, with an ID3v1 tag at the end of
the file filling in missing fields. Writing replaces the ID3v2 tag and
leaves everything else, including ID3v1, untouched.
"""

from __future__ import annotations

from bytetag._file import FileType
from bytetag._tags import Metadata, ParseFilter
from bytetag._util import as_bytes
from bytetag.id3 import (
    ID3Tags,
    ParseID3v1,
    find_id3v1,
    replace_tag,
    strip_tag,
    tag_span,
)

__all__ = ["MP3"]


def _has_frame_sync(data: bytes, end: int, check_layer: bool) -> bool:
    for i in range(min(end, len(data) - 1)):
        if data[i] == 0xFF and (data[i + 1] & 0xE0) == 0xE0:
            # layer 00 is reserved
            if not check_layer or (data[i + 1] >> 1) & 0x03:
                return True
    return False


def read_id3(data: bytes, filter: ParseFilter,
             raw_v1: bool = False) -> Metadata:
    """Decode a leading ID3v2 tag with ID3v1 fallback.

    If `raw_v1` is true the ID3v1 fields are added to the raw tags as
    ``ID3v1:<field>``.
    """

    tags = ID3Tags.decode(data, 0, filter) or ID3Tags()

    v1 = {}
    if filter.tags:
        tag = find_id3v1(data)
        if tag is not None:
            v1 = ParseID3v1(tag)

    if raw_v1 and v1:
        for key, value in v1.items():
            tags.frames.setdefault("ID3v1:%s" % key, []).append(value)

    return tags.to_metadata(filter, fallback=v1)


class MP3(FileType):
    """MPEG audio with ID3v2/ID3v1 tags"""

    @staticmethod
    def score(data: bytes) -> int:
        if data[:3] == b"ID3":
            # FLAC files can start with an ID3v2 tag as well
            span = tag_span(data)
            if span and data[span:span + 4] == b"fLaC":
                return 0
            return 2
        if _has_frame_sync(data, 16, True):
            return 1
        if len(data) > 128 and find_id3v1(data) is not None:
            if _has_frame_sync(data, min(4096, len(data) - 129), False):
                return 1
        return 0

    @classmethod
    def read(cls, data, filter=ParseFilter.ALL):
        return read_id3(as_bytes(data), filter)

    @classmethod
    def write(cls, data, metadata):
        return replace_tag(as_bytes(data), metadata)

    @classmethod
    def strip(cls, data):
        return strip_tag(as_bytes(data))
