# Copyright (C) 2014 Christoph Reiter
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""
* ADTS - Audio Data Transport Stream
"""

from __future__ import annotations

from bytetag._file import FileType
from bytetag._tags import ParseFilter
from bytetag._util import as_bytes
from bytetag.id3 import find_id3v1, replace_tag, strip_tag, tag_span
from bytetag.mp3 import read_id3

__all__ = ["AAC"]


def _is_adts_sync(data: bytes, offset: int) -> bool:
    if offset < 0 or offset + 2 > len(data):
        return False
    return data[offset] == 0xFF and (data[offset + 1] & 0xF0) == 0xF0


class AAC(FileType):
    """Raw AAC in an ADTS stream, tagged with ID3v2 and/or ID3v1.

    ID3v1 fields are exposed in the raw tags under ``ID3v1:<field>``.
    """

    @staticmethod
    def score(data: bytes) -> int:
        if len(data) < 10:
            return 0

        offset = tag_span(data)
        if offset and offset >= len(data):
            return 0
        if _is_adts_sync(data, offset):
            return 1

        # an ADTS frame right before a trailing ID3v1 tag
        if find_id3v1(data) is not None:
            if _is_adts_sync(data, len(data) - 130):
                return 1
        return 0

    @classmethod
    def read(cls, data, filter=ParseFilter.ALL):
        return read_id3(as_bytes(data), filter, raw_v1=True)

    @classmethod
    def write(cls, data, metadata):
        return replace_tag(as_bytes(data), metadata)

    @classmethod
    def strip(cls, data):
        return strip_tag(as_bytes(data))
