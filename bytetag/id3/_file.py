# Copyright (C) 2005  Michael Urman
#               2006  Lukas Lalinsky
#               2013  Christoph Reiter
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Locating, replacing and removing the ID3v2 tag at the start of a
buffer.
"""

from __future__ import annotations

from bytetag._tags import Metadata

from ._tags import ID3Header, ID3Tags
from ._util import ID3NoHeaderError, ID3TagSizeError, error


def has_id3v2(data: bytes, offset: int = 0) -> bool:
    """True if a supported ID3v2 tag header starts at `offset`"""

    try:
        ID3Header(data, offset)
    except (error, ValueError):
        return False
    return True


def tag_span(data: bytes, offset: int = 0, strict: bool = False) -> int:
    """The number of bytes of the ID3v2 tag starting at `offset`, including
    a footer, or 0 if there is no tag there.

    With `strict` a tag extending past the end of the data raises
    ID3TagSizeError, otherwise the span is clamped.
    """

    try:
        header = ID3Header(data, offset)
    except ID3NoHeaderError:
        return 0
    except error as e:
        if data[offset:offset + 3] == b"ID3":
            if strict:
                raise ID3TagSizeError(e) from e
        return 0

    span = header.span
    if offset + span > len(data):
        if strict:
            raise ID3TagSizeError(
                "tag claims %d bytes, only %d available" % (
                    span, len(data) - offset))
        span = len(data) - offset
    return span


def replace_tag(data: bytes, metadata: Metadata) -> bytes:
    """Replace (or add) the leading ID3v2 tag with one for `metadata`.

    Everything after the old tag, including an ID3v1 tag, is kept as is.

    Raises ID3TagSizeError if the old tag claims to be larger than `data`.
    """

    span = tag_span(data, strict=True)
    return ID3Tags.encode(metadata) + data[span:]


def strip_tag(data: bytes) -> bytes:
    """Remove the leading ID3v2 tag, if any.

    Raises ID3TagSizeError if the tag claims to be larger than `data`.
    """

    span = tag_span(data, strict=True)
    return data[span:]
