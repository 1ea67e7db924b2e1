# Copyright (C) 2012, 2013  Christoph Reiter
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Read and write Ogg Opus comments.

This module handles Opus files wrapped in an Ogg bitstream. The
first Opus stream found is used.

Based on http://tools.ietf.org/html/draft-terriberry-oggopus-01
"""

from __future__ import annotations

import logging

from bytetag import _vorbis
from bytetag._file import FileType
from bytetag._tags import ParseFilter
from bytetag._util import MalformedContainer, as_bytes
from bytetag.ogg import (
    OggPage,
    error as OggError,
    header_pages,
    parse_pages,
    replace_packets,
    stream_pages,
)

__all__ = ["OggOpus"]

logger = logging.getLogger(__name__)


class error(OggError):
    pass


class OggOpusHeaderError(error, MalformedContainer):
    pass


def _get_comment_pages(data: bytes) -> list[OggPage]:
    """The pages holding the OpusTags packet of the first Opus stream.

    Raises OggOpusHeaderError
    """

    pages = parse_pages(data)
    for page in pages:
        if page.packets and bytes(page.packets[0][:8]) == b"OpusHead":
            break
    else:
        raise OggOpusHeaderError("no OpusHead packet")

    head = page.packets[0]
    # only the higher 4 bits change on incompatible changes
    if len(head) < 9 or head[8] >> 4 != 0:
        raise OggOpusHeaderError("OpusHead version unsupported")

    following = [p for p in stream_pages(pages, page.serial)
                 if p.offset > page.offset]
    try:
        comment_pages = header_pages(following, 1)
    except OggError as e:
        raise OggOpusHeaderError(e) from e

    if comment_pages[0].continued or \
            bytes(comment_pages[0].packets[0][:8]) != b"OpusTags":
        raise OggOpusHeaderError("no OpusTags packet after OpusHead")
    return comment_pages


class OpusTags(_vorbis.VCommentDict):
    """The Opus comment packet.

    Data following the comments is kept if the least significant bit of
    its first byte is set, otherwise it is padding and gets dropped.
    """

    def __init__(self, data=None, *args, **kwargs):
        self._pad_data = b""
        super().__init__(data, *args, **kwargs)

    def load(self, data, errors="replace"):
        data = bytes(data)
        if data[:8] != b"OpusTags":
            raise error("not an OpusTags packet")
        data = data[8:]
        super().load(data, errors)

        # in case the LSB of the first byte after v-comment is 1, preserve
        # the following data
        rest = data[self._size:] if self._size else b""
        if rest and rest[0] & 0x1:
            self._pad_data = rest

    def write(self) -> bytes:
        return b"OpusTags" + super().write() + self._pad_data


class OggOpus(FileType):
    """Vorbis comments in the OpusTags packet of an Ogg Opus stream."""

    @staticmethod
    def score(data: bytes) -> int:
        if data[:4] != b"OggS":
            return 0
        try:
            page = OggPage(data, 0)
        except OggError:
            return 0
        return int(bool(page.packets) and
                   bytes(page.packets[0][:8]) == b"OpusHead")

    @classmethod
    def read(cls, data, filter=ParseFilter.ALL):
        data = as_bytes(data)
        try:
            pages = _get_comment_pages(data)
            tags = OpusTags(OggPage.to_packets(pages)[0])
        except (OggError, ValueError) as e:
            logger.debug("no usable OpusTags packet: %s", e)
            return filter.build()
        return _vorbis.to_metadata(tags.as_dict(), filter=filter)

    @classmethod
    def _inject(cls, data: bytes, make_tags) -> bytes:
        old_pages = _get_comment_pages(data)
        packets = OggPage.to_packets(old_pages)
        try:
            old = OpusTags(packets[0])
        except error as e:
            raise OggOpusHeaderError(e) from e

        tags = make_tags()
        tags._pad_data = old._pad_data
        packets[0] = tags.write()
        return replace_packets(data, old_pages, packets)

    @classmethod
    def write(cls, data, metadata, vendor=None):
        """Raises OggOpusHeaderError"""

        def make_tags():
            comment = _vorbis.from_metadata(metadata, vendor)
            tags = OpusTags()
            tags.vendor = comment.vendor
            tags.extend(comment)
            return tags

        return cls._inject(as_bytes(data), make_tags)

    @classmethod
    def strip(cls, data):
        """Replace the comment packet with an empty one.

        Raises OggOpusHeaderError
        """

        return cls._inject(as_bytes(data), OpusTags)
