# Copyright (C) 2006  Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Read and write Ogg FLAC comments.

This module handles FLAC files wrapped in an Ogg bitstream. The first
FLAC stream found is used. For 'naked' FLACs, see bytetag.flac.

This module is based off the specification at
http://flac.sourceforge.net/ogg_mapping.html.
"""

from __future__ import annotations

import logging
import struct

from bytetag._file import FileType
from bytetag._tags import ParseFilter
from bytetag._util import MalformedContainer, as_bytes, cdata
from bytetag._vorbis import VComment
from bytetag.flac import (
    PADDING,
    PICTURE,
    VORBIS_COMMENT,
    MetadataBlock,
    decode_blocks,
    encode_blocks,
)
from bytetag.ogg import (
    OggPage,
    error as OggError,
    header_pages,
    parse_pages,
    replace_packets,
    stream_pages,
)

__all__ = ["OggFLAC"]

logger = logging.getLogger(__name__)


class error(OggError):
    pass


class OggFLACHeaderError(error, MalformedContainer):
    pass


def _is_mapping_packet(packet) -> bool:
    return bytes(packet[:5]) == b"\x7FFLAC"


def _find_header_page(pages: list[OggPage]) -> OggPage:
    """Raises OggFLACHeaderError"""

    for page in pages:
        if page.packets and _is_mapping_packet(page.packets[0]):
            break
    else:
        raise OggFLACHeaderError("Couldn't find header")

    # required by the mapping
    if not page.complete or not page.first:
        raise OggFLACHeaderError("Invalid header")

    return page


def _is_block_packet(packet) -> bool:
    return bool(packet) and 0x01 <= (packet[0] & 0x7F) <= 0x7E


def _flac_pages(stream: list[OggPage], count: int) -> list[OggPage]:
    """The pages after the mapping page which hold the metadata blocks.

    A `count` of 0 means the number of header packets is unknown, in
    which case pages are collected until one starts with something that
    isn't a metadata block.
    """

    if count:
        return header_pages(stream[1:], count)

    pages = []
    for page in stream[1:]:
        if not page.continued:
            if not page.packets or not _is_block_packet(page.packets[0]):
                break
        pages.append(page)

    if not pages or not pages[-1].complete:
        raise error("Invalid metadata ogg pages")
    return pages


def _split_blocks(packets: list[bytes], count: int
                  ) -> tuple[list[MetadataBlock], list[bytes]]:
    """Split the packets of the header pages into metadata blocks and
    the packets following them.
    """

    blocks = []
    for i, packet in enumerate(packets):
        if (count and i >= count) or not _is_block_packet(packet) \
                or len(packet) < 4:
            return blocks, packets[i:]
        size = cdata.uint24_be_from(packet, 1)
        body = packet[4:4 + size]
        if len(body) < size:
            logger.debug("metadata block packet %d is truncated", i)
        blocks.append(MetadataBlock(packet[0] & 0x7F, body,
                                    bool(packet[0] & 0x80)))
        if blocks[-1].last:
            return blocks, packets[i + 1:]
    return blocks, []


def _header_count(page: OggPage) -> int:
    try:
        major, minor, count, flac = struct.unpack_from(
            ">BBH4s", page.packets[0], 5)
    except struct.error as e:
        raise OggFLACHeaderError("mapping packet too short") from e
    if flac != b"fLaC":
        raise OggFLACHeaderError("invalid FLAC marker (%r)" % flac)
    if (major, minor) != (1, 0):
        raise OggFLACHeaderError(
            "unknown mapping version: %d.%d" % (major, minor))
    return count


class OggFLAC(FileType):
    """FLAC metadata blocks in the header packets of an Ogg stream."""

    @staticmethod
    def score(data: bytes) -> int:
        if data[:4] != b"OggS":
            return 0
        try:
            page = OggPage(data, 0)
        except OggError:
            return 0
        return int(bool(page.packets) and _is_mapping_packet(page.packets[0]))

    @classmethod
    def read(cls, data, filter=ParseFilter.ALL):
        data = as_bytes(data)
        pages = parse_pages(data)
        try:
            header = _find_header_page(pages)
            count = _header_count(header)
            stream = stream_pages(pages, header.serial)
            flac_pages = _flac_pages(stream, count)
            packets = OggPage.to_packets(flac_pages)
        except (OggError, ValueError) as e:
            logger.debug("no usable FLAC header packets: %s", e)
            return filter.build()
        return decode_blocks(_split_blocks(packets, count)[0], filter)

    @classmethod
    def _rewrite(cls, data: bytes, make_blocks) -> bytes:
        pages = parse_pages(data)
        header = _find_header_page(pages)
        count = _header_count(header)
        stream = stream_pages(pages, header.serial)
        try:
            old_pages = _flac_pages(stream, count)
            packets = OggPage.to_packets(old_pages, strict=True)
        except (OggError, ValueError) as e:
            raise OggFLACHeaderError(e) from e

        blocks, rest = _split_blocks(packets, count)
        new_blocks = make_blocks(blocks)
        new_packets = [block.render(i == len(new_blocks) - 1)
                       for i, block in enumerate(new_blocks)]

        data = replace_packets(data, old_pages, new_packets + rest)

        if count and count != len(new_packets):
            mapping = bytearray(header.packets[0])
            struct.pack_into(">H", mapping, 7, len(new_packets))
            new_header = OggPage()
            new_header.packets = [bytes(mapping)] + \
                [bytes(p) for p in header.packets[1:]]
            data = OggPage.replace(data, [header], [new_header])
        return data

    @classmethod
    def write(cls, data, metadata, vendor=None):
        """Raises OggFLACHeaderError"""

        def make_blocks(blocks):
            new = encode_blocks(metadata, vendor)
            kept = [b for b in blocks
                    if b.code not in (PADDING, VORBIS_COMMENT, PICTURE)]
            # the comment has to come first
            return new[:1] + kept + new[1:]

        return cls._rewrite(as_bytes(data), make_blocks)

    @classmethod
    def strip(cls, data):
        """Replace the comment with an empty one and remove all other
        metadata blocks.

        Raises OggFLACHeaderError
        """

        def make_blocks(blocks):
            return [MetadataBlock(VORBIS_COMMENT, VComment().write())]

        return cls._rewrite(as_bytes(data), make_blocks)

