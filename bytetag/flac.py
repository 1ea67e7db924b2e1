# FLAC comment support for bytetag.
# Copyright 2005 Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Read and write FLAC Vorbis comments and pictures.

Comment and picture blocks are replaced on write, every other block
except padding is kept in place. STREAMINFO is never removed.

Read more about FLAC at http://flac.sourceforge.net.

FLAC supports arbitrary metadata blocks. The two most interesting ones
are the FLAC stream information block, and the Vorbis comment block;
these are also the only ones bytetag needs to understand besides
pictures.
"""

from __future__ import annotations

import logging

from bytetag import _vorbis
from bytetag._file import FileType
from bytetag._picture import PictureBlock, error as PictureError
from bytetag._tags import Metadata, ParseFilter
from bytetag._util import BytetagError, MalformedContainer, as_bytes, cdata
from bytetag.id3 import tag_span

logger = logging.getLogger(__name__)

STREAMINFO = 0
PADDING = 1
VORBIS_COMMENT = 4
PICTURE = 6


class error(BytetagError):
    pass


class FLACNoHeaderError(error, MalformedContainer):
    pass


class FLACBlockError(error, MalformedContainer):
    """A metadata block overruns the data or is out of place"""


class MetadataBlock:
    """A generic block of FLAC metadata.

    Attributes:
        code (`int`): the block type
        data (`bytes` or `memoryview`): the block body, for parsed
            blocks a view into the source buffer
        last (`bool`): if the last-block flag was set
        offset (`int` or `None`): offset of the block header in the
            source buffer
    """

    def __init__(self, code: int, data=b"", last: bool = False,
                 offset: int | None = None):
        self.code = code
        self.data = data
        self.last = last
        self.offset = offset

    @property
    def size(self) -> int:
        """Size of the block including its 4 byte header"""

        return 4 + len(self.data)

    def write(self) -> bytes:
        return bytes(self.data)

    def render(self, last: bool = False) -> bytes:
        """The block body with its 4 byte header.

        Raises FLACBlockError if the body doesn't fit the 24 bit size.
        """

        datum = self.write()
        if len(datum) >= 1 << 24:
            raise FLACBlockError(
                "block of %d bytes is too large" % len(datum))
        code = self.code | 0x80 if last else self.code
        return bytes([code]) + cdata.to_uint24_be(len(datum)) + datum

    def __repr__(self):
        return "<%s code=%d, %d bytes%s>" % (
            type(self).__name__, self.code, len(self.data),
            ", last" if self.last else "")

    @staticmethod
    def writeblocks(blocks: list[MetadataBlock]) -> bytes:
        """Render metadata blocks as a byte string.

        Only the final block gets the last-block flag.
        """

        return b"".join(block.render(i == len(blocks) - 1)
                        for i, block in enumerate(blocks))


def find_header(data: bytes) -> int:
    """Offset of the ``fLaC`` signature, skipping a leading ID3v2 tag.

    Returns -1 if there is no signature there.
    """

    offset = tag_span(data)
    if data[offset:offset + 4] != b"fLaC":
        return -1
    return offset


def parse_blocks(data: bytes, offset: int,
                 strict: bool = False) -> tuple[list[MetadataBlock], int]:
    """Walk the metadata blocks starting at `offset` (right after the
    signature).

    Returns the blocks and the offset of the first byte after the last
    block. Parsing stops at the block flagged last. With `strict` a
    block overrunning the data or a chain without a last block raises
    FLACBlockError, otherwise the blocks read so far are returned.
    """

    view = memoryview(data)
    blocks: list[MetadataBlock] = []
    while True:
        if offset + 4 > len(data):
            if strict:
                raise FLACBlockError("no last metadata block")
            logger.debug("metadata blocks end without a last block")
            break
        header = data[offset]
        size = cdata.uint24_be_from(data, offset + 1)
        start = offset + 4
        if start + size > len(data):
            if strict:
                raise FLACBlockError(
                    "block at 0x%x claims %d bytes, only %d available" % (
                        offset, size, len(data) - start))
            logger.debug("truncated metadata block at 0x%x", offset)
            break
        last = bool(header & 0x80)
        blocks.append(MetadataBlock(header & 0x7F, view[start:start + size],
                                    last, offset))
        offset = start + size
        if last:
            break
    return blocks, offset


def decode_blocks(blocks: list[MetadataBlock],
                  filter: ParseFilter) -> Metadata:
    """Build Metadata from FLAC metadata blocks.

    The first comment block is used, pictures come from picture blocks
    with the comment as fallback.
    """

    tags: dict[str, list[str]] = {}
    pictures = []
    comment_seen = False
    for block in blocks:
        if block.code == VORBIS_COMMENT and not comment_seen:
            comment_seen = True
            tags = _vorbis.VCommentDict(block.data).as_dict()
        elif block.code == PICTURE and filter.pictures:
            try:
                pictures.append(PictureBlock(block.data).to_picture())
            except PictureError as e:
                logger.debug("skipping invalid picture block: %s", e)
    return _vorbis.to_metadata(tags, pictures, filter)


def encode_blocks(metadata: Metadata, vendor: str | None = None
                  ) -> list[MetadataBlock]:
    """The comment block and, if there is a picture, the picture block
    for `metadata`.
    """

    comment = _vorbis.from_metadata(metadata, vendor, pictures=False)
    blocks = [MetadataBlock(VORBIS_COMMENT, comment.write())]
    if metadata.picture is not None:
        picture = PictureBlock.from_picture(metadata.picture)
        blocks.append(MetadataBlock(PICTURE, picture.write()))
    return blocks


class FLAC(FileType):
    """Native FLAC with Vorbis comment and picture blocks.

    A leading ID3v2 tag is skipped on read and kept on write.
    """

    @staticmethod
    def score(data: bytes) -> int:
        return int(find_header(data) != -1)

    @classmethod
    def _load(cls, data: bytes):
        offset = find_header(data)
        if offset == -1:
            raise FLACNoHeaderError("not a FLAC file")
        blocks, end = parse_blocks(data, offset + 4, strict=True)
        if not blocks or blocks[0].code != STREAMINFO:
            raise FLACBlockError("STREAMINFO is not the first block")
        return offset, blocks, end

    @classmethod
    def read(cls, data, filter=ParseFilter.ALL):
        data = as_bytes(data)
        offset = find_header(data)
        if offset == -1:
            return filter.build()
        blocks = parse_blocks(data, offset + 4)[0]
        return decode_blocks(blocks, filter)

    @classmethod
    def write(cls, data, metadata, vendor=None):
        """Raises FLACNoHeaderError or FLACBlockError"""

        data = as_bytes(data)
        offset, blocks, end = cls._load(data)

        kept = [b for b in blocks[1:]
                if b.code not in (PADDING, VORBIS_COMMENT, PICTURE)]
        new_blocks = [blocks[0]] + kept + encode_blocks(metadata, vendor)
        return b"".join([data[:offset + 4],
                         MetadataBlock.writeblocks(new_blocks),
                         data[end:]])

    @classmethod
    def strip(cls, data):
        """Remove all metadata blocks but STREAMINFO and a leading
        ID3v2 tag.

        Raises FLACNoHeaderError or FLACBlockError
        """

        data = as_bytes(data)
        offset, blocks, end = cls._load(data)
        return b"".join([b"fLaC", MetadataBlock.writeblocks(blocks[:1]),
                         data[end:]])
