# Copyright (C) 2005  Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""The FLAC picture structure.

It is used as the body of a FLAC PICTURE metadata block and, base64
encoded, as the METADATA_BLOCK_PICTURE Vorbis comment.

https://xiph.org/flac/format.html#metadata_block_picture
"""

from __future__ import annotations

import struct

from bytetag._tags import Picture
from bytetag._util import BytetagError


class error(BytetagError):
    pass


class PictureBlock:
    """Read and write FLAC embed pictures.

    Attributes:
        type (`int`): picture type (same as the ID3 APIC types)
        mime (`str`): MIME type of the picture
        desc (`str`): picture's description
        width (`int`): width in pixels
        height (`int`): height in pixels
        depth (`int`): color depth in bits-per-pixel
        colors (`int`): number of colors for indexed palettes (like GIF),
            0 for non-indexed
        data (`bytes`): picture data

    Size fields of a written block are left at 0, which means unknown.
    """

    code = 6

    def __init__(self, data=None):
        self.type = 3
        self.mime = ""
        self.desc = ""
        self.width = 0
        self.height = 0
        self.depth = 0
        self.colors = 0
        self.data = b""
        if data is not None:
            self.load(data)

    def __eq__(self, other):
        if not isinstance(other, PictureBlock):
            return NotImplemented
        return (self.type == other.type and
                self.mime == other.mime and
                self.desc == other.desc and
                self.width == other.width and
                self.height == other.height and
                self.depth == other.depth and
                self.colors == other.colors and
                self.data == other.data)

    __hash__ = object.__hash__

    def load(self, data) -> None:
        """Raises error if the structure is truncated or the text fields
        can't be decoded.
        """

        view = memoryview(data)
        pos = 0

        def read(size):
            nonlocal pos
            if size > len(view) - pos:
                raise error("picture block truncated at %d" % pos)
            chunk = view[pos:pos + size]
            pos += size
            return chunk

        try:
            self.type, length = struct.unpack(">2I", read(8))
            self.mime = bytes(read(length)).decode("ascii", "replace")
            length, = struct.unpack(">I", read(4))
            self.desc = bytes(read(length)).decode("utf-8")
            (self.width, self.height, self.depth,
             self.colors, length) = struct.unpack(">5I", read(20))
        except UnicodeDecodeError as e:
            raise error(e) from e
        self.data = bytes(read(length))

    def write(self) -> bytes:
        mime = self.mime.encode("ascii")
        desc = self.desc.encode("utf-8")
        return b"".join([
            struct.pack(">2I", self.type, len(mime)),
            mime,
            struct.pack(">I", len(desc)),
            desc,
            struct.pack(">5I", self.width, self.height, self.depth,
                        self.colors, len(self.data)),
            self.data,
        ])

    @classmethod
    def from_picture(cls, picture: Picture) -> PictureBlock:
        block = cls()
        block.type = picture.type
        block.mime = picture.mime
        block.desc = picture.desc or ""
        block.data = picture.data
        return block

    def to_picture(self) -> Picture:
        return Picture(self.mime, self.data, self.desc or None, self.type)

    def __repr__(self):
        return "<%s '%s' (%d bytes)>" % (type(self).__name__, self.mime,
                                          len(self.data))
