# Copyright (C) 2017  Borewit
# Copyright (C) 2019  Philipp Wolfer
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Resource Interchange File Format (RIFF)."""

from __future__ import annotations

import logging
import struct

from bytetag._util import BytetagError, MalformedContainer

logger = logging.getLogger(__name__)


class error(BytetagError):
    pass


class InvalidChunk(error, MalformedContainer):
    pass


def is_valid_chunk_id(id: str) -> bool:
    """Check if argument id is valid FOURCC type."""

    if len(id) < 3 or len(id) > 4:
        return False

    for c in id:
        if c < '!' or c > '~':
            return False

    return True


class RiffChunk:
    """Generic RIFF chunk.

    Attributes:
        id (`str`): the FOURCC with trailing spaces removed
        data_size (`int`): the declared size of the chunk data
        offset (`int`): offset of the chunk header in the buffer
        data_offset (`int`): offset of the chunk data
        size (`int`): header, data and padding byte; may reach past the
            end of the buffer for truncated chunks
    """

    # Chunk headers are 8 bytes long (4 for ID and 4 for the size)
    HEADER_SIZE = 8

    @classmethod
    def parse(cls, data: bytes, offset: int,
              parent_chunk: ListRiffChunk | None = None) -> RiffChunk:
        """Raises InvalidChunk"""

        header = data[offset:offset + cls.HEADER_SIZE]
        if len(header) < cls.HEADER_SIZE:
            raise InvalidChunk('Header size < %i' % cls.HEADER_SIZE)

        id, data_size = struct.unpack('<4sI', header)
        try:
            id = id.decode('ascii').rstrip()
        except UnicodeDecodeError as e:
            raise InvalidChunk(e) from e

        if not is_valid_chunk_id(id):
            raise InvalidChunk('Invalid chunk ID %s' % id)

        return cls.get_class(id)(data, id, data_size, offset, parent_chunk)

    @classmethod
    def get_class(cls, id: str) -> type[RiffChunk]:
        if id in ('LIST', 'RIFF'):
            return ListRiffChunk
        else:
            return cls

    def __init__(self, data: bytes, id: str, data_size: int, offset: int,
                 parent_chunk: ListRiffChunk | None):
        self._data = data
        self.id = id
        self.data_size = data_size
        self.parent_chunk = parent_chunk
        self.offset = offset
        self.data_offset = offset + self.HEADER_SIZE
        # Consider the padding byte for the total size of this chunk
        self.size = self.HEADER_SIZE + self.data_size + self.padding()

    def __repr__(self):
        return "<%s %r at 0x%x, %d bytes>" % (
            type(self).__name__, self.id, self.offset, self.data_size)

    @property
    def truncated(self) -> bool:
        """If the chunk data reaches past the end of the buffer"""

        return self.data_offset + self.data_size > len(self._data)

    def read(self) -> bytes:
        """Read the chunks data, clamped to the buffer"""

        return self._data[self.data_offset:self.data_offset + self.data_size]

    def raw(self) -> bytes:
        """The complete chunk, with the padding byte added if the buffer
        ends without it.

        Raises InvalidChunk if the chunk data is truncated.
        """

        if self.truncated:
            raise InvalidChunk(
                "%r chunk claims %d bytes, only %d available" % (
                    self.id, self.data_size,
                    len(self._data) - self.data_offset))
        return (self._data[self.offset:self.offset + self.size]
                .ljust(self.size, b"\x00"))

    def padding(self) -> int:
        """Returns the number of padding bytes (0 or 1).
        RIFF chunks are required to be a even number in total length. If
        data_size is odd a padding byte will be added at the end.
        """
        return self.data_size % 2

    @staticmethod
    def render(id: str, data: bytes) -> bytes:
        """A new chunk with the given FOURCC and data, padded"""

        if not is_valid_chunk_id(id):
            raise KeyError("Invalid RIFF key.")

        return b"".join([
            struct.pack('<4sI', id.ljust(4).encode('ascii'), len(data)),
            data,
            b"\x00" * (len(data) % 2),
        ])


class ListRiffChunk(RiffChunk):
    """A RIFF chunk containing other chunks.
    This is either a 'LIST' or 'RIFF'
    """

    MIN_DATA_SIZE = 4

    def __init__(self, data, id, data_size, offset, parent_chunk):
        if id not in ('RIFF', 'LIST'):
            raise InvalidChunk('Expected RIFF or LIST chunk, got %s' % id)

        super().__init__(data, id, data_size, offset, parent_chunk)

        # Lists always store an addtional identifier as 4 bytes
        if data_size < self.MIN_DATA_SIZE:
            raise InvalidChunk('List data size < %i' % self.MIN_DATA_SIZE)

        # Read the list name (e.g. WAVE for RIFF chunks, or INFO for LIST)
        name = data[self.data_offset:self.data_offset + 4]
        try:
            self.name = name.decode('ascii')
        except UnicodeDecodeError as e:
            raise InvalidChunk(e) from e
        if len(self.name) != 4:
            raise InvalidChunk('List name truncated')

        self.__subchunks: list[RiffChunk] | None = None

    def subchunks(self) -> list[RiffChunk]:
        """Returns a list of all subchunks.
        The list is lazily loaded on first access.

        Parsing stops at the first invalid chunk header or at the end of
        the buffer.
        """

        if self.__subchunks is None:
            self.__subchunks = []
            end = min(self.data_offset + self.data_size, len(self._data))
            next_offset = self.data_offset + 4
            while next_offset < end:
                try:
                    chunk = RiffChunk.parse(self._data, next_offset, self)
                except InvalidChunk as e:
                    logger.debug("stopping at 0x%x: %s", next_offset, e)
                    break
                self.__subchunks.append(chunk)

                # Calculate the location of the next chunk
                next_offset = chunk.offset + chunk.size
        return self.__subchunks


class RiffFile:
    """Representation of a RIFF file held in memory

        Ref: http://www.johnloomis.org/cpe102/asgn/asgn1/riff.html
    """

    def __init__(self, data: bytes):
        # RIFF Files always start with the RIFF chunk
        self.root = RiffChunk.parse(data, 0)

        if self.root.id != 'RIFF':
            raise InvalidChunk("Root chunk must be a RIFF chunk, got %s"
                               % self.root.id)

        self.file_type = self.root.name

    def __contains__(self, id_: str) -> bool:
        """Check if the RIFF file contains a specific chunk"""

        try:
            self[id_]
            return True
        except KeyError:
            return False

    def __getitem__(self, id_: str) -> RiffChunk:
        """Get the first chunk with the given id"""

        for chunk in self.root.subchunks():
            if chunk.id == id_:
                return chunk
        raise KeyError("No %r chunk found" % id_)

    def chunks(self) -> list[RiffChunk]:
        return self.root.subchunks()

    def rebuild(self, chunks: list[bytes]) -> bytes:
        """A new file with the given rendered chunks under the root.

        Bytes after the end of the root chunk are kept. Raises InvalidChunk
        if parsing stopped before the end of the root chunk, as the
        unreadable rest couldn't be carried over.
        """

        data = self.root._data
        subchunks = self.root.subchunks()
        if subchunks:
            parsed = subchunks[-1].offset + subchunks[-1].size
        else:
            parsed = self.root.data_offset + 4
        if parsed < min(self.root.data_offset + self.root.data_size,
                        len(data)):
            raise InvalidChunk("unreadable chunk at 0x%x" % parsed)

        body = b"".join([self.root.name.encode("ascii")] + chunks)
        end = self.root.data_offset + self.root.data_size
        return b"".join([
            struct.pack('<4sI', b"RIFF", len(body)),
            body,
            data[end + self.root.padding():],
        ])
