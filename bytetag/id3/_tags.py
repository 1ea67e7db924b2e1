# Copyright (C) 2005  Michael Urman
#               Copyright 2016 Christoph Reiter
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

import logging
import struct

from bytetag._tags import Metadata, ParseFilter, Picture
from bytetag._util import (
    add_value,
    first_value,
    format_number_pair,
    parse_number_pair,
)

from ._frames import (
    V22_IDS,
    make_comment_frame,
    make_picture_frame,
    make_text_frame,
    read_comment_frame,
    read_picture_frame,
    read_text_frame,
    read_url_frame,
    read_user_text_frame,
    resolve_genre,
    unpack_frame_data,
)
from ._util import (
    BitPaddedInt,
    ID3EncryptionUnsupportedError,
    ID3JunkFrameError,
    ID3NoHeaderError,
    ID3UnsupportedVersionError,
    error,
    is_valid_frame_id,
    unsynch,
)

logger = logging.getLogger(__name__)


class ID3Header:
    """The 10 byte ID3v2 tag header and the optional extended header.

    Raises ID3NoHeaderError if `data` doesn't start with a tag header at
    `offset` and ID3UnsupportedVersionError for versions other than
    2.2, 2.3 and 2.4.
    """

    _V24 = (2, 4, 0)
    _V23 = (2, 3, 0)
    _V22 = (2, 2, 0)

    f_unsynch = property(lambda s: bool(s._flags & 0x80))
    f_extended = property(lambda s: bool(s._flags & 0x40))
    f_experimental = property(lambda s: bool(s._flags & 0x20))
    f_footer = property(lambda s: bool(s._flags & 0x10))

    def __init__(self, data: bytes, offset: int = 0):
        header = data[offset:offset + 10]
        if len(header) < 10:
            raise ID3NoHeaderError("%d bytes are too short for a tag header"
                                   % len(header))

        id3, vmaj, vrev, flags, size = struct.unpack('>3sBBB4s', header)
        self._flags = flags
        self.size = BitPaddedInt(size) + 10
        self.version = (2, vmaj, vrev)

        if id3 != b'ID3':
            raise ID3NoHeaderError("%r doesn't start an ID3 tag" % id3)

        if vmaj not in [2, 3, 4]:
            raise ID3UnsupportedVersionError(
                "ID3v2.%d not supported" % vmaj)

        if not BitPaddedInt.has_valid_padding(size):
            raise error("Header size not synchsafe")

        self.offset = offset
        self.extsize = 0
        if self.f_extended and self.version >= self._V23:
            extsize_data = data[offset + 10:offset + 14]
            if len(extsize_data) < 4:
                raise error("extended header truncated")
            if self.version >= self._V24:
                # the synchsafe size includes the size field itself
                self.extsize = BitPaddedInt(extsize_data)
            else:
                # v2.3 doesn't count the size field
                self.extsize = struct.unpack('>L', extsize_data)[0] + 4
            if self.extsize > self.size - 10:
                raise error("extended header larger than the tag")

    @property
    def span(self) -> int:
        """The number of bytes the whole tag occupies, footer included"""

        return self.size + (10 if self.f_footer else 0)

    def __repr__(self):
        return "<%s version=%r size=%d flags=0x%02x>" % (
            type(self).__name__, self.version, self.size, self._flags)


class ID3Tags:
    """The decoded frames of an ID3v2 tag.

    Attributes:
        version (`tuple`): the ID3 version, (2, 4, 0) for new tags
        frames (dict[str, list[str]]): text values by frame id; v2.2 ids
            are upgraded (``TT2`` is stored as ``TIT2``), user defined
            text frames use ``TXXX:<description>``
        pictures (list[Picture]): embedded pictures in file order

    Frames that can't be decoded are skipped, a frame whose size doesn't
    fit in the tag ends the frame loop. Nothing read here raises.
    """

    def __init__(self):
        self.version = ID3Header._V24
        self.frames: dict[str, list[str]] = {}
        self.pictures: list[Picture] = []

    @classmethod
    def decode(cls, data: bytes, offset: int = 0,
               filter: ParseFilter = ParseFilter.ALL) -> ID3Tags | None:
        """Decodes the tag at `offset`.

        Returns None if there is no valid tag header there.
        """

        try:
            header = ID3Header(data, offset)
        except error as e:
            logger.debug("no ID3v2 tag at %d: %s", offset, e)
            return None

        self = cls()
        self.version = header.version

        start = offset + 10 + header.extsize
        end = min(offset + header.size, len(data))
        body = data[start:end]
        if end < offset + header.size:
            logger.debug("ID3v2 tag truncated to %d bytes", len(body))

        if header.version < ID3Header._V24 and header.f_unsynch:
            try:
                body = unsynch.decode(body)
            except ValueError:
                pass

        self._read_frames(header, body, filter)
        return self

    def _read_frames(self, header: ID3Header, data: bytes,
                     filter: ParseFilter) -> None:
        if header.version >= ID3Header._V23:
            id_size, header_size = 4, 10
            bpi = _determine_bpi(data) if header.version >= \
                ID3Header._V24 else int
        else:
            id_size, header_size = 3, 6
            bpi = int

        pos = 0
        while len(data) - pos >= header_size:
            if data[pos] == 0:
                # padding
                break

            frame_id = data[pos:pos + id_size].decode("latin-1")
            if header_size == 10:
                size, flags = struct.unpack(
                    ">LH", data[pos + 4:pos + 10])
                size = bpi(size)
            else:
                size = struct.unpack(
                    ">L", b"\x00" + data[pos + 3:pos + 6])[0]
                flags = 0

            if not is_valid_frame_id(frame_id):
                logger.debug("invalid frame id %r, stopping", frame_id)
                break
            if size > len(data) - pos - header_size:
                logger.debug("frame %r overruns the tag, stopping", frame_id)
                break

            body = data[pos + header_size:pos + header_size + size]
            pos += header_size + size
            if size == 0:
                continue

            try:
                body = unpack_frame_data(
                    header.version[1], header.f_unsynch, flags, body)
                self._load_frame(frame_id, body, filter)
            except (ID3JunkFrameError, ID3EncryptionUnsupportedError) as e:
                logger.debug("skipping frame %r: %r", frame_id, e)

    def _load_frame(self, frame_id: str, data: bytes,
                    filter: ParseFilter) -> None:
        v22 = len(frame_id) == 3
        frame_id = V22_IDS.get(frame_id, frame_id)

        if frame_id == "APIC":
            if filter.pictures:
                self.pictures.append(read_picture_frame(data, v22=v22))
            return

        if not filter.tags:
            return

        if frame_id in ("COMM", "USLT"):
            add_value(self.frames, frame_id, read_comment_frame(data)[2])
        elif frame_id == "TXXX":
            desc, values = read_user_text_frame(data)
            for value in values:
                add_value(self.frames, "TXXX:%s" % desc, value)
        elif frame_id == "WXXX":
            desc, values = read_user_text_frame(data)
            for value in values:
                add_value(self.frames, "WXXX:%s" % desc, value)
        elif frame_id.startswith("T"):
            for value in read_text_frame(data):
                add_value(self.frames, frame_id, value)
        elif frame_id.startswith("W"):
            for value in read_url_frame(data):
                add_value(self.frames, frame_id, value)

    def to_metadata(self, filter: ParseFilter = ParseFilter.ALL,
                    fallback: dict[str, str] | None = None) -> Metadata:
        """Map the frames to a Metadata.

        `fallback` holds values by field name (as decoded from an ID3v1
        tag) used for fields the ID3v2 frames don't provide.
        """

        fallback = fallback or {}
        fields = {}

        for name, keys in _TEXT_FRAMES:
            value = first_value(self.frames, keys)
            if value is None:
                value = fallback.get(name)
            fields[name] = value

        genre = first_value(self.frames, ["TCON"])
        fields["genre"] = resolve_genre(genre) if genre is not None \
            else fallback.get("genre")

        track = first_value(self.frames, ["TRCK"])
        if track is None:
            track = fallback.get("track_number")
        fields["track_number"], fields["total_tracks"] = \
            parse_number_pair(track)
        fields["disc_number"], fields["total_discs"] = \
            parse_number_pair(first_value(self.frames, ["TPOS"]))

        return filter.build(
            picture=self.pictures[0] if self.pictures else None,
            raw_tags=self.frames, **fields)

    @staticmethod
    def encode(metadata: Metadata) -> bytes:
        """Build a complete ID3v2.4 tag for `metadata`.

        All text is UTF-8, comments and lyrics use the language 'eng'.
        """

        frames = []

        def text(frame_id, value):
            if value:
                frames.append(make_text_frame(frame_id, value))

        text("TIT2", metadata.title)
        text("TPE1", metadata.artist)
        text("TALB", metadata.album)
        text("TPE2", metadata.album_artist)
        text("TDRC", metadata.date)
        text("TCON", metadata.genre)
        text("TCOM", metadata.composer)
        text("TPUB", metadata.publisher)
        text("TRCK", format_number_pair(
            metadata.track_number, metadata.total_tracks))
        text("TPOS", format_number_pair(
            metadata.disc_number, metadata.total_discs))
        if metadata.comment:
            frames.append(make_comment_frame("COMM", metadata.comment))
        if metadata.lyrics:
            frames.append(make_comment_frame("USLT", metadata.lyrics))
        if metadata.picture is not None:
            frames.append(make_picture_frame(metadata.picture))

        body = b"".join(frames)
        header = struct.pack(
            ">3sBBB", b"ID3", 4, 0, 0) + BitPaddedInt.to_str(len(body))
        return header + body


_TEXT_FRAMES = [
    ("title", ["TIT2"]),
    ("artist", ["TPE1"]),
    ("album", ["TALB"]),
    ("album_artist", ["TPE2"]),
    ("date", ["TDRC", "TYER"]),
    ("composer", ["TCOM"]),
    ("publisher", ["TPUB"]),
    ("comment", ["COMM"]),
    ("lyrics", ["USLT"]),
]


def _determine_bpi(data: bytes):
    """Takes id3v2.4 frame data and determines if ints or bitpaddedints
    should be used for parsing. Needed because iTunes used to write
    normal ints for frame sizes.
    """

    # count number of tags found as BitPaddedInt and how far past
    o = 0
    asbpi = 0
    while o < len(data) - 10:
        part = data[o:o + 10]
        if part == b"\x00" * 10:
            break
        name, size, flags = struct.unpack('>4sLH', part)
        size = BitPaddedInt(size)
        o += 10 + size
        try:
            name = name.decode("ascii")
        except UnicodeDecodeError:
            continue
        if is_valid_frame_id(name):
            asbpi += 1
    bpioff = o - len(data)

    # count number of tags found as int and how far past
    o = 0
    asint = 0
    while o < len(data) - 10:
        part = data[o:o + 10]
        if part == b"\x00" * 10:
            break
        name, size, flags = struct.unpack('>4sLH', part)
        o += 10 + size
        try:
            name = name.decode("ascii")
        except UnicodeDecodeError:
            continue
        if is_valid_frame_id(name):
            asint += 1
    intoff = o - len(data)

    # if more tags as int, or equal and bpi is past and int is not
    if asint > asbpi or (asint == asbpi and (bpioff >= 1 and intoff <= 1)):
        return int
    return BitPaddedInt
