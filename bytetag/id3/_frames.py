# Copyright (C) 2005  Michael Urman
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Decoding and encoding of the ID3v2 frame bodies bytetag knows about.

Text (T***), URL (W***), comment/lyrics (COMM, USLT) and picture (APIC)
frames are handled, including their ID3v2.2 names. Everything else is
skipped on read.
"""

from __future__ import annotations

import re
import zlib
from struct import unpack

from bytetag._constants import GENRES
from bytetag._tags import Picture

from ._specs import (
    Encoding,
    PictureType,
    decode_text,
    encode_text,
    read_encoding,
    read_terminated,
)
from ._util import (
    BitPaddedInt,
    ID3EncryptionUnsupportedError,
    ID3JunkFrameError,
    unsynch,
)

FLAG23_COMPRESS = 0x0080
FLAG23_ENCRYPT = 0x0040
FLAG23_GROUP = 0x0020

FLAG24_GROUPID = 0x0040
FLAG24_COMPRESS = 0x0008
FLAG24_ENCRYPT = 0x0004
FLAG24_UNSYNCH = 0x0002
FLAG24_DATALEN = 0x0001

# ID3v2.2 frame ids of the frames decoded here, by their v2.3 name
V22_IDS = {
    "TT2": "TIT2", "TP1": "TPE1", "TP2": "TPE2", "TAL": "TALB",
    "TYE": "TYER", "TCO": "TCON", "TCM": "TCOM", "TPB": "TPUB",
    "TRK": "TRCK", "TPA": "TPOS", "COM": "COMM", "ULT": "USLT",
    "PIC": "APIC",
}

_V22_IMAGE_FORMATS = {"PNG": "image/png", "JPG": "image/jpeg"}


def unpack_frame_data(version: int, header_unsynch: bool, flags: int,
                      data: bytes) -> bytes:
    """Undo the per frame transformations signalled by the frame flags.

    Raises ID3JunkFrameError, ID3EncryptionUnsupportedError
    """

    if version >= 4:
        if flags & FLAG24_GROUPID:
            data = data[1:]
        datalen_bytes = b""
        if flags & (FLAG24_COMPRESS | FLAG24_DATALEN):
            # The data length int is syncsafe in 2.4 (but not 2.3).
            datalen_bytes = data[:4]
            data = data[4:]
        if flags & FLAG24_UNSYNCH or header_unsynch:
            try:
                data = unsynch.decode(data)
            except ValueError:
                # Some things write synch-unsafe data with either the frame
                # or global unsynch flag set. Try to load them as is.
                pass
        if flags & FLAG24_ENCRYPT:
            raise ID3EncryptionUnsupportedError
        if flags & FLAG24_COMPRESS:
            try:
                data = zlib.decompress(data)
            except zlib.error:
                # some writers leave out the data length
                try:
                    data = zlib.decompress(datalen_bytes + data)
                except zlib.error as err:
                    raise ID3JunkFrameError("zlib: %s" % err) from err

    elif version == 3:
        if flags & FLAG23_COMPRESS:
            if len(data) < 4:
                raise ID3JunkFrameError("frame too small: %r" % data)
            usize, = unpack('>L', data[:4])
            data = data[4:]
        if flags & FLAG23_ENCRYPT:
            raise ID3EncryptionUnsupportedError
        if flags & FLAG23_GROUP:
            data = data[1:]
        if flags & FLAG23_COMPRESS:
            try:
                data = zlib.decompress(data)
            except zlib.error as err:
                raise ID3JunkFrameError("zlib: %s" % err) from err

    return data


def read_text_frame(data: bytes) -> list[str]:
    encoding, data = read_encoding(data)
    return decode_text(encoding, data)


def read_user_text_frame(data: bytes) -> tuple[str, list[str]]:
    """TXXX: description and values"""

    encoding, data = read_encoding(data)
    desc, data = read_terminated(encoding, data)
    return desc, decode_text(encoding, data)


def read_url_frame(data: bytes) -> list[str]:
    try:
        return decode_text(Encoding.LATIN1, data)
    except ID3JunkFrameError:
        return []


def read_comment_frame(data: bytes) -> tuple[str, str, str]:
    """COMM/USLT: language, description and text"""

    encoding, data = read_encoding(data)
    if len(data) < 3:
        raise ID3JunkFrameError("missing language")
    lang = data[:3].decode("latin-1")
    desc, data = read_terminated(encoding, data[3:])
    values = decode_text(encoding, data)
    return lang, desc, values[0] if values else ""


def read_picture_frame(data: bytes, v22: bool = False) -> Picture:
    """APIC, or PIC if `v22` is true"""

    encoding, data = read_encoding(data)
    if v22:
        if len(data) < 3:
            raise ID3JunkFrameError("missing image format")
        image_format = data[:3].decode("latin-1").upper()
        mime = _V22_IMAGE_FORMATS.get(image_format, "image/jpeg")
        data = data[3:]
    else:
        mime, data = read_terminated(Encoding.LATIN1, data)
    if not data:
        raise ID3JunkFrameError("missing picture type")
    pic_type = data[0]
    desc, data = read_terminated(encoding, data[1:])
    return Picture(mime, data, desc or None, pic_type)


_GENRE_REF = re.compile(r"^\((\d+)\)(.*)$")


def resolve_genre(value: str) -> str:
    """Resolves ID3v1 genre references like "(17)" or "17" in a TCON
    value to the genre name. Other values are returned unchanged.

    "(17)Rock" gives the refinement after the reference.
    """

    match = _GENRE_REF.match(value)
    if match:
        index, refinement = int(match.group(1)), match.group(2)
        if refinement:
            return refinement
    elif value.isdigit():
        index = int(value)
    else:
        return value

    if index < len(GENRES):
        return GENRES[index]
    return value


def frame_header(frame_id: str, size: int) -> bytes:
    """A v2.4 frame header with no flags set"""

    return frame_id.encode("ascii") + BitPaddedInt.to_str(size) + b"\x00\x00"


def make_frame(frame_id: str, body: bytes) -> bytes:
    return frame_header(frame_id, len(body)) + body


def make_text_frame(frame_id: str, value: str) -> bytes:
    return make_frame(
        frame_id,
        bytes([Encoding.UTF8]) + encode_text(Encoding.UTF8, value))


def make_comment_frame(frame_id: str, value: str, lang: str = "eng",
                       desc: str = "") -> bytes:
    return make_frame(frame_id, b"".join([
        bytes([Encoding.UTF8]),
        lang.encode("latin-1"),
        encode_text(Encoding.UTF8, desc) + Encoding.UTF8.terminator,
        encode_text(Encoding.UTF8, value),
    ]))


def make_picture_frame(picture: Picture) -> bytes:
    return make_frame("APIC", b"".join([
        bytes([Encoding.UTF8]),
        picture.mime.encode("latin-1") + b"\x00",
        bytes([PictureType.COVER_FRONT]),
        encode_text(Encoding.UTF8, picture.desc or "") +
        Encoding.UTF8.terminator,
        picture.data,
    ]))
