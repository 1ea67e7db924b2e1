# Copyright 2006 Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Utility classes for bytetag.

You should not rely on the interfaces here being stable. They are
intended for internal use in bytetag only.
"""

from __future__ import annotations

import codecs
import struct
from collections.abc import Iterable, Mapping, Sequence


class BytetagError(Exception):
    """Base class for all custom exceptions in bytetag"""


class UnsupportedFormat(BytetagError):
    """None of the known formats recognized the data"""


class MalformedContainer(BytetagError, ValueError):
    """A structure needed for writing is missing or lies about its size"""


def as_bytes(data) -> bytes:
    """Returns an immutable bytes object for any bytes-like input.

    Raises TypeError for anything that isn't bytes-like.
    """

    if isinstance(data, bytes):
        return data
    return bytes(memoryview(data))


class cdata:
    """C character buffer to Python numeric type conversions.

    Every ``*_from`` helper takes a buffer and an offset and raises
    struct.error if the value doesn't fit.
    """

    error = struct.error

    _uint_be = struct.Struct(">I")
    _ulonglong_be = struct.Struct(">Q")

    ushort_be = staticmethod(lambda data: struct.unpack('>H', data)[0])
    uint_le = staticmethod(lambda data: struct.unpack('<I', data)[0])

    to_uint_le = staticmethod(lambda data: struct.pack('<I', data))
    to_uint_be = staticmethod(lambda data: struct.pack('>I', data))

    uint_be_from = staticmethod(
        lambda data, offset=0: cdata._uint_be.unpack_from(data, offset)[0])
    ulonglong_be_from = staticmethod(
        lambda data, offset=0: cdata._ulonglong_be.unpack_from(
            data, offset)[0])

    @staticmethod
    def uint24_be_from(data, offset: int = 0) -> int:
        if offset < 0 or offset + 3 > len(data):
            raise struct.error("need 3 bytes at offset %d" % offset)
        return (data[offset] << 16) | (data[offset + 1] << 8) | \
            data[offset + 2]

    @staticmethod
    def to_uint24_be(value: int) -> bytes:
        if not 0 <= value < 1 << 24:
            raise struct.error("%d does not fit in 24 bits" % value)
        return struct.pack(">I", value)[1:]

    bitswap = bytes(sum(((val >> i) & 1) << (7 - i) for i in range(8))
                    for val in range(256))

    test_bit = staticmethod(lambda value, n: bool((value >> n) & 1))


def decode_terminated(data: bytes, encoding: str,
                      strict: bool = True) -> tuple[str, bytes]:
    """Returns the decoded data until the first NULL terminator
    and all data after it.

    In case the data can't be decoded raises UnicodeError.
    In case the encoding is not found raises LookupError.
    In case the data isn't null terminated (even if it is encoded correctly)
    raises ValueError except if strict is False, then the decoded string
    will be returned anyway.
    """

    codec_info = codecs.lookup(encoding)

    # normalize encoding name so we can compare by name
    encoding = codec_info.name

    # fast path
    if encoding in ("utf-8", "iso8859-1"):
        index = data.find(b"\x00")
        if index == -1:
            # make sure we raise UnicodeError first, like in the slow path
            res = data.decode(encoding), b""
            if strict:
                raise ValueError("not null terminated")
            return res
        return data[:index].decode(encoding), data[index + 1:]

    # UTF-16 variants: the terminator is a double NUL on an even offset
    index = 0
    while True:
        index = data.find(b"\x00\x00", index)
        if index == -1:
            res = data.decode(encoding), b""
            if strict:
                raise ValueError("not null terminated")
            return res
        if index % 2 == 0:
            break
        index += 1
    return data[:index].decode(encoding), data[index + 2:]


def parse_number_pair(value: str | None) -> tuple[int | None, int | None]:
    """Parses "3", "3/12" or "/12" into a (number, total) tuple.

    Parts which aren't plain integers come back as None.
    """

    if value is None:
        return None, None

    def to_int(text):
        text = text.strip()
        try:
            return int(text)
        except ValueError:
            return None

    number, sep, total = value.partition("/")
    return to_int(number), (to_int(total) if sep else None)


def format_number_pair(number: int | None, total: int | None) -> str | None:
    """The inverse of parse_number_pair(), None if there is no number"""

    if number is None:
        return None
    if total is None:
        return str(number)
    return "%d/%d" % (number, total)


def first_value(tags: Mapping[str, Sequence[str]],
                keys: Iterable[str]) -> str | None:
    """Returns the first value of the first key in `keys` which has
    at least one value.
    """

    for key in keys:
        values = tags.get(key)
        if values:
            return values[0]
    return None


def add_value(tags: dict[str, list[str]], key: str, value: str) -> None:
    tags.setdefault(key, []).append(value)
