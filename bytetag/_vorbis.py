# Vorbis comment support for bytetag
# Copyright 2005 Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Read and write Vorbis comment data, used in Ogg and FLAC files.

Vorbis comments are Unicode values with a key that is case-insensitive
ASCII between 0x20 and 0x7D inclusive, excluding '='. Keys are exposed
in upper case.

Specification at http://www.xiph.org/vorbis/doc/v-comment.html.
"""

from __future__ import annotations

import base64
import binascii
import logging
import struct

from bytetag._picture import PictureBlock, error as PictureError
from bytetag._tags import Metadata, ParseFilter, Picture
from bytetag._util import (
    BytetagError,
    first_value,
    parse_number_pair,
)

logger = logging.getLogger(__name__)


class error(BytetagError):
    pass


class VorbisEncodingError(error, UnicodeError):
    pass


def istag(key: str) -> bool:
    """Return true if 'key' is a valid Vorbis comment key. This means
    it contains ASCII from 0x20 to 0x7D inclusive, barring '='."""

    if not key:
        return False

    for c in key:
        if c < " " or c > "}" or c == "=":
            return False
    return True


class VComment(list):
    """A Vorbis comment parser, accessor, and renderer.

    All comment ordering is preserved. A VComment is a list of
    key/value pairs, and so any Python list method can be used on it.

    Vorbis comments are always wrapped in something like an Ogg packet
    or a FLAC metadata block, so this loads from bytes, not a file.

    Truncated data is not an error: everything decoded up to the
    truncation is kept. Comments which aren't valid UTF-8 or have no
    key are skipped.

    Attributes:
        vendor (`str`): the stream 'vendor' (i.e. writer); default
            'bytetag'
    """

    vendor = "bytetag"

    def __init__(self, data=None, *args, **kwargs):
        self._size = 0
        if data is not None:
            self.load(data, *args, **kwargs)

    def load(self, data, errors: str = "replace") -> None:
        """Parse a Vorbis comment from bytes.

        Keyword arguments:

        * errors:
            'strict', 'replace', or 'ignore'. This affects the vendor
            string only.
        """

        view = memoryview(data)
        end = len(view)
        pos = 0

        if end < 4:
            logger.debug("vorbis comment too short for a vendor")
            return
        vendor_length, = struct.unpack_from("<I", view, 0)
        pos = 4
        if vendor_length > end - pos:
            logger.debug("vendor length %d overruns data", vendor_length)
            return
        self.vendor = bytes(view[pos:pos + vendor_length]).decode(
            "utf-8", errors)
        pos += vendor_length

        if end - pos < 4:
            return
        count, = struct.unpack_from("<I", view, pos)
        pos += 4

        for i in range(count):
            if end - pos < 4:
                logger.debug("comment %d of %d is missing", i, count)
                break
            length, = struct.unpack_from("<I", view, pos)
            pos += 4
            if length > end - pos:
                logger.debug("comment %d overruns data", i)
                break
            raw = bytes(view[pos:pos + length])
            pos += length

            try:
                string = raw.decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("skipping comment %d, not UTF-8", i)
                continue

            tag, sep, value = string.partition("=")
            if not sep or not tag:
                logger.debug("skipping comment %d, no key", i)
                continue
            if not istag(tag):
                logger.debug("skipping comment %d, invalid key %r", i, tag)
                continue
            self.append((tag.upper(), value))

        self._size = pos

    def validate(self) -> bool:
        """Validate keys and values.

        Check to make sure every key used is a valid Vorbis key, and
        that every value used is a valid Unicode or UTF-8 string. If
        any invalid keys or values are found, a ValueError is raised.

        In Python 3 all keys and values have to be a string.
        """

        if not isinstance(self.vendor, str):
            raise ValueError("vendor needs to be str")

        for key, value in self:
            try:
                if not istag(key):
                    raise ValueError("%r is not a valid key" % key)
            except TypeError:
                raise ValueError("%r is not a valid key" % key)

            if not isinstance(value, str):
                err = "%r needs to be str for key %r" % (value, key)
                raise ValueError(err)

        return True

    def clear(self) -> None:
        """Clear all keys from the comment."""

        del self[:]

    def write(self) -> bytes:
        """Return a string representation of the data.

        Validation is always performed, so calling this function on
        invalid data may raise a ValueError.
        """

        self.validate()

        def _encode(value):
            try:
                return value.encode("utf-8")
            except UnicodeEncodeError as e:
                raise VorbisEncodingError(e) from e

        vendor = _encode(self.vendor)
        parts = [struct.pack("<I", len(vendor)), vendor,
                 struct.pack("<I", len(self))]
        for tag, value in self:
            comment = b"%s=%s" % (_encode(tag), _encode(value))
            parts.append(struct.pack("<I", len(comment)))
            parts.append(comment)
        return b"".join(parts)


class VCommentDict(VComment):
    """A VComment that looks like a dictionary.

    This object differs from a dictionary in two ways. First,
    len(comment) will still return the number of values, not the
    number of keys. Secondly, iterating through the object will
    iterate over (key, value) pairs, not keys. Since a key may have
    multiple values, the same value may appear multiple times while
    iterating.

    Since Vorbis comment keys are case-insensitive, all keys are
    normalized to upper case ASCII.
    """

    def __getitem__(self, key):
        """A list of values for the key.

        This is a copy, so comment['title'].append('a title') will not
        work.
        """

        if isinstance(key, slice):
            return list.__getitem__(self, key)

        if not istag(key):
            raise ValueError("%r is not a valid key" % key)

        key = key.upper()

        values = [value for (k, value) in self if k.upper() == key]
        if not values:
            raise KeyError(key)
        else:
            return values

    def __contains__(self, key):
        """Return true if the key has any values."""

        if not istag(key):
            raise ValueError("%r is not a valid key" % key)

        key = key.upper()
        for k, value in self:
            if k.upper() == key:
                return True
        else:
            return False

    def keys(self) -> list[str]:
        """Return a list of keys in the comment."""

        return list(dict.fromkeys(k.upper() for k, v in self))

    def as_dict(self) -> dict[str, list[str]]:
        """Return a copy of the comment data in a real dict."""

        result: dict[str, list[str]] = {}
        for key, value in self:
            result.setdefault(key.upper(), []).append(value)
        return result


_TEXT_KEYS = [
    ("title", ["TITLE"]),
    ("artist", ["ARTIST"]),
    ("album", ["ALBUM"]),
    ("album_artist", ["ALBUMARTIST", "ALBUM ARTIST"]),
    ("date", ["DATE"]),
    ("genre", ["GENRE"]),
    ("comment", ["COMMENT", "DESCRIPTION"]),
    ("composer", ["COMPOSER"]),
    ("publisher", ["PUBLISHER", "LABEL"]),
    ("lyrics", ["LYRICS", "UNSYNCEDLYRICS"]),
]

_PAIR_KEYS = [
    ("track_number", "total_tracks", "TRACKNUMBER",
     ["TOTALTRACKS", "TRACKTOTAL"]),
    ("disc_number", "total_discs", "DISCNUMBER",
     ["TOTALDISCS", "DISCTOTAL"]),
]


def decode_picture(value: str) -> Picture | None:
    """Decode a base64 METADATA_BLOCK_PICTURE value, None if invalid"""

    try:
        data = base64.b64decode(value.encode("ascii"), validate=False)
        return PictureBlock(data).to_picture()
    except (UnicodeEncodeError, binascii.Error, PictureError,
            struct.error) as e:
        logger.debug("skipping invalid METADATA_BLOCK_PICTURE: %s", e)
        return None


def to_metadata(tags: dict[str, list[str]], pictures=(),
                filter: ParseFilter = ParseFilter.ALL) -> Metadata:
    """Map decoded comments to a Metadata.

    `pictures` are pictures found outside of the comments (FLAC picture
    blocks) and win over METADATA_BLOCK_PICTURE.
    """

    picture = None
    if filter.pictures:
        for picture in pictures:
            break
        else:
            for value in tags.get("METADATA_BLOCK_PICTURE", []):
                picture = decode_picture(value)
                if picture is not None:
                    break

    fields = {}
    if filter.tags:
        for name, keys in _TEXT_KEYS:
            fields[name] = first_value(tags, keys)
        for number_name, total_name, key, total_keys in _PAIR_KEYS:
            number, total = parse_number_pair(first_value(tags, [key]))
            explicit_total = parse_number_pair(
                first_value(tags, total_keys))[0]
            fields[number_name] = number
            fields[total_name] = \
                explicit_total if explicit_total is not None else total

    return filter.build(picture=picture, raw_tags=tags, **fields)


def from_metadata(metadata: Metadata, vendor: str | None = None,
                  pictures: bool = True) -> VCommentDict:
    """Build the comment for `metadata`.

    If `pictures` is false the picture is left out, for containers which
    store it elsewhere.
    """

    comment = VCommentDict()
    if vendor is not None:
        comment.vendor = vendor

    def add(key, value):
        if value is not None and value != "":
            comment.append((key, str(value)))

    add("TITLE", metadata.title)
    add("ARTIST", metadata.artist)
    add("ALBUM", metadata.album)
    add("ALBUMARTIST", metadata.album_artist)
    add("DATE", metadata.date)
    add("GENRE", metadata.genre)
    add("COMMENT", metadata.comment)
    add("COMPOSER", metadata.composer)
    add("PUBLISHER", metadata.publisher)
    add("LYRICS", metadata.lyrics)
    add("TRACKNUMBER", metadata.track_number)
    add("TOTALTRACKS", metadata.total_tracks)
    add("DISCNUMBER", metadata.disc_number)
    add("TOTALDISCS", metadata.total_discs)

    if pictures and metadata.picture is not None:
        block = PictureBlock.from_picture(metadata.picture)
        add("METADATA_BLOCK_PICTURE",
            base64.b64encode(block.write()).decode("ascii"))

    return comment
