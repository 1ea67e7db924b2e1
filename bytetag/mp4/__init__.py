# Copyright (C) 2006  Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Read and write MPEG-4 audio files with iTunes metadata.

This module will read iTunes metadata as found in Apple's MP4 (aka M4A,
M4B, M4P) files.

There is no official specification for this format. The source code
for TagLib, FAAD, and various MPEG specifications at

* http://developer.apple.com/documentation/QuickTime/QTFF/
* http://www.geocities.com/xhelmboyx/quicktime/formats/mp4-layout.txt
* http://standards.iso.org/ittf/PubliclyAvailableStandards/\
c041828_ISO_IEC_14496-12_2005(E).zip
* http://wiki.multimedia.cx/index.php?title=Apple_QuickTime

were all consulted.
"""

from __future__ import annotations

import logging
import struct

from bytetag._constants import GENRES
from bytetag._file import FileType
from bytetag._tags import Metadata, ParseFilter, Picture
from bytetag._util import (
    BytetagError,
    MalformedContainer,
    as_bytes,
    cdata,
    first_value,
    format_number_pair,
    parse_number_pair,
)

from ._atom import Atom, AtomError, Atoms, AtomWriteError, update_offsets, \
    update_parents

__all__ = ["MP4", "MP4Tags", "Atom", "Atoms", "AtomDataType", "AtomError",
           "error", "MP4MetadataError", "MP4MetadataValueError",
           "MP4WriteError"]

logger = logging.getLogger(__name__)


class error(BytetagError):
    pass


class MP4MetadataError(error):
    pass


class MP4MetadataValueError(ValueError, MP4MetadataError):
    pass


class MP4WriteError(error, MalformedContainer):
    pass


class AtomDataType:
    """Type indicators of 'data' atoms (the ones bytetag handles)."""

    IMPLICIT = 0
    """for use with tags for which no type needs to be indicated because
       only one type is allowed"""

    UTF8 = 1
    """without any count or null terminator"""

    UTF16 = 2
    """also known as UTF-16BE"""

    JPEG = 13
    """a JPEG image"""

    PNG = 14
    """PNG image"""

    INTEGER = 21
    """a signed big-endian integer with length one of { 1,2,3,4,8 } bytes"""

    UNSIGNED = 22
    """an unsigned big-endian integer with length one of { 1,2,3,4,8 }
       bytes"""


_BRANDS = [b"M4A ", b"M4B ", b"M4P ", b"mp41", b"mp42", b"isom", b"iso2"]

# field name, item atom; in the order iTunes writes them
_TEXT_ATOMS = [
    ("title", b"\xa9nam"),
    ("artist", b"\xa9ART"),
    ("composer", b"\xa9wrt"),
    ("album", b"\xa9alb"),
    ("album_artist", b"aART"),
    ("date", b"\xa9day"),
    ("comment", b"\xa9cmt"),
    ("publisher", b"\xa9pub"),
    ("lyrics", b"\xa9lyr"),
    ("genre", b"\xa9gen"),
]


def _name2key(name: bytes) -> str:
    return name.decode("latin-1")


def _parse_data(atom: Atom, data: bytes):
    """Yields (version, flags, payload) for the 'data' atoms in the
    payload of an item atom.

    Raises MP4MetadataError
    """

    pos = 0
    while pos < len(data):
        head = data[pos:pos + 16]
        if len(head) != 16:
            raise MP4MetadataError("truncated atom %r" % atom.name)
        length, name = struct.unpack(">I4s", head[:8])
        version = head[8]
        flags = cdata.uint_be_from(head, 8) & 0xFFFFFF
        if name != b"data":
            if name in (b"mean", b"name") and length >= 8:
                pos += length
                continue
            raise MP4MetadataError(
                "unexpected atom %r inside %r" % (name, atom.name))
        if length < 16:
            raise MP4MetadataError("invalid data atom in %r" % atom.name)

        chunk = data[pos + 16:pos + length]
        if len(chunk) != length - 16:
            raise MP4MetadataError("truncated atom %r" % atom.name)
        yield version, flags, chunk
        pos += length


class MP4Tags(dict):
    r"""Dictionary containing Apple iTunes metadata list key/values.

    Keys are four byte identifiers decoded as Latin-1 ('\xa9nam'),
    except for freeform ('----') keys which have the form
    '----:mean:name'. Values are lists of str:

    * text atoms keep their text
    * 'trkn' and 'disk' become 'number/total' (or 'number')
    * 'gnre' becomes the genre name
    * integer atoms are written out in decimal

    Cover art is not part of the dict, it is collected in `covers`.

    Atoms which fail to parse are skipped.
    """

    def __init__(self, *args, **kwargs):
        self.covers: list[Picture] = []
        super().__init__(*args, **kwargs)

    def load(self, ilst: Atom, data: bytes,
             filter: ParseFilter = ParseFilter.ALL) -> None:
        for atom in ilst.children or []:
            if atom.name == b"covr":
                if not filter.pictures:
                    continue
            elif not filter.tags:
                continue

            ok, payload = atom.read(data)
            if not ok:
                logger.debug("item %r is truncated", atom.name)
                continue

            try:
                if atom.name in self.__atoms:
                    self.__atoms[atom.name](self, atom, payload)
                else:
                    # unknown atom, try as text
                    self.__parse_text(atom, payload, implicit=False)
            except MP4MetadataError as e:
                logger.debug("skipping %r: %s", atom.name, e)

    def __add(self, key, values):
        self.setdefault(key, []).extend(values)

    def __parse_freeform(self, atom, data):
        try:
            length = cdata.uint_be_from(data, 0)
            mean = data[12:length]
            pos = length
            length = cdata.uint_be_from(data, pos)
            name = data[pos + 12:pos + length]
        except cdata.error as e:
            raise MP4MetadataError("truncated freeform atom") from e
        pos += length

        values = []
        for version, flags, chunk in _parse_data(atom, data[pos:]):
            if flags == AtomDataType.UTF8:
                try:
                    values.append(chunk.decode("utf-8"))
                except UnicodeDecodeError as e:
                    raise MP4MetadataError(e) from e

        key = _name2key(atom.name + b":" + mean + b":" + name)
        self.__add(key, values)

    def __parse_pair(self, atom, data):
        values = []
        for version, flags, chunk in _parse_data(atom, data):
            try:
                number, total = struct.unpack_from(">2H", chunk, 2)
            except struct.error as e:
                raise MP4MetadataValueError(
                    "invalid %r data" % atom.name) from e
            value = format_number_pair(number or None, total or None)
            if value is not None:
                values.append(value)
        self.__add(_name2key(atom.name), values)

    def __parse_genre(self, atom, data):
        values = []
        for version, flags, chunk in _parse_data(atom, data):
            # version = 0, flags = 0
            if len(chunk) != 2:
                raise MP4MetadataValueError("invalid genre")
            genre = cdata.ushort_be(chunk)
            # Translate to a freeform genre.
            if not 1 <= genre <= len(GENRES):
                raise MP4MetadataValueError("unknown genre %d" % genre)
            values.append(GENRES[genre - 1])
        self.__add(_name2key(atom.name), values)

    def __parse_cover(self, atom, data):
        for version, flags, chunk in _parse_data(atom, data):
            if flags == AtomDataType.PNG:
                mime = "image/png"
            else:
                # Sometimes AtomDataType.IMPLICIT or simply wrong.
                # In all cases it was jpeg, so default to it
                mime = "image/jpeg"
            self.covers.append(Picture(mime, chunk))

    def __parse_text(self, atom, data, implicit=True):
        # implicit = False, for parsing unknown atoms only take utf8 ones.
        # For known ones we can assume the implicit are utf8 too.
        values = []
        for version, flags, chunk in _parse_data(atom, data):
            if flags in (AtomDataType.INTEGER, AtomDataType.UNSIGNED):
                if len(chunk) in (1, 2, 3, 4, 8):
                    values.append(str(int.from_bytes(
                        chunk, "big",
                        signed=flags == AtomDataType.INTEGER)))
                continue
            if implicit:
                if flags not in (AtomDataType.IMPLICIT, AtomDataType.UTF8):
                    raise MP4MetadataError(
                        "Unknown atom type %r for %r" % (flags, atom.name))
            else:
                if flags != AtomDataType.UTF8:
                    raise MP4MetadataError(
                        "%r is not text, ignore" % atom.name)

            try:
                text = chunk.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MP4MetadataError("%s: %s" % (atom.name, e)) from e

            values.append(text)

        self.__add(_name2key(atom.name), values)

    __atoms = {
        b"----": __parse_freeform,
        b"trkn": __parse_pair,
        b"disk": __parse_pair,
        b"gnre": __parse_genre,
        b"covr": __parse_cover,
    }
    for name, key in _TEXT_ATOMS:
        __atoms[key] = __parse_text
    del name, key

    def to_metadata(self, filter: ParseFilter = ParseFilter.ALL) -> Metadata:
        fields = {}
        for name, atom_name in _TEXT_ATOMS:
            fields[name] = first_value(self, [_name2key(atom_name)])

        # the numeric genre wins over the text one
        fields["genre"] = first_value(self, ["gnre", "\xa9gen"])

        fields["track_number"], fields["total_tracks"] = \
            parse_number_pair(first_value(self, ["trkn"]))
        fields["disc_number"], fields["total_discs"] = \
            parse_number_pair(first_value(self, ["disk"]))

        return filter.build(
            picture=self.covers[0] if self.covers else None,
            raw_tags=dict(self), **fields)


def _render_data(name: bytes, flags: int, values: list[bytes]) -> bytes:
    return Atom.render(name, b"".join([
        Atom.render(b"data", struct.pack(">2I", flags, 0) + value)
        for value in values]))


def _render_pair(name: bytes, number: int, total: int | None) -> bytes:
    total = total or 0
    if not (0 <= number < 1 << 16 and 0 <= total < 1 << 16):
        raise MP4MetadataValueError(
            "invalid numeric pair %r" % ((number, total),))
    return _render_data(name, AtomDataType.IMPLICIT,
                        [struct.pack(">4H", 0, number, total, 0)])


def render_ilst(metadata: Metadata) -> bytes:
    """Build the 'ilst' atom for `metadata`.

    Raises MP4MetadataValueError if a number doesn't fit in 16 bits.
    """

    values = []
    for name, atom_name in _TEXT_ATOMS:
        value = getattr(metadata, name)
        if value:
            values.append(_render_data(
                atom_name, AtomDataType.UTF8, [value.encode("utf-8")]))

    if metadata.track_number is not None:
        values.append(_render_pair(
            b"trkn", metadata.track_number, metadata.total_tracks))
    if metadata.disc_number is not None:
        values.append(_render_pair(
            b"disk", metadata.disc_number, metadata.total_discs))

    picture = metadata.picture
    if picture is not None:
        if picture.mime == "image/png":
            imageformat = AtomDataType.PNG
        else:
            imageformat = AtomDataType.JPEG
        values.append(_render_data(b"covr", imageformat, [picture.data]))

    return Atom.render(b"ilst", b"".join(values))


def _render_meta(ilst: bytes) -> bytes:
    hdlr = Atom.render(b"hdlr", b"\x00" * 8 + b"mdirappl" + b"\x00" * 9)
    return Atom.render(b"meta", b"\x00\x00\x00\x00" + hdlr + ilst)


def _load_atoms(data: bytes) -> tuple[Atoms, Atom]:
    atoms = Atoms(data)
    try:
        moov = atoms[b"moov"]
    except KeyError as e:
        raise MP4WriteError("no moov atom") from e
    if moov.end > len(data):
        raise MP4WriteError("moov atom claims %d bytes, only %d available" % (
            moov.length, len(data) - moov.offset))
    return atoms, moov


def _splice(data: bytes, atoms: Atoms, path: list[Atom], offset: int,
            old_length: int, new: bytes) -> bytes:
    """Replace `old_length` bytes at `offset` with `new`, fixing the
    sizes of the atoms in `path` and all chunk offsets.
    """

    for atom in path:
        if atom.end > len(data):
            raise MP4WriteError("%r atom is truncated" % atom.name)

    delta = len(new) - old_length
    out = bytearray(data[:offset])
    out += new
    out += data[offset + old_length:]
    try:
        update_parents(out, path, delta)
    except AtomWriteError as e:
        raise MP4WriteError(e) from e
    update_offsets(data, out, atoms, delta, offset)
    return bytes(out)


class MP4(FileType):
    """An MPEG-4 audio file with iTunes metadata in
    moov.udta.meta.ilst.
    """

    @staticmethod
    def score(data: bytes) -> int:
        return int(data[4:8] == b"ftyp" and data[8:12] in _BRANDS)

    @classmethod
    def read(cls, data, filter=ParseFilter.ALL):
        data = as_bytes(data)
        tags = MP4Tags()
        try:
            ilst = Atoms(data)[b"moov.udta.meta.ilst"]
        except KeyError as e:
            logger.debug("no ilst atom: %s", e)
        else:
            tags.load(ilst, data, filter)
        return tags.to_metadata(filter)

    @classmethod
    def write(cls, data, metadata):
        """Raises MP4WriteError or MP4MetadataValueError"""

        data = as_bytes(data)
        ilst = render_ilst(metadata)
        atoms, moov = _load_atoms(data)

        try:
            path = atoms.path(b"moov", b"udta", b"meta", b"ilst")
        except KeyError:
            pass
        else:
            old = path.pop()
            return _splice(data, atoms, path, old.offset, old.length, ilst)

        try:
            path = atoms.path(b"moov", b"udta", b"meta")
        except KeyError:
            pass
        else:
            return _splice(data, atoms, path, path[-1].end, 0, ilst)

        try:
            path = atoms.path(b"moov", b"udta")
        except KeyError:
            # moov.udta not found -- create one
            new = Atom.render(b"udta", _render_meta(ilst))
            return _splice(data, atoms, [moov], moov.end, 0, new)
        else:
            return _splice(data, atoms, path, path[-1].end, 0,
                           _render_meta(ilst))

    @classmethod
    def strip(cls, data):
        """Remove the ilst atom.

        Raises MP4WriteError
        """

        data = as_bytes(data)
        atoms, moov = _load_atoms(data)
        try:
            path = atoms.path(b"moov", b"udta", b"meta", b"ilst")
        except KeyError:
            return data
        old = path.pop()
        return _splice(data, atoms, path, old.offset, old.length, b"")

