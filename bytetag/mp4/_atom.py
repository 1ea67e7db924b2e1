# Copyright (C) 2006  Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

import logging
import struct

from bytetag._util import BytetagError, MalformedContainer, cdata

logger = logging.getLogger(__name__)

# This is not an exhaustive list of container atoms, but just the
# ones this module needs to peek inside.
_CONTAINERS = [b"moov", b"udta", b"trak", b"mdia", b"meta", b"ilst",
               b"stbl", b"minf", b"moof", b"traf"]
_SKIP_SIZE = {b"meta": 4}


class AtomError(BytetagError):
    pass


class Atom:
    """An individual atom.

    Attributes:
        children (list or None): child atoms, None for non-container atoms
        length (int): length of this atom, including length and name
        name (bytes): four byte name of the atom
        offset (int): location of the atom in the parsed buffer
        size_field (int): the raw 32 bit size, 1 for 64 bit sizes and 0
            for "until the end of the file"

    A child which fails to parse ends the children list of its parent,
    the rest of the parent is then treated as opaque.
    """

    children = None

    def __init__(self, data: bytes, offset: int = 0, level: int = 0):
        """Raises AtomError"""

        self.offset = offset
        try:
            self.size_field, self.name = struct.unpack_from(
                ">I4s", data, offset)
        except struct.error as e:
            raise AtomError("truncated atom header at %d" % offset) from e

        self.length = self.size_field
        self._dataoffset = offset + 8
        if self.length == 1:
            try:
                self.length = cdata.ulonglong_be_from(data, offset + 8)
            except cdata.error as e:
                raise AtomError("truncated 64 bit atom header") from e
            self._dataoffset += 8
            if self.length < 16:
                raise AtomError(
                    "64 bit atom length can only be 16 and higher")
        elif self.length == 0:
            if level != 0:
                raise AtomError(
                    "only a top-level atom can have zero length")
            # Only the last atom is supposed to have a zero-length, meaning it
            # extends to the end of file.
            self.length = len(data) - self.offset
        elif self.length < 8:
            raise AtomError(
                "atom length can only be 0, 1 or 8 and higher")

        if self.name in _CONTAINERS:
            self.children = []
            end = min(self.offset + self.length, len(data))
            pos = self._dataoffset + _SKIP_SIZE.get(self.name, 0)
            while pos + 8 <= end:
                try:
                    child = Atom(data, pos, level + 1)
                except AtomError as e:
                    logger.debug("bad child in %r: %s", self.name, e)
                    break
                self.children.append(child)
                pos += child.length

    @property
    def end(self) -> int:
        return self.offset + self.length

    def read(self, data: bytes) -> tuple[bool, bytes]:
        """Return if all data could be read and the atom payload"""

        length = self.length - (self._dataoffset - self.offset)
        payload = data[self._dataoffset:self._dataoffset + length]
        return len(payload) == length, payload

    @staticmethod
    def render(name: bytes, data: bytes) -> bytes:
        """Render raw atom data."""

        size = len(data) + 8
        if size <= 0xFFFFFFFF:
            return struct.pack(">I4s", size, name) + data
        else:
            return struct.pack(">I4sQ", 1, name, size + 8) + data

    def findall(self, name: bytes, recursive: bool = False):
        """Recursively find all child atoms by specified name."""

        if self.children is not None:
            for child in self.children:
                if child.name == name:
                    yield child
                if recursive:
                    yield from child.findall(name, True)

    def __getitem__(self, remaining):
        """Look up a child atom, potentially recursively.

        e.g. atom[b'udta', b'meta'] => <Atom name=b'meta' ...>
        """

        if not remaining:
            return self
        elif self.children is None:
            raise KeyError("%r is not a container" % self.name)
        for child in self.children:
            if child.name == remaining[0]:
                return child[remaining[1:]]
        else:
            raise KeyError("%r not found" % remaining[0])

    def __repr__(self):
        cls = self.__class__.__name__
        if self.children is None:
            return "<%s name=%r length=%r offset=%r>" % (
                cls, self.name, self.length, self.offset)
        else:
            children = "\n".join([" " + line for child in self.children
                                  for line in repr(child).splitlines()])
            return "<%s name=%r length=%r offset=%r\n%s>" % (
                cls, self.name, self.length, self.offset, children)


class Atoms:
    """Root atoms in a given buffer.

    Attributes:
        atoms (list[Atom]): the top-level atoms
    """

    def __init__(self, data: bytes):
        self.atoms = []
        pos = 0
        while pos + 8 <= len(data):
            try:
                atom = Atom(data, pos)
            except AtomError as e:
                logger.debug("stopping at top level atom %d: %s", pos, e)
                break
            self.atoms.append(atom)
            pos += atom.length

    def path(self, *names: bytes) -> list[Atom]:
        """Look up and return the complete path of an atom.

        For example, atoms.path(b'moov', b'udta', b'meta') will return a
        list of three atoms, corresponding to the moov, udta, and meta
        atoms.
        """

        path = [self]
        for name in names:
            path.append(path[-1][name, ])
        return path[1:]

    def __contains__(self, names) -> bool:
        try:
            self[names]
        except KeyError:
            return False
        return True

    def __getitem__(self, names):
        """Look up a child atom.

        'names' may be a list of atoms ([b'moov', b'udta']) or a string
        specifying the complete path (b'moov.udta').
        """

        if isinstance(names, bytes):
            names = names.split(b".")

        for child in self.atoms:
            if child.name == names[0]:
                return child[names[1:]]
        else:
            raise KeyError("%s not found" % names[0])

    def __repr__(self):
        return "\n".join([repr(child) for child in self.atoms])


class AtomWriteError(AtomError, MalformedContainer):
    pass


def update_parents(out: bytearray, path: list[Atom], delta: int) -> None:
    """Update all parent atoms with the new size.

    Atoms with a zero size field extend to the end of the file and are
    left alone.

    Raises AtomWriteError if a 32 bit size would overflow.
    """

    for atom in path:
        if atom.size_field == 1:  # 64bit
            size = cdata.ulonglong_be_from(out, atom.offset + 8)
            struct.pack_into(">Q", out, atom.offset + 8, size + delta)
        elif atom.size_field != 0:  # 32bit
            size = cdata.uint_be_from(out, atom.offset) + delta
            if size > 0xFFFFFFFF:
                raise AtomWriteError(
                    "%r atom would need a 64 bit size" % atom.name)
            struct.pack_into(">I", out, atom.offset, size)


def _update_offset_table(data: bytes, out: bytearray, fmt: str, width: int,
                         atom: Atom, delta: int, offset: int) -> None:
    """Update offset table in the specified atom."""

    new_offset = atom.offset + (delta if atom.offset > offset else 0)
    try:
        count = cdata.uint_be_from(data, atom.offset + 12)
    except cdata.error:
        logger.debug("truncated %r atom", atom.name)
        return
    available = (min(atom.end, len(data)) - (atom.offset + 16)) // width
    if count > available:
        logger.debug("%r atom claims %d entries, only %d present",
                     atom.name, count, available)
        count = max(available, 0)
    fmt = fmt % count
    offsets = struct.unpack_from(fmt, data, atom.offset + 16)
    offsets = [o + (0, delta)[offset < o] for o in offsets]
    struct.pack_into(fmt, out, new_offset + 16, *offsets)


def _update_tfhd(data: bytes, out: bytearray, atom: Atom, delta: int,
                 offset: int) -> None:
    new_offset = atom.offset + (delta if atom.offset > offset else 0)
    try:
        flags = cdata.uint_be_from(data, atom.offset + 8) & 0xFFFFFF
        if flags & 1:
            o = cdata.ulonglong_be_from(data, atom.offset + 16)
            if o > offset:
                o += delta
            struct.pack_into(">Q", out, new_offset + 16, o)
    except cdata.error:
        logger.debug("truncated tfhd atom")


def update_offsets(data: bytes, out: bytearray, atoms: Atoms, delta: int,
                   offset: int) -> None:
    """Update offset tables in all 'stco' and 'co64' atoms and the base
    offsets in 'tfhd' atoms.

    `data` is the buffer `atoms` was parsed from, `out` the rewritten
    one in which `delta` bytes were inserted (or removed) at `offset`.
    """

    if delta == 0:
        return
    moov = atoms[b"moov"]
    for atom in moov.findall(b'stco', True):
        _update_offset_table(data, out, ">%dI", 4, atom, delta, offset)
    for atom in moov.findall(b'co64', True):
        _update_offset_table(data, out, ">%dQ", 8, atom, delta, offset)
    for moof in atoms.atoms:
        if moof.name == b"moof":
            for atom in moof.findall(b'tfhd', True):
                _update_tfhd(data, out, atom, delta, offset)
