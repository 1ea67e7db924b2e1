# Copyright (C) 2006  Joe Wreschnig
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Read and write Ogg bitstreams and pages.

This module reads and writes a subset of the Ogg bitstream format
version 0 held in memory. Codec specific handling lives in
bytetag.oggopus and bytetag.oggflac.

This implementation is based on the RFC 3533 standard found at
http://www.xiph.org/ogg/doc/rfc3533.txt.
"""

from __future__ import annotations

import logging
import struct
import zlib

from bytetag._util import BytetagError, MalformedContainer, cdata

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<4sBBqIIIB")


class error(BytetagError):
    """Ogg stream parsing errors."""


class OggWriteError(error, MalformedContainer):
    """The stream can't be rewritten"""


def ogg_crc32(data) -> int:
    """The Ogg CRC-32 (polynomial 0x04c11db7, not reflected, initial
    value 0) of `data`.
    """

    # Python's CRC is swapped relative to Ogg's needs.
    crc = (~zlib.crc32(bytes(data).translate(cdata.bitswap),
                       0xffffffff)) & 0xffffffff
    # Although we're using to_uint_be, this actually makes the CRC
    # a proper le integer, since Python's CRC is byteswapped.
    return cdata.uint_le(cdata.to_uint_be(crc).translate(cdata.bitswap))


class OggPage:
    """One Ogg page, holding whole packets or pieces of them.

    On disk a page is the 27 byte header, the lacing table with one byte
    per 255 byte segment and then the packet data. Given a buffer and an
    offset the page is parsed in place and `packets` are memoryviews
    into that buffer, without arguments an empty page is created.

    Attributes:
        version (`int`): stream structure version (currently always 0)
        position (`int`): granule position, -1 if no packet ends here
            (default 0)
        serial (`int`): logical stream serial number (default 0)
        sequence (`int`): page sequence number within logical stream
            (default 0)
        checksum (`int`): the CRC read from the page header (default 0)
        offset (`int` or `None`): offset this page was read from
            (default None)
        complete (`bool`): if the last packet on this page is complete
            (default True)
        packets (list[bytes]): list of raw packet data (default [])

    A page with `complete` unset has to be followed by one with
    `continued` set.
    """

    version: int = 0
    __type_flags: int = 0
    position: int = 0
    serial: int = 0
    sequence: int = 0
    checksum: int = 0
    offset: int | None = None
    complete: bool = True

    def __init__(self, data: bytes | None = None, offset: int = 0):
        """Raises error"""

        self.packets: list = []

        if data is None:
            return

        self.offset = offset

        try:
            (oggs, self.version, self.__type_flags,
             self.position, self.serial, self.sequence,
             self.checksum, segments) = _HEADER.unpack_from(data, offset)
        except struct.error as e:
            raise error("unable to read full header at 0x%x" % offset) from e

        if oggs != b"OggS":
            raise error("read %r, expected %r, at 0x%x" % (
                oggs, b"OggS", offset))

        if self.version != 0:
            raise error("version %r unsupported" % self.version)

        start = offset + _HEADER.size
        lacing_bytes = data[start:start + segments]
        if len(lacing_bytes) != segments:
            raise error("unable to read %r lacing bytes" % segments)

        total = 0
        lacings = []
        for c in lacing_bytes:
            total += c
            if c < 255:
                lacings.append(total)
                total = 0
        if total:
            lacings.append(total)
            self.complete = False

        pos = start + segments
        if pos + sum(lacings) > len(data):
            raise error("unable to read full data")

        view = memoryview(data)
        for length in lacings:
            self.packets.append(view[pos:pos + length])
            pos += length

    def __eq__(self, other):
        """Two Ogg pages are the same if they write the same data."""

        if not isinstance(other, OggPage):
            return NotImplemented
        return self.write() == other.write()

    __hash__ = object.__hash__

    def __repr__(self):
        attrs = ['version', 'position', 'serial', 'sequence', 'offset',
                 'complete', 'continued', 'first', 'last']
        values = ["%s=%r" % (attr, getattr(self, attr)) for attr in attrs]
        return "<%s %s, %d bytes in %d packets>" % (
            type(self).__name__, " ".join(values),
            sum(map(len, self.packets)), len(self.packets))

    def write(self) -> bytes:
        """Serialize the page with a freshly computed checksum.

        Raises ValueError if the packets need more than 255 lacing
        values.
        """

        lacing_data = []
        for datum in self.packets:
            quot, rem = divmod(len(datum), 255)
            lacing_data.append(b"\xff" * quot + bytes([rem]))
        lacing = b"".join(lacing_data)
        if not self.complete and lacing.endswith(b"\x00"):
            lacing = lacing[:-1]
        if len(lacing) > 255:
            raise ValueError("%d segments don't fit in a page" % len(lacing))

        data = b"".join([
            _HEADER.pack(b"OggS", self.version, self.__type_flags,
                         self.position, self.serial, self.sequence, 0,
                         len(lacing)),
            lacing,
        ] + [bytes(p) for p in self.packets])

        crc = ogg_crc32(data)
        return data[:22] + cdata.to_uint_le(crc) + data[26:]

    @property
    def size(self) -> int:
        """Number of bytes the page takes up once written"""

        size = _HEADER.size
        rem = None
        for datum in self.packets:
            quot, rem = divmod(len(datum), 255)
            size += quot + 1
        if not self.complete and rem == 0:
            # an unfinished packet of n*255 bytes needs no final 0 lacing
            size -= 1
        size += sum(map(len, self.packets))
        return size

    def __set_flag(self, bit: int, val: bool) -> None:
        mask = 1 << bit
        if val:
            self.__type_flags |= mask
        else:
            self.__type_flags &= ~mask

    @property
    def header_type(self) -> int:
        """The raw header type flags"""
        return self.__type_flags

    @property
    def continued(self) -> bool:
        """The first packet is continued from the previous page."""
        return cdata.test_bit(self.__type_flags, 0)

    @continued.setter
    def continued(self, v: bool) -> None:
        self.__set_flag(0, v)

    @property
    def first(self) -> bool:
        """This is the first page of a logical bitstream."""
        return cdata.test_bit(self.__type_flags, 1)

    @first.setter
    def first(self, v: bool) -> None:
        self.__set_flag(1, v)

    @property
    def last(self) -> bool:
        """This is the last page of a logical bitstream."""
        return cdata.test_bit(self.__type_flags, 2)

    @last.setter
    def last(self, v: bool) -> None:
        self.__set_flag(2, v)

    @staticmethod
    def renumber(data: bytearray, offset: int, serial: int,
                 start: int) -> None:
        """Renumber the pages of stream `serial` in place, starting with
        the page at `offset` and the sequence number `start`.

        Pages of other streams are skipped. Only sequence numbers and
        checksums change, so all offsets stay valid.

        Renumbering stops at the first invalid page.
        """

        number = start
        while offset + _HEADER.size <= len(data):
            try:
                page = OggPage(data, offset)
            except error:
                break
            size = page.size
            if page.serial == serial:
                struct.pack_into("<II", data, offset + 18, number, 0)
                crc = ogg_crc32(data[offset:offset + size])
                struct.pack_into("<I", data, offset + 22, crc)
                number += 1
            offset += size

    @staticmethod
    def to_packets(pages: list[OggPage], strict: bool = False) -> list[bytes]:
        """Join the packet pieces of consecutive pages of one stream.

        Raises ValueError on a serial or sequence mismatch. With `strict`
        the pages also have to begin and end on packet boundaries.
        """

        serial = pages[0].serial
        sequence = pages[0].sequence
        packets: list[list] = []

        if strict:
            if pages[0].continued:
                raise ValueError("first packet is continued")
            if not pages[-1].complete:
                raise ValueError("last packet does not complete")
        elif pages and pages[0].continued:
            packets.append([b""])

        for page in pages:
            if serial != page.serial:
                raise ValueError("invalid serial number in %r" % page)
            elif sequence != page.sequence:
                raise ValueError("bad sequence number in %r" % page)
            else:
                sequence += 1

            if page.packets:
                if page.continued:
                    packets[-1].append(page.packets[0])
                else:
                    packets.append([page.packets[0]])
                packets.extend([p] for p in page.packets[1:])

        return [b"".join(p) for p in packets]

    @classmethod
    def _from_packets_try_preserve(cls, packets: list[bytes],
                                   old_pages: list[OggPage]) -> list[OggPage]:
        """Paginate `packets` using the page layout of `old_pages` if the
        packet sizes are unchanged, otherwise fall back to from_packets().
        """

        old_packets = cls.to_packets(old_pages)

        if [len(p) for p in packets] != [len(p) for p in old_packets]:
            # doesn't match, fall back
            return cls.from_packets(packets, old_pages[0].sequence)

        new_data = b"".join(packets)
        new_pages = []
        for old in old_pages:
            new = OggPage()
            new.sequence = old.sequence
            new.complete = old.complete
            new.continued = old.continued
            new.position = old.position
            for p in old.packets:
                data, new_data = new_data[:len(p)], new_data[len(p):]
                new.packets.append(data)
            new_pages.append(new)
        assert not new_data

        return new_pages

    @staticmethod
    def from_packets(packets: list[bytes], sequence: int = 0,
                     default_size: int = 4096,
                     wiggle_room: int = 2048) -> list[OggPage]:
        """Split packets into pages of about `default_size` bytes.

        A page may grow by up to `wiggle_room` bytes if that finishes
        the current packet. Only `sequence` is set on the new pages,
        serial, position and flags are left for replace() to fill in.
        """

        chunk_size = (default_size // 255) * 255

        pages: list[OggPage] = []

        page = OggPage()
        page.sequence = sequence

        for packet in packets:
            packet = bytes(packet)
            page.packets.append(b"")
            while packet:
                data, packet = packet[:chunk_size], packet[chunk_size:]
                if page.size < default_size and len(page.packets) < 255:
                    page.packets[-1] += data
                else:
                    # the packet continues on the next page, unless
                    # nothing of it made it onto this one
                    if page.packets[-1]:
                        page.complete = False
                        if len(page.packets) == 1:
                            page.position = -1
                    else:
                        page.packets.pop(-1)
                    pages.append(page)
                    page = OggPage()
                    page.continued = not pages[-1].complete
                    page.sequence = pages[-1].sequence + 1
                    page.packets.append(data)

                if len(packet) < wiggle_room:
                    page.packets[-1] += packet
                    packet = b""

        if page.packets:
            pages.append(page)

        return pages

    @classmethod
    def replace(cls, data: bytes, old_pages: list[OggPage],
                new_pages: list[OggPage]) -> bytes:
        """Returns a copy of `data` with `old_pages` swapped for
        `new_pages`.

        `old_pages` have to be parsed from `data`. Serial, sequence and
        the first/last flags are taken over from them. If the page count
        changes, the rest of the logical stream gets renumbered.
        """

        if not len(old_pages) or not len(new_pages):
            raise ValueError("empty pages list not allowed")

        first = old_pages[0].sequence
        for page, seq in zip(new_pages,
                             range(first, first + len(new_pages))):
            page.sequence = seq
            page.serial = old_pages[0].serial
            page.position = old_pages[-1].position

        new_pages[0].first = old_pages[0].first
        new_pages[0].last = old_pages[0].last
        new_pages[0].continued = old_pages[0].continued

        new_pages[-1].first = old_pages[-1].first
        new_pages[-1].last = old_pages[-1].last
        new_pages[-1].complete = old_pages[-1].complete
        for page in new_pages:
            if not page.complete and len(page.packets) == 1:
                page.position = -1

        new_data = [cls.write(p) for p in new_pages]

        # pair up with the old pages, extra new pages go with the last one
        pages_diff = len(old_pages) - len(new_data)
        if pages_diff > 0:
            new_data.extend([b""] * pages_diff)
        elif pages_diff < 0:
            new_data[pages_diff - 1:] = [b"".join(new_data[pages_diff - 1:])]

        out = bytearray()
        pos = 0
        for old_page, page_data in zip(old_pages, new_data):
            assert old_page.offset is not None
            out += data[pos:old_page.offset]
            out += page_data
            pos = old_page.offset + old_page.size
        new_data_end = len(out)
        out += data[pos:]

        if len(old_pages) != len(new_pages):
            cls.renumber(out, new_data_end, new_pages[-1].serial,
                         new_pages[-1].sequence + 1)

        return bytes(out)


def parse_pages(data: bytes) -> list[OggPage]:
    """Parse all Ogg pages in `data`.

    Bytes which don't start a valid page are skipped until the next
    capture pattern, so this never raises for bad input.
    """

    pages = []
    offset = 0
    while True:
        offset = data.find(b"OggS", offset)
        if offset == -1:
            break
        try:
            page = OggPage(data, offset)
        except error as e:
            logger.debug("skipping invalid page at 0x%x: %s", offset, e)
            offset += 1
            continue
        pages.append(page)
        offset += page.size
    return pages


def stream_pages(pages: list[OggPage],
                 serial: int | None = None) -> list[OggPage]:
    """The pages of one logical stream, by default the first one"""

    if serial is None:
        if not pages:
            return []
        serial = pages[0].serial
    return [p for p in pages if p.serial == serial]


def header_pages(pages: list[OggPage], count: int) -> list[OggPage]:
    """Returns the leading pages of a logical stream which hold its
    first `count` packets.

    Raises error if the stream ends before all packets are complete or
    the page sequence has a gap.
    """

    result = []
    complete = 0
    for page in pages:
        if result and page.sequence != result[-1].sequence + 1:
            raise error("missing page after %r" % result[-1])
        result.append(page)
        complete += len(page.packets)
        if not page.complete:
            complete -= 1
        if complete >= count:
            return result
    raise error("stream ends before header packet %d" % count)


def replace_packets(data: bytes, pages: list[OggPage],
                    packets: list[bytes]) -> bytes:
    """Replace the packets held by `pages` with `packets`.

    `pages` must be a run of consecutive pages of one stream starting
    with a fresh packet and ending with a complete one, as returned by
    header_pages().
    """

    if not pages:
        raise OggWriteError("no pages to replace")
    if pages[0].continued or not pages[-1].complete:
        raise OggWriteError("header packets don't start and end on pages")

    new_pages = OggPage._from_packets_try_preserve(packets, pages)
    return OggPage.replace(data, pages, new_pages)
