import struct
from unittest import TestCase as BaseTestCase

try:
    import pytest
except ImportError:
    raise SystemExit("pytest missing: pip install -e '.[tests]'")


class TestCase(BaseTestCase):

    # silence deprec warnings about useless renames
    failUnless = BaseTestCase.assertTrue
    failIf = BaseTestCase.assertFalse
    failUnlessEqual = BaseTestCase.assertEqual
    failUnlessRaises = BaseTestCase.assertRaises
    failIfEqual = BaseTestCase.assertNotEqual

    def assertReallyEqual(self, a, b):
        self.assertEqual(a, b)
        self.assertEqual(b, a)
        self.assertTrue(a == b)
        self.assertTrue(b == a)
        self.assertFalse(a != b)
        self.assertFalse(b != a)

    def assertReallyNotEqual(self, a, b):
        self.assertNotEqual(a, b)
        self.assertNotEqual(b, a)
        self.assertFalse(a == b)
        self.assertFalse(b == a)
        self.assertTrue(a != b)
        self.assertTrue(b != a)


def unit(run=[], exitfirst=False):
    args = []

    if run:
        args.append("-k")
        args.append(" or ".join(run))

    if exitfirst:
        args.append("-x")

    args.append("tests")

    return pytest.main(args=args)


# Everything below builds small but structurally valid files in memory.

PNG_DATA = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x01" * 17
JPEG_DATA = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x02" * 20 + b"\xff\xd9"


# MPEG

MP3_FRAME = b"\xff\xfb\x90\x64" + b"\x00" * 413
ADTS_FRAME = b"\xff\xf1\x50\x80\x02\x1f\xfc" + b"\x00" * 9


def synchsafe(value):
    return bytes([(value >> 21) & 0x7F, (value >> 14) & 0x7F,
                  (value >> 7) & 0x7F, value & 0x7F])


def id3_frame(frame_id, body, version=4, flags=0):
    """A raw ID3v2 frame, `frame_id` has to fit the version"""

    if version == 2:
        return frame_id.encode("ascii") + \
            struct.pack(">I", len(body))[1:] + body
    elif version == 3:
        return frame_id.encode("ascii") + \
            struct.pack(">IH", len(body), flags) + body
    return frame_id.encode("ascii") + synchsafe(len(body)) + \
        struct.pack(">H", flags) + body


def text_body(text, encoding=3):
    codec = {0: "latin-1", 1: "utf-16", 2: "utf-16-be", 3: "utf-8"}[encoding]
    return bytes([encoding]) + text.encode(codec)


def id3_tag(*frames, version=4, flags=0, padding=0):
    body = b"".join(frames) + b"\x00" * padding
    return b"ID3" + bytes([version, 0, flags]) + synchsafe(len(body)) + body


def id3v1_tag(title="", artist="", album="", year="", comment="", track=0,
              genre=255):
    def field(text, size):
        return text.encode("latin-1").ljust(size, b"\x00")[:size]

    if track:
        comment_data = field(comment, 28) + bytes([0, track])
    else:
        comment_data = field(comment, 30)
    return b"".join([b"TAG", field(title, 30), field(artist, 30),
                     field(album, 30), field(year, 4), comment_data,
                     bytes([genre])])


def make_mp3(tag=b"", frames=3, v1=b""):
    return tag + MP3_FRAME * frames + v1


def make_adts(tag=b"", frames=3, v1=b""):
    return tag + ADTS_FRAME * frames + v1


# Vorbis comments and FLAC

STREAMINFO = struct.pack(">HH", 4096, 4096) + b"\x00\x00\x10" * 2 + \
    b"\x0a\xc4\x42\xf0" + b"\x00" * 4 + b"\x00" * 16
FLAC_AUDIO = b"\xff\xf8\x69\x08\x00\x0f\x90" + b"\x00" * 25


def vcomment(*comments, vendor=b"test vendor"):
    parts = [struct.pack("<I", len(vendor)), vendor,
             struct.pack("<I", len(comments))]
    for comment in comments:
        if isinstance(comment, str):
            comment = comment.encode("utf-8")
        parts.append(struct.pack("<I", len(comment)))
        parts.append(comment)
    return b"".join(parts)


def picture_body(mime="image/png", data=PNG_DATA, desc="", type=3):
    mime = mime.encode("ascii")
    desc = desc.encode("utf-8")
    return b"".join([
        struct.pack(">2I", type, len(mime)), mime,
        struct.pack(">I", len(desc)), desc,
        struct.pack(">5I", 16, 16, 24, 0, len(data)), data,
    ])


def flac_block(code, body, last=False):
    return bytes([code | (0x80 if last else 0)]) + \
        struct.pack(">I", len(body))[1:] + body


def make_flac(*blocks, audio=FLAC_AUDIO, prefix=b""):
    """`blocks` are (code, body) pairs following STREAMINFO"""

    blocks = [(0, STREAMINFO)] + list(blocks)
    data = [prefix, b"fLaC"]
    for i, (code, body) in enumerate(blocks):
        data.append(flac_block(code, body, i == len(blocks) - 1))
    data.append(audio)
    return b"".join(data)


# Ogg

def _make_crc_table():
    table = []
    for i in range(256):
        r = i << 24
        for j in range(8):
            if r & 0x80000000:
                r = ((r << 1) ^ 0x04C11DB7) & 0xFFFFFFFF
            else:
                r = (r << 1) & 0xFFFFFFFF
        table.append(r)
    return table


_CRC_TABLE = _make_crc_table()


def table_crc(data):
    """The Ogg CRC computed the slow way, with the lookup table"""

    crc = 0
    for byte in data:
        crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC_TABLE[(crc >> 24) ^ byte]
    return crc


def make_page(packets, sequence, serial=0x1234, flags=0, position=0,
              complete=True):
    """A raw Ogg page. For an incomplete page the length of the last
    packet has to be a multiple of 255.
    """

    lacing = []
    for i, packet in enumerate(packets):
        quot, rem = divmod(len(packet), 255)
        lacing.append(b"\xff" * quot)
        if complete or i != len(packets) - 1:
            lacing.append(bytes([rem]))
        else:
            assert rem == 0
    lacing = b"".join(lacing)
    header = struct.pack("<4sBBqIIIB", b"OggS", 0, flags, position, serial,
                         sequence, 0, len(lacing))
    page = header + lacing + b"".join(packets)
    return page[:22] + struct.pack("<I", table_crc(page)) + page[26:]


def paginate(packet, sequence, serial=0x1234, chunk=255 * 4):
    """Split one packet over as many pages as needed"""

    pages = []
    pieces = [packet[i:i + chunk] for i in range(0, len(packet), chunk)]
    for i, piece in enumerate(pieces):
        last = i == len(pieces) - 1
        pages.append(make_page([piece], sequence + i, serial,
                               flags=0x01 if i else 0, complete=last))
    return b"".join(pages)


OPUS_HEAD = b"OpusHead" + bytes([1, 2]) + struct.pack("<HIhB", 312, 48000,
                                                      0, 0)
OPUS_AUDIO = b"\xfc" + b"\x55" * 40


def opus_tags(*comments, vendor=b"test vendor", extra=b""):
    return b"OpusTags" + vcomment(*comments, vendor=vendor) + extra


def make_opus(tags=None, serial=0x1234):
    if tags is None:
        tags = opus_tags()
    return b"".join([
        make_page([OPUS_HEAD], 0, serial, flags=0x02),
        make_page([tags], 1, serial),
        make_page([OPUS_AUDIO], 2, serial, position=960),
        make_page([OPUS_AUDIO], 3, serial, flags=0x04, position=1920),
    ])


def oggflac_mapping(count):
    return b"\x7FFLAC\x01\x00" + struct.pack(">H", count) + b"fLaC" + \
        flac_block(0, STREAMINFO)


def make_oggflac(*blocks, count=None, serial=0x5678):
    """`blocks` are the (code, body) pairs following STREAMINFO, by
    default a single empty comment.
    """

    if not blocks:
        blocks = [(4, vcomment())]
    packets = [flac_block(code, body, i == len(blocks) - 1)
               for i, (code, body) in enumerate(blocks)]
    if count is None:
        count = len(packets)

    pages = [make_page([oggflac_mapping(count)], 0, serial, flags=0x02)]
    for i, packet in enumerate(packets):
        pages.append(make_page([packet], i + 1, serial))
    sequence = len(packets) + 1
    pages.append(make_page([FLAC_AUDIO], sequence, serial, position=4096))
    pages.append(make_page([FLAC_AUDIO], sequence + 1, serial, flags=0x04,
                           position=8192))
    return b"".join(pages)


# RIFF

def riff_chunk(id, data):
    return id.ljust(4) + struct.pack("<I", len(data)) + data + \
        b"\x00" * (len(data) % 2)


WAVE_FMT = riff_chunk(b"fmt ", struct.pack("<HHIIHH", 1, 2, 44100, 176400,
                                           4, 16))
WAVE_DATA = riff_chunk(b"data", b"\x01\x02" * 8)


def info_chunk(*items):
    """A LIST/INFO chunk from (id, bytes) pairs, values get a NUL"""

    return riff_chunk(b"LIST", b"INFO" + b"".join(
        riff_chunk(id, value + b"\x00") for id, value in items))


def make_wav(*chunks, trailing=b""):
    body = b"WAVE" + WAVE_FMT + WAVE_DATA + b"".join(chunks)
    return b"RIFF" + struct.pack("<I", len(body)) + body + trailing


# MP4

MDAT_DATA = b"\xde\xad\xbe\xef" * 8


def atom(name, data=b""):
    return struct.pack(">I4s", len(data) + 8, name) + data


def data_atom(flags, payload):
    return atom(b"data", struct.pack(">2I", flags, 0) + payload)


def text_item(name, text):
    return atom(name, data_atom(1, text.encode("utf-8")))


def ilst_atom(*items):
    return atom(b"ilst", b"".join(items))


def meta_atom(*children):
    hdlr = atom(b"hdlr", b"\x00" * 8 + b"mdirappl" + b"\x00" * 9)
    return atom(b"meta", b"\x00" * 4 + hdlr + b"".join(children))


def udta_atom(*children):
    return atom(b"udta", b"".join(children))


def _moov(children, chunk_offset):
    stco = atom(b"stco", struct.pack(">3I", 0, 1, chunk_offset))
    trak = atom(b"trak", atom(b"mdia", atom(b"minf", atom(b"stbl", stco))))
    return atom(b"moov", atom(b"mvhd", b"\x00" * 100) + trak +
                b"".join(children))


def make_mp4(*moov_children, brand=b"M4A "):
    """An MP4 file with an ftyp, a moov holding `moov_children` and an
    mdat the single chunk offset points to.
    """

    ftyp = atom(b"ftyp", brand + b"\x00\x00\x02\x00" + brand + b"isom")
    moov = _moov(moov_children, 0)
    moov = _moov(moov_children, len(ftyp) + len(moov) + 8)
    return ftyp + moov + atom(b"mdat", MDAT_DATA)
