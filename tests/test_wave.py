import struct

from hypothesis import given, strategies as st

from bytetag._riff import RiffFile, RiffChunk, InvalidChunk
from bytetag._tags import Metadata, Picture, ParseFilter
from bytetag._util import MalformedContainer
from bytetag.wave import WAVE
from tests import TestCase, make_wav, riff_chunk, info_chunk, id3_tag, \
    id3_frame, text_body, WAVE_FMT, WAVE_DATA, PNG_DATA


def chunk_ids(data):
    return [c.id for c in RiffFile(data).chunks()]


class TRiffFile(TestCase):

    def test_chunks(self):
        data = make_wav(info_chunk((b"INAM", b"t")))
        riff = RiffFile(data)
        self.assertEqual(riff.file_type, "WAVE")
        self.assertEqual(chunk_ids(data), ["fmt", "data", "LIST"])
        self.assertTrue("fmt" in riff)
        self.assertFalse("id3" in riff)
        self.assertEqual(riff["LIST"].name, "INFO")
        self.assertRaises(KeyError, riff.__getitem__, "id3")

    def test_padding(self):
        data = make_wav(riff_chunk(b"odd", b"abc"), riff_chunk(b"next", b""))
        riff = RiffFile(data)
        odd = riff["odd"]
        self.assertEqual(odd.data_size, 3)
        self.assertEqual(odd.size, 12)
        self.assertEqual(odd.read(), b"abc")
        self.assertEqual(odd.raw(), b"odd \x03\x00\x00\x00abc\x00")
        self.assertTrue("next" in riff)

    def test_missing_padding_byte(self):
        data = make_wav(riff_chunk(b"odd", b"abc"))[:-1]
        odd = RiffFile(data)["odd"]
        self.assertFalse(odd.truncated)
        self.assertEqual(odd.raw(), b"odd \x03\x00\x00\x00abc\x00")

    def test_truncated_chunk(self):
        data = make_wav(riff_chunk(b"junk", b"x" * 10))[:-4]
        chunk = RiffFile(data)["junk"]
        self.assertTrue(chunk.truncated)
        self.assertEqual(chunk.read(), b"x" * 6)
        self.assertRaises(InvalidChunk, chunk.raw)

    def test_invalid_id_stops(self):
        data = make_wav(b"\x01\x02\x03\x04\x00\x00\x00\x00",
                        riff_chunk(b"next", b""))
        self.assertEqual(chunk_ids(data), ["fmt", "data"])

    def test_not_riff(self):
        self.assertRaises(InvalidChunk, RiffFile, b"")
        self.assertRaises(InvalidChunk, RiffFile, WAVE_FMT)
        self.assertRaises(InvalidChunk, RiffFile, b"RIFF\x02\x00\x00\x00WA")

    def test_render(self):
        self.assertEqual(RiffChunk.render("id3", b"a"),
                         b"id3 \x01\x00\x00\x00a\x00")
        self.assertRaises(KeyError, RiffChunk.render, "id3\x00", b"")
        self.assertRaises(KeyError, RiffChunk.render, "toolong", b"")


class TWAVEScore(TestCase):

    def test_score(self):
        self.assertEqual(WAVE.score(make_wav()), 1)
        self.assertEqual(WAVE.score(b"RIFF\x00\x00\x00\x00AVI "), 0)
        self.assertEqual(WAVE.score(b"RIFF"), 0)


class TWAVERead(TestCase):

    def test_empty(self):
        self.assertTrue(WAVE.read(make_wav()).is_empty())

    def test_id3_chunk(self):
        tag = id3_tag(id3_frame("TIT2", text_body(u"title")),
                      id3_frame("TRCK", text_body(u"2")))
        meta = WAVE.read(make_wav(riff_chunk(b"id3", tag)))
        self.assertEqual(meta.title, u"title")
        self.assertEqual(meta.track_number, 2)

    def test_upper_case_id3_chunk(self):
        tag = id3_tag(id3_frame("TIT2", text_body(u"title")))
        self.assertEqual(WAVE.read(make_wav(riff_chunk(b"ID3", tag))).title,
                         u"title")

    def test_info(self):
        info = info_chunk((b"INAM", b"name"), (b"IART", b"artist"),
                          (b"IPRD", b"album"), (b"ICRD", b"2001"),
                          (b"IGNR", b"Jazz"), (b"ICMT", b"comment"),
                          (b"IMUS", b"composer"), (b"ITRK", b"7"))
        meta = WAVE.read(make_wav(info))
        self.assertEqual(meta.title, u"name")
        self.assertEqual(meta.artist, u"artist")
        self.assertEqual(meta.album, u"album")
        self.assertEqual(meta.date, u"2001")
        self.assertEqual(meta.genre, u"Jazz")
        self.assertEqual(meta.comment, u"comment")
        self.assertEqual(meta.composer, u"composer")
        self.assertEqual(meta.track_number, 7)
        self.assertEqual(meta.raw_tags["INAM"], (u"name",))

    def test_info_latin1(self):
        meta = WAVE.read(make_wav(info_chunk((b"INAM", b"caf\xe9"))))
        self.assertEqual(meta.title, u"caf\xe9")

    def test_info_fallback(self):
        tag = id3_tag(id3_frame("TIT2", text_body(u"id3 title")))
        data = make_wav(info_chunk((b"INAM", b"info title"),
                                   (b"IART", b"info artist")),
                        riff_chunk(b"id3", tag))
        meta = WAVE.read(data)
        self.assertEqual(meta.title, u"id3 title")
        self.assertEqual(meta.artist, u"info artist")

    def test_filter(self):
        body = b"\x00image/png\x00\x03\x00" + PNG_DATA
        tag = id3_tag(id3_frame("APIC", body))
        data = make_wav(info_chunk((b"INAM", b"t")), riff_chunk(b"id3", tag))
        meta = WAVE.read(data, ParseFilter.PICTURES_ONLY)
        self.assertEqual(meta.title, None)
        self.assertEqual(meta.picture.data, PNG_DATA)
        meta = WAVE.read(data, ParseFilter.NO_PICTURES)
        self.assertEqual((meta.title, meta.picture), (u"t", None))

    def test_truncated_id3_chunk(self):
        tag = id3_tag(id3_frame("TIT2", text_body(u"title")),
                      id3_frame("TPE1", text_body(u"artist")))
        data = make_wav(riff_chunk(b"id3", tag))[:-8]
        meta = WAVE.read(data)
        self.assertEqual(meta.title, u"title")
        self.assertEqual(meta.artist, None)

    def test_not_wave(self):
        self.assertTrue(WAVE.read(b"RIFF").is_empty())
        self.assertTrue(
            WAVE.read(b"RIFF\x04\x00\x00\x00AVI ").is_empty())

    @given(st.binary(max_size=100))
    def test_never_raises(self, data):
        WAVE.read(b"RIFF" + struct.pack("<I", len(data) + 4) + b"WAVE" +
                  data)


class TWAVEWrite(TestCase):

    def test_write(self):
        data = make_wav(info_chunk((b"INAM", b"old")))
        new = WAVE.write(data, Metadata(title=u"new", artist=u"a"))
        self.assertEqual(chunk_ids(new), ["fmt", "data", "id3"])
        meta = WAVE.read(new)
        self.assertEqual((meta.title, meta.artist), (u"new", u"a"))
        self.assertFalse("INAM" in meta.raw_tags)

    def test_riff_size(self):
        new = WAVE.write(make_wav(), Metadata(title=u"odd"))
        self.assertEqual(struct.unpack("<I", new[4:8])[0], len(new) - 8)
        self.assertEqual(len(new) % 2, 0)

    def test_keeps_audio(self):
        new = WAVE.write(make_wav(), Metadata(title=u"t"))
        self.assertTrue(new[12:].startswith(WAVE_FMT + WAVE_DATA))

    def test_replaces_both_id3_chunks(self):
        tag = id3_tag(id3_frame("TIT2", text_body(u"old")))
        data = make_wav(riff_chunk(b"ID3", tag), riff_chunk(b"id3", tag),
                        riff_chunk(b"bext", b"\x00" * 6))
        new = WAVE.write(data, Metadata(title=u"new"))
        self.assertEqual(chunk_ids(new), ["fmt", "data", "bext", "id3"])
        self.assertEqual(WAVE.read(new).title, u"new")

    def test_trailing_data(self):
        data = make_wav(trailing=b"trailing junk")
        new = WAVE.write(data, Metadata(title=u"t"))
        self.assertTrue(new.endswith(b"trailing junk"))
        self.assertEqual(WAVE.read(new).title, u"t")

    def test_picture(self):
        pic = Picture("image/png", PNG_DATA, u"cover")
        new = WAVE.write(make_wav(), Metadata(picture=pic))
        self.assertEqual(WAVE.read(new).picture, pic)

    def test_truncated(self):
        data = make_wav(riff_chunk(b"junk", b"x" * 10))[:-4]
        self.assertRaises(MalformedContainer, WAVE.write, data, Metadata())
        self.assertRaises(MalformedContainer, WAVE.strip, data)

    def test_invalid_chunk_id(self):
        data = make_wav(riff_chunk(b"\x01bad", b"xx"),
                        riff_chunk(b"junk", b"x"))
        self.assertRaises(MalformedContainer, WAVE.write, data, Metadata())
        self.assertRaises(MalformedContainer, WAVE.strip, data)

    def test_invalid_chunk_id_before_audio(self):
        body = b"WAVE" + WAVE_FMT + riff_chunk(b"b\xffd ", b"") + WAVE_DATA
        data = b"RIFF" + struct.pack("<I", len(body)) + body
        self.assertEqual(chunk_ids(data), ["fmt"])
        self.assertRaises(InvalidChunk, WAVE.write, data,
                          Metadata(title=u"t"))
        self.assertTrue(WAVE.read(data).is_empty())

    def test_not_wave(self):
        self.assertRaises(InvalidChunk, WAVE.write, b"RIFF", Metadata())
        self.assertRaises(InvalidChunk, WAVE.write,
                          b"RIFF\x04\x00\x00\x00AVI ", Metadata())


class TWAVEStrip(TestCase):

    def test_strip(self):
        tag = id3_tag(id3_frame("TIT2", text_body(u"t")))
        data = make_wav(info_chunk((b"INAM", b"t")), riff_chunk(b"id3", tag))
        new = WAVE.strip(data)
        self.assertEqual(new, make_wav())
        self.assertTrue(WAVE.read(new).is_empty())

    def test_keeps_other_lists(self):
        adtl = riff_chunk(b"LIST", b"adtl" + riff_chunk(b"labl", b"x" * 6))
        data = make_wav(adtl, info_chunk((b"INAM", b"t")))
        self.assertEqual(WAVE.strip(data), make_wav(adtl))

    def test_idempotent(self):
        data = make_wav(info_chunk((b"INAM", b"t")), riff_chunk(b"bext", b"x"))
        once = WAVE.strip(data)
        self.assertEqual(WAVE.strip(once), once)
        self.assertEqual(WAVE.strip(make_wav()), make_wav())
