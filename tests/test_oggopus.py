from hypothesis import given, strategies as st

from bytetag._tags import Metadata, Picture, ParseFilter
from bytetag._util import MalformedContainer
from bytetag.ogg import OggPage, parse_pages
from bytetag.oggopus import OggOpus, OpusTags, OggOpusHeaderError, \
    error as OpusError
from tests import TestCase, make_opus, make_page, paginate, opus_tags, \
    make_oggflac, table_crc, OPUS_HEAD, OPUS_AUDIO, JPEG_DATA


def make_long_opus(tags, serial=0x1234):
    """An Opus stream with the comment packet spread over several pages"""

    tag_pages = paginate(tags, 1, serial)
    count = len(parse_pages(tag_pages))
    return b"".join([
        make_page([OPUS_HEAD], 0, serial, flags=0x02),
        tag_pages,
        make_page([OPUS_AUDIO], count + 1, serial, position=960),
        make_page([OPUS_AUDIO], count + 2, serial, flags=0x04,
                  position=1920),
    ])


def comment_packet(data):
    pages = parse_pages(data)
    return OggPage.to_packets(pages[1:])[0]


class TOpusTags(TestCase):

    def test_load(self):
        tags = OpusTags(opus_tags("TITLE=t", vendor=b"v"))
        self.assertEqual(tags.vendor, u"v")
        self.assertEqual(tags.as_dict(), {"TITLE": [u"t"]})
        self.assertEqual(tags._pad_data, b"")

    def test_not_tags(self):
        self.assertRaises(OpusError, OpusTags, OPUS_HEAD)

    def test_padding_dropped(self):
        tags = OpusTags(opus_tags("TITLE=t", extra=b"\x00" * 10))
        self.assertEqual(tags._pad_data, b"")
        self.assertFalse(tags.write().endswith(b"\x00" * 10))

    def test_extra_data_kept(self):
        tags = OpusTags(opus_tags("TITLE=t", extra=b"\x01binary"))
        self.assertEqual(tags._pad_data, b"\x01binary")
        self.assertTrue(tags.write().endswith(b"\x01binary"))

    def test_write(self):
        tags = OpusTags()
        tags.append(("TITLE", u"t"))
        self.assertTrue(tags.write().startswith(b"OpusTags"))
        self.assertEqual(OpusTags(tags.write()).as_dict(),
                         {"TITLE": [u"t"]})


class TOggOpusScore(TestCase):

    def test_score(self):
        self.assertEqual(OggOpus.score(make_opus()), 1)
        self.assertEqual(OggOpus.score(make_oggflac()), 0)
        self.assertEqual(OggOpus.score(b"OggS" + b"\x00" * 10), 0)
        self.assertEqual(OggOpus.score(b"ID3"), 0)


class TOggOpusRead(TestCase):

    def test_read(self):
        data = make_opus(opus_tags("TITLE=t", "ALBUMARTIST=aa",
                                   "TRACKNUMBER=4", "TRACKTOTAL=9"))
        meta = OggOpus.read(data)
        self.assertEqual(meta.title, u"t")
        self.assertEqual(meta.album_artist, u"aa")
        self.assertEqual((meta.track_number, meta.total_tracks), (4, 9))

    def test_multiple_pages(self):
        data = make_long_opus(opus_tags("TITLE=" + "x" * 3000, "ARTIST=a"))
        self.assertTrue(len(parse_pages(data)) > 4)
        meta = OggOpus.read(data)
        self.assertEqual(meta.title, u"x" * 3000)
        self.assertEqual(meta.artist, u"a")

    def test_other_stream_first(self):
        other = make_page([b"other stream"], 0, serial=1, flags=0x02)
        data = other + make_opus(opus_tags("TITLE=t"), serial=2)
        self.assertEqual(OggOpus.read(data).title, u"t")

    def test_unsupported_version(self):
        head = OPUS_HEAD[:8] + b"\x10" + OPUS_HEAD[9:]
        data = make_page([head], 0, flags=0x02) + \
            make_page([opus_tags("TITLE=t")], 1)
        self.assertTrue(OggOpus.read(data).is_empty())
        self.assertRaises(OggOpusHeaderError, OggOpus.write, data,
                          Metadata())

    def test_missing_tags(self):
        data = make_page([OPUS_HEAD], 0, flags=0x02) + \
            make_page([OPUS_AUDIO], 1)
        self.assertTrue(OggOpus.read(data).is_empty())
        self.assertRaises(OggOpusHeaderError, OggOpus.write, data,
                          Metadata())

    def test_truncated(self):
        data = make_long_opus(opus_tags("TITLE=" + "x" * 3000))
        pages = parse_pages(data)
        cut = data[:pages[2].offset]
        self.assertTrue(OggOpus.read(cut).is_empty())
        self.assertRaises(MalformedContainer, OggOpus.write, cut,
                          Metadata())

    def test_filter(self):
        data = OggOpus.write(make_opus(), Metadata(
            title=u"t", picture=Picture("image/jpeg", JPEG_DATA)))
        meta = OggOpus.read(data, ParseFilter.NO_PICTURES)
        self.assertEqual((meta.title, meta.picture), (u"t", None))
        meta = OggOpus.read(data, ParseFilter.PICTURES_ONLY)
        self.assertEqual(meta.title, None)
        self.assertEqual(meta.picture.data, JPEG_DATA)

    def test_invalid_keys(self):
        data = make_opus(opus_tags(u"\xc4RTIST=x", "A~B=y", "TITLE=ok"))
        meta = OggOpus.read(data)
        self.assertEqual((meta.title, meta.artist), (u"ok", None))

    @given(st.lists(st.text(), max_size=10))
    def test_any_comment_text(self, comments):
        OggOpus.read(make_opus(opus_tags(*comments)))

    @given(st.binary(max_size=100))
    def test_never_raises(self, data):
        OggOpus.read(make_opus()[:80] + data)


class TOggOpusWrite(TestCase):

    def test_write(self):
        data = OggOpus.write(make_opus(opus_tags("TITLE=old")),
                             Metadata(title=u"new", comment=u"c"))
        meta = OggOpus.read(data)
        self.assertEqual((meta.title, meta.comment), (u"new", u"c"))
        self.assertEqual(meta.raw_tags["COMMENT"], (u"c",))

    def test_empty_field(self):
        data = OggOpus.write(make_opus(), Metadata(title=u"", artist=u"a"))
        meta = OggOpus.read(data)
        self.assertEqual((meta.title, meta.artist), (None, u"a"))

    def test_checksums(self):
        old = make_opus()
        new = OggOpus.write(old, Metadata(title=u"t"))
        old_crc = parse_pages(old)[1].checksum
        pages = parse_pages(new)
        self.assertNotEqual(pages[1].checksum, old_crc)
        for page in pages:
            raw = bytearray(new[page.offset:page.offset + page.size])
            raw[22:26] = b"\x00" * 4
            self.assertEqual(page.checksum, table_crc(raw))

    def test_audio_untouched(self):
        old = make_opus()
        audio = parse_pages(old)[2].offset
        new = OggOpus.write(old, Metadata(title=u"t"))
        self.assertTrue(new.endswith(old[audio:]))
        self.assertTrue(new.startswith(old[:parse_pages(old)[1].offset]))

    def test_grow_to_many_pages(self):
        old = make_opus()
        new = OggOpus.write(old, Metadata(lyrics=u"la " * 3000))
        pages = parse_pages(new)
        self.assertTrue(len(pages) > 4)
        self.assertEqual([p.sequence for p in pages],
                         list(range(len(pages))))
        self.assertTrue(pages[-1].last)
        self.assertEqual(pages[-1].position, 1920)
        self.assertEqual(OggOpus.read(new).lyrics, u"la " * 3000)

    def test_shrink_to_one_page(self):
        old = make_long_opus(opus_tags("TITLE=" + "x" * 3000))
        new = OggOpus.write(old, Metadata(title=u"short"))
        pages = parse_pages(new)
        self.assertEqual(len(pages), 4)
        self.assertEqual([p.sequence for p in pages], [0, 1, 2, 3])
        self.assertEqual(OggOpus.read(new).title, u"short")

    def test_keeps_extra_data(self):
        old = make_opus(opus_tags("TITLE=t", extra=b"\x01binary"))
        new = OggOpus.write(old, Metadata(title=u"x"))
        self.assertTrue(comment_packet(new).endswith(b"\x01binary"))
        new = OggOpus.strip(new)
        self.assertTrue(comment_packet(new).endswith(b"\x01binary"))

    def test_vendor(self):
        new = OggOpus.write(make_opus(), Metadata(), vendor=u"my vendor")
        self.assertEqual(OpusTags(comment_packet(new)).vendor, u"my vendor")

    def test_picture(self):
        pic = Picture("image/jpeg", JPEG_DATA, u"front", 3)
        new = OggOpus.write(make_opus(), Metadata(picture=pic))
        self.assertTrue(b"METADATA_BLOCK_PICTURE=" in comment_packet(new))
        self.assertEqual(OggOpus.read(new).picture, pic)

    def test_not_opus(self):
        self.assertRaises(OggOpusHeaderError, OggOpus.write, make_oggflac(),
                          Metadata())
        self.assertRaises(MalformedContainer, OggOpus.write, b"",
                          Metadata())


class TOggOpusStrip(TestCase):

    def test_strip(self):
        old = make_opus(opus_tags("TITLE=t", "ARTIST=a"))
        new = OggOpus.strip(old)
        self.assertTrue(OggOpus.read(new).is_empty())
        self.assertEqual(len(parse_pages(new)), 4)
        self.assertEqual(OpusTags(comment_packet(new)).as_dict(), {})

    def test_idempotent(self):
        new = OggOpus.strip(make_opus(opus_tags("TITLE=t")))
        self.assertEqual(OggOpus.strip(new), new)
