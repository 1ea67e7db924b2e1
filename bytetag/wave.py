# Copyright (C) 2017  Borewit
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""Microsoft WAVE/RIFF tags.

Tags are read from an embedded ID3v2 tag in an ``id3 `` (or ``ID3 ``)
chunk with the ``LIST``/``INFO`` chunk as a per-field fallback. Writing
replaces both with a single ``id3 `` chunk at the end of the file.
"""

from __future__ import annotations

import logging

from bytetag._file import FileType
from bytetag._riff import RiffChunk, RiffFile, InvalidChunk, error
from bytetag._tags import ParseFilter
from bytetag._util import as_bytes
from bytetag.id3 import ID3Tags

__all__ = ["WAVE"]

logger = logging.getLogger(__name__)

# LIST/INFO ids and the fields they provide
_INFO_FIELDS = [
    ("INAM", "title"),
    ("IART", "artist"),
    ("IPRD", "album"),
    ("ICRD", "date"),
    ("IGNR", "genre"),
    ("ICMT", "comment"),
    ("IMUS", "composer"),
    ("ITRK", "track_number"),
]


class WaveFile(RiffFile):
    """Representation of a RIFF/WAVE file"""

    def __init__(self, data):
        super().__init__(data)

        if self.file_type != 'WAVE':
            raise InvalidChunk("Expected RIFF/WAVE.")


def _is_id3_chunk(chunk: RiffChunk) -> bool:
    return chunk.id in ("id3", "ID3")


def _is_info_chunk(chunk: RiffChunk) -> bool:
    return chunk.id == "LIST" and chunk.name == "INFO"


def _decode_info_text(data: bytes) -> str:
    data = data.split(b"\x00", 1)[0]
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def parse_info(chunk: RiffChunk) -> dict[str, str]:
    """The non-empty text values of a LIST/INFO chunk by id"""

    tags = {}
    for sub in chunk.subchunks():
        text = _decode_info_text(sub.read())
        if text:
            tags.setdefault(sub.id, text)
    return tags


class WAVE(FileType):
    """A Waveform Audio File Format file
    (WAVE, or more commonly known as WAV due to its filename extension)
    """

    @staticmethod
    def score(data: bytes) -> int:
        return int(data[:4] == b"RIFF" and data[8:12] == b"WAVE")

    @classmethod
    def read(cls, data, filter=ParseFilter.ALL):
        data = as_bytes(data)
        try:
            wave_file = WaveFile(data)
        except error as e:
            logger.debug("not a WAVE file: %s", e)
            return filter.build()

        tags = None
        info: dict[str, str] = {}
        for chunk in wave_file.chunks():
            if _is_id3_chunk(chunk) and tags is None:
                tags = ID3Tags.decode(chunk.read(), 0, filter)
            elif _is_info_chunk(chunk) and filter.tags and not info:
                info = parse_info(chunk)

        if tags is None:
            tags = ID3Tags()
        for key, value in info.items():
            tags.frames.setdefault(key, [value])
        fallback = {name: info[key] for key, name in _INFO_FIELDS
                    if key in info}
        return tags.to_metadata(filter, fallback=fallback)

    @classmethod
    def _rebuild(cls, data: bytes, extra: list[bytes]) -> bytes:
        wave_file = WaveFile(data)
        chunks = []
        for chunk in wave_file.chunks():
            if _is_id3_chunk(chunk) or _is_info_chunk(chunk):
                continue
            chunks.append(chunk.raw())
        return wave_file.rebuild(chunks + extra)

    @classmethod
    def write(cls, data, metadata):
        """Raises InvalidChunk"""

        tag = ID3Tags.encode(metadata)
        return cls._rebuild(as_bytes(data), [RiffChunk.render("id3", tag)])

    @classmethod
    def strip(cls, data):
        """Remove the ID3 and LIST/INFO chunks.

        Raises InvalidChunk
        """

        return cls._rebuild(as_bytes(data), [])

