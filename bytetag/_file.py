# Copyright (C) 2005  Michael Urman
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

from __future__ import annotations

from collections.abc import Sequence

from bytetag._tags import Metadata, ParseFilter
from bytetag._util import UnsupportedFormat, as_bytes


class FileType:
    """An abstract tag codec for one container format.

    Codecs are stateless, all operations are class methods which take
    the complete file contents and return new contents or the decoded
    metadata. The input is never modified.
    """

    @staticmethod
    def score(data: bytes) -> int:
        """Returns a positive number if `data` looks like this format,
        0 otherwise. Never raises.
        """

        raise NotImplementedError

    @classmethod
    def read(cls, data: bytes,
             filter: ParseFilter = ParseFilter.ALL) -> Metadata:
        """Decode the metadata. Broken tags give partial or empty
        results instead of errors.
        """

        raise NotImplementedError

    @classmethod
    def write(cls, data: bytes, metadata: Metadata) -> bytes:
        """Returns `data` with its tags replaced by `metadata`.

        Raises MalformedContainer (or a subclass) if the container can't
        be rewritten safely.
        """

        raise NotImplementedError

    @classmethod
    def strip(cls, data: bytes) -> bytes:
        """Returns `data` with all tags removed.

        Raises MalformedContainer (or a subclass) if the container can't
        be rewritten safely.
        """

        raise NotImplementedError


def _default_formats() -> list[type[FileType]]:
    from bytetag.mp4 import MP4
    from bytetag.mp3 import MP3
    from bytetag.flac import FLAC
    from bytetag.oggflac import OggFLAC
    from bytetag.wave import WAVE
    from bytetag.oggopus import OggOpus
    from bytetag.aac import AAC

    # the order matters, the first match wins
    return [MP4, MP3, FLAC, OggFLAC, WAVE, OggOpus, AAC]


def detect(data, formats: Sequence[type[FileType]] | None = None
           ) -> type[FileType] | None:
    """Returns the first format in `formats` (by default all known ones)
    which recognizes `data`, or None.
    """

    data = as_bytes(data)
    if formats is None:
        formats = _default_formats()
    for kind in formats:
        if kind.score(data) > 0:
            return kind
    return None


def is_supported(data, formats: Sequence[type[FileType]] | None = None
                 ) -> bool:
    """True if any of the formats recognizes `data`"""

    return detect(data, formats) is not None


def _find(data: bytes, formats) -> type[FileType]:
    kind = detect(data, formats)
    if kind is None:
        raise UnsupportedFormat("unknown or unsupported file format")
    return kind


def read(data, filter: ParseFilter = ParseFilter.ALL,
         formats: Sequence[type[FileType]] | None = None) -> Metadata:
    """Guess the type of the data and decode its metadata.

    Raises UnsupportedFormat if no format matches.
    """

    data = as_bytes(data)
    return _find(data, formats).read(data, filter)


def write(data, metadata: Metadata,
          formats: Sequence[type[FileType]] | None = None) -> bytes:
    """Guess the type of the data and return it with new tags.

    Raises UnsupportedFormat if no format matches and
    MalformedContainer if the data can't be rewritten.
    """

    data = as_bytes(data)
    return _find(data, formats).write(data, metadata)


def strip(data, formats: Sequence[type[FileType]] | None = None) -> bytes:
    """Guess the type of the data and return it without tags.

    Raises UnsupportedFormat if no format matches and
    MalformedContainer if the data can't be rewritten.
    """

    data = as_bytes(data)
    return _find(data, formats).strip(data)
