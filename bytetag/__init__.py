# Copyright (C) 2005  Michael Urman
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""bytetag reads and writes audio metadata held in memory.

    import bytetag
    metadata = bytetag.read(data)
    data = bytetag.write(data, metadata.replace(title="New Title"))

Supported are MP3 and AAC (ID3v2 and ID3v1), M4A/MP4 (iTunes atoms),
FLAC and Ogg FLAC, Ogg Opus (Vorbis comments) and WAVE (ID3v2 and RIFF
INFO). All functions take the complete file contents as a bytes-like
object and return new bytes, the input is never modified.

Format specific codecs live in their own modules (bytetag.mp3,
bytetag.flac, ...) and can be used directly.
"""

import logging

from bytetag._util import BytetagError, UnsupportedFormat, MalformedContainer
from bytetag._tags import Metadata, Picture, ParseFilter, CLEAR
from bytetag._file import FileType, detect, is_supported, read, write, strip


version = (1, 0, 0)
"""Version tuple."""

version_string = ".".join(map(str, version))
"""Version string."""

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "version", "version_string", "Metadata", "Picture", "ParseFilter",
    "CLEAR", "FileType", "detect", "is_supported", "read", "write", "strip",
    "BytetagError", "UnsupportedFormat", "MalformedContainer",
]
