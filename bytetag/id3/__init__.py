# Copyright (C) 2005  Michael Urman
#               2006  Lukas Lalinsky
#               2013  Christoph Reiter
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""ID3v2 and ID3v1 reading, ID3v2.4 writing.

This is based off of the following references:

* http://id3.org/id3v2.4.0-structure
* http://id3.org/id3v2.4.0-frames
* http://id3.org/id3v2.3.0
* http://id3.org/id3v2-00
* http://id3.org/ID3v1

Tags are always written as ID3v2.4 with UTF-8 text. Reading accepts
versions 2.2 to 2.4 and will accept null separators to generate
multi-valued text frames. ID3v1 is only read.
"""

from ._file import has_id3v2 as has_id3v2, tag_span as tag_span, \
    replace_tag as replace_tag, strip_tag as strip_tag
from ._specs import Encoding as Encoding, PictureType as PictureType
from ._util import ID3NoHeaderError as ID3NoHeaderError, error as error, \
    ID3UnsupportedVersionError as ID3UnsupportedVersionError, \
    ID3TagSizeError as ID3TagSizeError, BitPaddedInt as BitPaddedInt
from ._id3v1 import ParseID3v1 as ParseID3v1, find_id3v1 as find_id3v1
from ._tags import ID3Header as ID3Header, ID3Tags as ID3Tags
