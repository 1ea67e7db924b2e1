# Copyright (C) 2005  Michael Urman
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.

"""The format independent metadata record and its helpers."""

from __future__ import annotations

from typing import Any


class _Clear:
    """Marker for :meth:`Metadata.replace` which clears a field"""

    __slots__ = ()

    def __repr__(self):
        return "CLEAR"

    def __reduce__(self):
        return "CLEAR"


CLEAR = _Clear()


class _Frozen:

    __slots__ = ()

    def __setattr__(self, name, value):
        raise AttributeError(
            "%s is immutable, use replace()" % type(self).__name__)

    def __delattr__(self, name):
        raise AttributeError(
            "%s is immutable, use replace()" % type(self).__name__)


class Picture(_Frozen):
    """An embedded image.

    Attributes:
        mime (`str`): the MIME type, e.g. ``image/jpeg``
        data (`bytes`): the image data, always an owned copy
        desc (`str` or `None`): a short description
        type (`int`): the ID3 picture type, 3 (front cover) by default
    """

    __slots__ = ("mime", "data", "desc", "type")

    def __init__(self, mime: str, data, desc: str | None = None,
                 type: int = 3):
        object.__setattr__(self, "mime", mime)
        object.__setattr__(self, "data", bytes(data))
        object.__setattr__(self, "desc", desc)
        object.__setattr__(self, "type", type)

    def __eq__(self, other):
        if not isinstance(other, Picture):
            return NotImplemented
        return (self.mime, self.data, self.desc, self.type) == \
            (other.mime, other.data, other.desc, other.type)

    def __hash__(self):
        return hash((self.mime, self.data, self.desc, self.type))

    def __repr__(self):
        return "<%s mime=%r type=%d desc=%r, %d bytes>" % (
            type(self).__name__, self.mime, self.type, self.desc,
            len(self.data))


FIELDS = (
    "title", "artist", "album", "album_artist", "date",
    "track_number", "total_tracks", "disc_number", "total_discs",
    "genre", "comment", "composer", "publisher", "lyrics",
)
"""The scalar fields of :class:`Metadata`, in a stable order"""

_INT_FIELDS = frozenset(
    ["track_number", "total_tracks", "disc_number", "total_discs"])


def _freeze_raw(raw_tags) -> dict[str, tuple[str, ...]]:
    if not raw_tags:
        return {}
    return {str(k): tuple(v) for k, v in raw_tags.items()}


class Metadata(_Frozen):
    """Metadata(title=None, artist=None, ..., picture=None, raw_tags=None)

    An immutable record of the tags found in, or to be written to, a file.

    All scalar fields (see `FIELDS`) are `str` or `None`, except the
    track/disc numbers and totals which are `int` or `None`.
    `picture` is a :class:`Picture` or `None`. `raw_tags` maps the native
    tag keys of the file format to tuples of values in file order and is
    only filled by reading.

    To derive a changed copy use :meth:`replace`.
    """

    __slots__ = FIELDS + ("picture", "raw_tags")

    def __init__(self, *, picture: Picture | None = None,
                 raw_tags=None, **fields: Any):
        unknown = set(fields) - set(FIELDS)
        if unknown:
            raise TypeError("unknown fields: %s" % ", ".join(sorted(unknown)))

        for name in FIELDS:
            value = fields.get(name)
            if value is CLEAR:
                value = None
            if value is not None:
                if name in _INT_FIELDS:
                    if isinstance(value, bool) or not isinstance(value, int):
                        raise TypeError("%s must be an int" % name)
                elif not isinstance(value, str):
                    raise TypeError("%s must be a str" % name)
            object.__setattr__(self, name, value)

        if picture is CLEAR:
            picture = None
        if picture is not None and not isinstance(picture, Picture):
            raise TypeError("picture must be a Picture")
        object.__setattr__(self, "picture", picture)
        object.__setattr__(self, "raw_tags", _freeze_raw(raw_tags))

    def replace(self, **changes: Any) -> Metadata:
        """Returns a copy with the given fields changed.

        Fields not passed are kept, passing a value sets the field and
        passing `CLEAR` (or `None`) clears it.

        ::

            meta.replace(title="Foo", comment=CLEAR)
        """

        values = self.as_dict()
        for key, value in changes.items():
            if key not in values:
                raise TypeError("unknown field %r" % key)
            values[key] = value
        return type(self)(**values)

    def merge(self, other: Metadata) -> Metadata:
        """Returns a copy where every field not set here is taken from
        `other`. Raw tags are combined per key, keys present here win.
        """

        values = self.as_dict()
        for key, value in other.as_dict().items():
            if key == "raw_tags":
                merged = dict(value)
                merged.update(values["raw_tags"])
                values["raw_tags"] = merged
            elif values[key] is None:
                values[key] = value
        return type(self)(**values)

    def as_dict(self) -> dict[str, Any]:
        """All fields, including `picture` and `raw_tags`, as a dict"""

        values = {name: getattr(self, name) for name in FIELDS}
        values["picture"] = self.picture
        values["raw_tags"] = dict(self.raw_tags)
        return values

    def is_empty(self) -> bool:
        """True if no scalar field, picture or raw tag is set"""

        return self.picture is None and not self.raw_tags and \
            all(getattr(self, name) is None for name in FIELDS)

    def __eq__(self, other):
        if not isinstance(other, Metadata):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self):
        items = ["%s=%r" % (name, getattr(self, name))
                 for name in FIELDS if getattr(self, name) is not None]
        if self.picture is not None:
            items.append("picture=%r" % (self.picture,))
        if self.raw_tags:
            items.append("raw_tags=<%d keys>" % len(self.raw_tags))
        return "<%s %s>" % (type(self).__name__, " ".join(items))


class ParseFilter:
    """Selects which parts of the metadata get decoded on read.

    Attributes:
        tags (`bool`): decode the scalar fields and raw tags
        pictures (`bool`): decode the embedded picture

    Skipping work never changes the value of what does get decoded.
    """

    ALL: ParseFilter
    NO_PICTURES: ParseFilter
    PICTURES_ONLY: ParseFilter

    def __init__(self, tags: bool = True, pictures: bool = True):
        self.tags = tags
        self.pictures = pictures

    def build(self, picture: Picture | None = None, raw_tags=None,
              **fields: Any) -> Metadata:
        """Creates a Metadata with only the parts this filter includes"""

        if not self.tags:
            fields = {}
            raw_tags = None
        if not self.pictures:
            picture = None
        return Metadata(picture=picture, raw_tags=raw_tags, **fields)

    def __eq__(self, other):
        if not isinstance(other, ParseFilter):
            return NotImplemented
        return (self.tags, self.pictures) == (other.tags, other.pictures)

    def __hash__(self):
        return hash((self.tags, self.pictures))

    def __repr__(self):
        return "%s(tags=%r, pictures=%r)" % (
            type(self).__name__, self.tags, self.pictures)


ParseFilter.ALL = ParseFilter()
ParseFilter.NO_PICTURES = ParseFilter(pictures=False)
ParseFilter.PICTURES_ONLY = ParseFilter(tags=False)
