"""Identifier case conversion helpers.

The ``*_id`` helpers only touch the part before the ``_id`` suffix; any
other column is returned unchanged. They let logical field names written
in one convention match physical columns written in the other.
"""

import re

_ID_SUFFIX = "_id"
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def snake_to_camel_id(column: str) -> str:
    """``project_gallery_id`` -> ``projectGallery_id``."""
    if not column.endswith(_ID_SUFFIX):
        return column
    first, *rest = column[: -len(_ID_SUFFIX)].split("_")
    return first + "".join(part.lower().capitalize() for part in rest) + _ID_SUFFIX


def camel_to_snake_id(column: str) -> str:
    """``projectGallery_id`` -> ``project_gallery_id``."""
    if not column.endswith(_ID_SUFFIX):
        return column
    base = column[: -len(_ID_SUFFIX)]
    return _CAMEL_BOUNDARY.sub(r"\1_\2", base).lower() + _ID_SUFFIX


def to_snake(name: str) -> str:
    """``createdAt`` -> ``created_at``; already-snake names pass through."""
    return _CAMEL_BOUNDARY.sub(r"\1_\2", name).lower()


def foreign_key_for(relation_name: str) -> str:
    """Default foreign-key column for a to-one relation property."""
    return f"{to_snake(relation_name)}{_ID_SUFFIX}"
