"""Protocol definitions for fluentql.

Protocols describe the contracts of collaborators the package consumes
(entity metadata, builder extensions) without requiring inheritance.
"""

from fluentql.protocols.providers import Extension, MetadataProvider

__all__ = [
    "Extension",
    "MetadataProvider",
]
