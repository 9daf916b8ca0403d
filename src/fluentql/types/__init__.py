"""Type definitions for fluentql.

Pydantic models shared across the package: entity/relation descriptors
consumed by the repository, and the pagination result shapes produced by
the fetch layer.
"""

from .base import FluentBaseModel
from .metadata import (
    EntityMetadata,
    FieldDescriptor,
    JoinTableDescriptor,
    RelationDescriptor,
)
from .results import Page, SimplePage

__all__ = [
    'FluentBaseModel',
    'EntityMetadata',
    'FieldDescriptor',
    'JoinTableDescriptor',
    'RelationDescriptor',
    'Page',
    'SimplePage',
]
