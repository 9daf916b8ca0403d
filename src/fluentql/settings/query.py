"""Query builder configuration settings."""

from typing import Dict

from pydantic import BaseModel, Field, field_validator


class QuerySettings(BaseModel):
    """Settings consumed by the query builder and identifier resolver.

    ``table_map`` seeds the process-wide table map the first time it is
    read; ``configure_table_map`` can extend it at runtime.
    """

    table_map: Dict[str, str] = Field(
        default_factory=dict,
        description="Logical table name -> physical table name, consulted before metadata probing"
    )

    cache_metadata_probes: bool = Field(
        default=True,
        description="Memoize table and column existence checks for the lifetime of the resolver"
    )

    debug_sql: bool = Field(
        default=False,
        description="Log every rendered statement with its parameters at DEBUG level"
    )

    default_chunk_size: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Page size used by lazy() when no size is given"
    )

    @field_validator("table_map")
    @classmethod
    def validate_table_map(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Reject empty logical or physical names."""
        for logical, physical in v.items():
            if not logical.strip() or not physical.strip():
                raise ValueError(
                    f"Invalid table map entry {logical!r} -> {physical!r}. "
                    "Both names must be non-empty."
                )
        return {k.strip(): p.strip() for k, p in v.items()}
