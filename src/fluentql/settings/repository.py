"""Entity repository settings."""

from pydantic import BaseModel, Field


class RepositorySettings(BaseModel):

    max_relation_depth: int = Field(
        default=2,
        ge=0,
        le=10,
        description="How many relation hops are hydrated when relations are loaded"
    )

    load_relations_by_default: bool = Field(
        default=True,
        description="Default for the load_relations argument of the finder methods"
    )

    datetime_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="strftime format used when persisting datetime values"
    )
