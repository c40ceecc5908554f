"""Base schema configuration for revu Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with validation defaults shared by every revu model.

    Note: whitespace is never stripped. Translation content is compared
    byte-for-byte against the server copy, and a trailing space is a real
    edit a reviewer may want to commit.
    """

    model_config = ConfigDict(
        extra="ignore",  # Drop unknown server fields instead of failing
        validate_assignment=True,
        validate_default=True,
        use_enum_values=True,
    )
