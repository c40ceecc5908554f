"""Version information and core types."""

from __future__ import annotations

from pydantic import Field

from revu_schemas.base import BaseSchema

# Current schema version for revu.toml config files
CURRENT_SCHEMA_VERSION = (0, 1, 0)


class VersionInfo(BaseSchema):
    """Application version information."""

    major: int = Field(..., ge=0, description="Major version number")
    minor: int = Field(..., ge=0, description="Minor version number")
    patch: int = Field(..., ge=0, description="Patch version number")

    def __str__(self) -> str:
        """Return semantic version string."""
        return f"{self.major}.{self.minor}.{self.patch}"

    def _as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __lt__(self, other: VersionInfo) -> bool:
        """Compare if this version is less than another.

        Args:
            other: Version to compare against.

        Returns:
            True if this version is less than other, False otherwise.
        """
        if not isinstance(other, VersionInfo):
            return NotImplemented
        return self._as_tuple() < other._as_tuple()

    def is_supported(self) -> bool:
        """Whether this config schema version can be read by this release."""
        return self._as_tuple()[:1] == CURRENT_SCHEMA_VERSION[:1] and not (
            self._as_tuple() > CURRENT_SCHEMA_VERSION
        )
