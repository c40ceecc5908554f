"""Soft pre-commit integrity check with a "save anyway" fallback.

The gate fails open: when the check itself cannot run, the reviewer is asked
to confirm rather than being blocked, and the prompt says the check could not
run instead of claiming it found a problem.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from revu_core.ports.transport import ContentValidatorProtocol
from revu_schemas.primitives import ResourceId
from revu_schemas.resources import ValidationResult


class ValidationVerdict(StrEnum):
    """Outcome of running the integrity check."""

    PASSED = "passed"
    FAILED = "failed"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class ValidationOutcome:
    """Verdict plus the data needed to build a confirmation prompt."""

    verdict: ValidationVerdict
    result: ValidationResult | None = None
    error_message: str | None = None

    @property
    def passed(self) -> bool:
        """Whether the commit may proceed without asking the reviewer."""
        return self.verdict == ValidationVerdict.PASSED

    @property
    def prompt(self) -> str | None:
        """Confirmation prompt text, or None when the check passed."""
        if self.verdict == ValidationVerdict.FAILED:
            return format_failed_prompt(self.result.detail if self.result else None)
        if self.verdict == ValidationVerdict.INCONCLUSIVE:
            return format_inconclusive_prompt(self.error_message)
        return None


def format_failed_prompt(detail: str | None) -> str:
    """Prompt for content the integrity check rejected."""
    trimmed = detail.strip() if detail else ""
    if trimmed:
        return (
            "This translation failed the placeholder/integrity check:\n\n"
            f"{trimmed}\n\nDo you want to save it anyway?"
        )
    return (
        "This translation failed the placeholder/integrity check. "
        "Do you want to save it anyway?"
    )


def format_inconclusive_prompt(error_message: str | None) -> str:
    """Prompt for when the integrity check could not run."""
    reason = error_message or "Unknown error"
    return f"Unable to validate placeholders ({reason}). Do you want to save it anyway?"


class ValidationGate:
    """Run the integrity check for content-changing commits."""

    def __init__(self, validator: ContentValidatorProtocol) -> None:
        """Initialize the gate.

        Args:
            validator: Backend exposing the integrity check.
        """
        self._validator = validator

    async def validate(
        self, resource_id: ResourceId, content: str
    ) -> ValidationOutcome:
        """Check candidate content.

        Only an explicit ``passed=False`` fails the check. Any error raised by
        the check itself yields an inconclusive outcome.

        Returns:
            ValidationOutcome: Verdict for the candidate content.
        """
        try:
            result = await self._validator.validate_content(resource_id, content)
        except Exception as exc:
            return ValidationOutcome(
                verdict=ValidationVerdict.INCONCLUSIVE,
                error_message=str(exc) or type(exc).__name__,
            )
        if result is not None and result.passed is False:
            return ValidationOutcome(verdict=ValidationVerdict.FAILED, result=result)
        return ValidationOutcome(verdict=ValidationVerdict.PASSED, result=result)
