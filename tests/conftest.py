"""Common pytest configuration."""

from __future__ import annotations

import pytest

from revu_io.log_sink import InMemoryLogSink
from revu_io.memory import InMemoryReviewBackend
from revu_schemas.primitives import TextUnitStatus
from revu_schemas.resources import EditableResource


@pytest.fixture
def log_sink() -> InMemoryLogSink:
    """Provide an in-memory log sink.

    Returns:
        InMemoryLogSink: Empty sink.
    """
    return InMemoryLogSink()


@pytest.fixture
def resource() -> EditableResource:
    """Provide a resource at token ``v1``.

    Returns:
        EditableResource: Undecided resource awaiting review.
    """
    return EditableResource(
        id=7,
        content="Hello {name}",
        status=TextUnitStatus.REVIEW_NEEDED,
        version_token="v1",
    )


@pytest.fixture
def backend(resource: EditableResource) -> InMemoryReviewBackend:
    """Provide an in-memory backend holding ``resource``.

    Returns:
        InMemoryReviewBackend: Backend with one resource.
    """
    return InMemoryReviewBackend([resource])
