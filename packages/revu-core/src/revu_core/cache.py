"""Read-through client cache of server-owned resources."""

from __future__ import annotations

from revu_schemas.primitives import ResourceId
from revu_schemas.resources import EditableResource


class ResourceCache:
    """Client copy of resources, replaced wholesale on every server response.

    Entries are never field-merged: a commit response or conflict snapshot
    replaces the whole cached resource so no partially-stale state survives.
    """

    def __init__(self, resources: list[EditableResource] | None = None) -> None:
        """Initialize the cache, optionally pre-populated."""
        self._resources: dict[ResourceId, EditableResource] = {}
        for resource in resources or []:
            self.replace(resource)

    def get(self, resource_id: ResourceId) -> EditableResource | None:
        """Return the cached resource, if present."""
        return self._resources.get(resource_id)

    def replace(self, resource: EditableResource) -> None:
        """Replace the cached copy of a resource with a server-provided one."""
        self._resources[resource.id] = resource.model_copy(deep=True)

    def evict(self, resource_id: ResourceId) -> None:
        """Drop a resource from the cache."""
        self._resources.pop(resource_id, None)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._resources

    def __len__(self) -> int:
        return len(self._resources)
