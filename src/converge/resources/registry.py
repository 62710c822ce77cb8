from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List

from converge.core.errors import DuplicateResourceTypeError, UnknownResourceTypeError

if TYPE_CHECKING:
    from converge.resources.resource import ResourceDefinition


class ResourceRegistry:
    """In-memory registry of resource definitions keyed by type name."""

    def __init__(self) -> None:
        self._definitions: Dict[str, ResourceDefinition] = {}

    def register(self, definition: ResourceDefinition) -> None:
        name = definition.type_name
        if not name:
            raise ValueError("Resource type name is required")
        if name in self._definitions:
            raise DuplicateResourceTypeError(
                f"Resource type '{name}' is already registered",
                details={"resource_type": name},
            )
        self._definitions[name] = definition

    def get(self, name: str) -> ResourceDefinition | None:
        return self._definitions.get(name)

    def require(self, name: str) -> ResourceDefinition:
        definition = self._definitions.get(name)
        if definition is None:
            raise UnknownResourceTypeError(
                f"Resource type '{name}' is not registered",
                details={"resource_type": name},
            )
        return definition

    def list(self) -> List[str]:
        return list(self._definitions.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


default_registry = ResourceRegistry()


def get_resource_type(name: str) -> ResourceDefinition:
    return default_registry.require(name)


def list_resource_types() -> List[str]:
    return default_registry.list()
