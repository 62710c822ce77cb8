"""Declarative resources reconciled against external systems of record."""

from converge.resources.base import (
    Created,
    DestroyResult,
    Destroyed,
    Outcome,
    Phase,
    ResourceInstance,
    ScopeStatus,
    TeardownResult,
    Updated,
)
from converge.resources.context import Context
from converge.resources.registry import (
    ResourceRegistry,
    default_registry,
    get_resource_type,
    list_resource_types,
)
from converge.resources.resource import ResourceDefinition, resource
from converge.resources.scope import Scope, current_scope, destroy
from converge.resources.state import FileStateStore, MemoryStateStore, StateStore

__all__ = [
    "Context",
    "Created",
    "DestroyResult",
    "Destroyed",
    "FileStateStore",
    "MemoryStateStore",
    "Outcome",
    "Phase",
    "ResourceDefinition",
    "ResourceInstance",
    "ResourceRegistry",
    "Scope",
    "ScopeStatus",
    "StateStore",
    "TeardownResult",
    "Updated",
    "current_scope",
    "default_registry",
    "destroy",
    "get_resource_type",
    "list_resource_types",
    "resource",
]
