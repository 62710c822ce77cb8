"""Scopes: ordered collections of resource instances with a shared teardown."""

from __future__ import annotations

import asyncio
from contextvars import ContextVar, Token
from typing import Any, Dict, List

import structlog

from converge.core.errors import (
    NoActiveScopeError,
    ResourceTypeMismatchError,
    ScopeInactiveError,
)
from converge.resources.base import (
    DestroyResult,
    Phase,
    ResourceInstance,
    ScopeStatus,
    TeardownResult,
    dump_output,
)
from converge.resources.engine import delete_instance
from converge.resources.registry import ResourceRegistry, default_registry
from converge.resources.state import StateStore

logger = structlog.get_logger()

_current_scope: ContextVar[Scope | None] = ContextVar("converge_current_scope", default=None)


class Scope:
    """A unit of work (a deployment, a test run) owning resource instances.

    Instances are kept in creation order. ``destroy()`` deletes them last
    created first and is terminal: a destroyed scope accepts nothing new.

    Usage:
        async with Scope("staging") as scope:
            user = await UserResource("u1", {...})
        result = await scope.destroy()
    """

    def __init__(
        self,
        name: str,
        *,
        store: StateStore | None = None,
        registry: ResourceRegistry | None = None,
    ) -> None:
        if not name:
            raise ValueError("Scope name is required")
        self.name = name
        self.status = ScopeStatus.ACTIVE
        self._store = store
        self._registry = registry or default_registry
        self._instances: Dict[str, ResourceInstance] = {}
        self._tokens: List[Token[Scope | None]] = []
        self._lock = asyncio.Lock()

    @classmethod
    def load(
        cls,
        name: str,
        *,
        store: StateStore,
        registry: ResourceRegistry | None = None,
    ) -> Scope:
        """Re-open a scope from its persisted snapshot (or start an empty one)."""
        scope = cls(name, store=store, registry=registry)
        snapshot = store.load(name)
        if not snapshot:
            return scope

        for item in snapshot.get("instances", []):
            definition = scope._registry.require(item["resource_type"])
            output = item.get("output")
            if output is not None:
                output = definition.parse_output(output)
            instance = ResourceInstance(
                logical_id=item["logical_id"],
                resource_type=item["resource_type"],
                phase=Phase(item.get("phase", Phase.CREATE)),
                output=output,
                props=dict(item.get("props") or {}),
                definition=definition,
            )
            scope._instances[instance.logical_id] = instance
        logger.debug("scope_loaded", scope=name, instances=len(scope._instances))
        return scope

    @property
    def active(self) -> bool:
        return self.status is ScopeStatus.ACTIVE

    @property
    def destroyed(self) -> bool:
        return self.status is ScopeStatus.DESTROYED

    @property
    def lock(self) -> asyncio.Lock:
        """Held for the whole of each resource call and each teardown."""
        return self._lock

    @property
    def instances(self) -> List[ResourceInstance]:
        """Instances in creation order (a copy; mutate through resources only)."""
        return list(self._instances.values())

    def get(self, logical_id: str) -> ResourceInstance | None:
        return self._instances.get(logical_id)

    def __contains__(self, logical_id: object) -> bool:
        return logical_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def ensure_active(self) -> None:
        if not self.active:
            raise ScopeInactiveError(
                f"Scope '{self.name}' is {self.status} and accepts no new resources",
                details={"scope": self.name},
            )

    async def __aenter__(self) -> Scope:
        self._tokens.append(_current_scope.set(self))
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        _current_scope.reset(self._tokens.pop())

    async def destroy(self) -> DestroyResult:
        """Delete every instance, last created first.

        New resource calls are rejected from the moment this is called; a
        call already in flight finishes (and is recorded) before teardown
        starts. Every instance gets a delete attempt even when earlier ones
        fail; failures are logged and returned in the result.
        """
        result = DestroyResult(scope=self.name)
        if self.status is not ScopeStatus.ACTIVE:
            logger.debug("scope_already_destroyed", scope=self.name, status=str(self.status))
            return result

        self.status = ScopeStatus.DESTROYING
        async with self._lock:
            logger.info("scope_destroy_start", scope=self.name, instances=len(self._instances))
            for instance in reversed(self.instances):
                result.results.append(await self._destroy_instance(instance))
            self.status = ScopeStatus.DESTROYED

        if self._store is not None:
            self._store.delete(self.name)
        logger.info(
            "scope_destroyed",
            scope=self.name,
            visited=len(result.results),
            failures=len(result.failures),
        )
        return result

    async def destroy_instance(
        self, logical_id: str, *, resource_type: str | None = None
    ) -> TeardownResult | None:
        """Delete a single instance with teardown semantics.

        Returns None when the logical id is unknown to this scope. When
        ``resource_type`` is given the instance must be of that type.
        """
        self.ensure_active()
        async with self._lock:
            self.ensure_active()
            instance = self._instances.get(logical_id)
            if instance is None:
                return None
            if resource_type is not None and instance.resource_type != resource_type:
                raise ResourceTypeMismatchError(
                    f"Logical id '{logical_id}' belongs to {instance.resource_type}, not {resource_type}",
                    details={"scope": self.name, "logical_id": logical_id, "resource_type": resource_type},
                )
            return await self._destroy_instance(instance)

    async def _destroy_instance(self, instance: ResourceInstance) -> TeardownResult:
        definition = instance.definition
        if definition is None:
            definition = self._registry.get(instance.resource_type)
        if definition is None:
            logger.error(
                "resource_delete_failed",
                scope=self.name,
                resource_type=instance.resource_type,
                logical_id=instance.logical_id,
                error="unknown resource type",
            )
            self._remove(instance.logical_id)
            return TeardownResult(
                instance.logical_id,
                instance.resource_type,
                success=False,
                error=LookupError(f"Resource type '{instance.resource_type}' is not registered"),
            )
        return await delete_instance(definition, self, instance)

    def snapshot(self) -> dict[str, Any]:
        return {
            "scope": self.name,
            "status": str(self.status),
            "instances": [
                {
                    "logical_id": instance.logical_id,
                    "resource_type": instance.resource_type,
                    "phase": str(instance.phase),
                    "output": dump_output(instance.output),
                    "props": instance.props,
                }
                for instance in self._instances.values()
            ],
        }

    # Engine-only mutators.

    def _add(self, instance: ResourceInstance) -> None:
        self._instances[instance.logical_id] = instance

    def _remove(self, logical_id: str) -> None:
        self._instances.pop(logical_id, None)
        self._save()

    def _save(self) -> None:
        if self._store is None or self.status is ScopeStatus.DESTROYED:
            return
        self._store.save(self.name, self.snapshot())

    def __repr__(self) -> str:
        return f"Scope(name={self.name!r}, status={self.status!s}, instances={len(self._instances)})"


def current_scope() -> Scope | None:
    """Return the scope activated by the innermost ``async with scope``."""
    return _current_scope.get()


def resolve_scope(scope: Scope | None = None) -> Scope:
    resolved = scope if scope is not None else _current_scope.get()
    if resolved is None:
        raise NoActiveScopeError("Resources must be declared inside an active scope")
    return resolved


async def destroy(scope: Scope) -> DestroyResult:
    """Tear down a scope. Idempotent."""
    return await scope.destroy()
