"""Reconciliation engine: phase resolution, handler invocation and commit."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from converge.core.errors import (
    CommitContractError,
    ConvergeError,
    ProviderError,
    ReconciliationError,
    ResourceTypeMismatchError,
)
from converge.logging import bind_context
from converge.resources.base import (
    Destroyed,
    Phase,
    ResourceInstance,
    TeardownResult,
    normalize_props,
)

if TYPE_CHECKING:
    from converge.resources.resource import ResourceDefinition
    from converge.resources.scope import Scope


async def reconcile(
    definition: ResourceDefinition,
    scope: Scope,
    logical_id: str,
    props: Any,
) -> Any:
    """Converge one declared resource and return its committed output.

    Calls within a scope run one at a time, and teardown waits for the call
    in flight. On failure the instance is left exactly as it was; a
    first-time create that fails leaves nothing behind in the scope.
    """
    scope.ensure_active()
    desired = definition.parse_props(props)
    async with scope.lock:
        return await _reconcile(definition, scope, logical_id, desired)


async def _reconcile(
    definition: ResourceDefinition,
    scope: Scope,
    logical_id: str,
    desired: Any,
) -> Any:
    # Re-checked under the lock: teardown may have been requested while queued.
    scope.ensure_active()
    desired_state = normalize_props(desired)
    log = bind_context(scope=scope.name, resource_type=definition.type_name, logical_id=logical_id)

    instance = scope.get(logical_id)
    if instance is not None and instance.resource_type != definition.type_name:
        raise ResourceTypeMismatchError(
            f"Logical id '{logical_id}' is already used by {instance.resource_type}",
            details={
                "scope": scope.name,
                "logical_id": logical_id,
                "resource_type": definition.type_name,
            },
        )

    if instance is not None and instance.exists:
        if instance.props == desired_state:
            log.debug("resource_unchanged")
            return instance.output
        phase = Phase.UPDATE
        prior = instance.output
    else:
        phase = Phase.CREATE
        prior = None

    ctx = definition.context(phase, logical_id, scope.name, prior)
    log.info("resource_reconcile_start", phase=str(phase))

    try:
        returned = await definition.handler(ctx, logical_id, desired)
    except ConvergeError:
        raise
    except Exception as exc:
        raise ReconciliationError(
            f"Failed to {phase} {definition.type_name} '{logical_id}': {exc}",
            details={
                "scope": scope.name,
                "resource_type": definition.type_name,
                "logical_id": logical_id,
                "phase": str(phase),
            },
        ) from exc

    outcome = ctx.verify(returned)
    if isinstance(outcome, Destroyed):  # pragma: no cover - ruled out by Context
        raise CommitContractError("Create/update committed a destroyed marker")

    if instance is None:
        instance = ResourceInstance(
            logical_id=logical_id,
            resource_type=definition.type_name,
            definition=definition,
        )
        scope._add(instance)
    instance.phase = phase
    instance.output = outcome.output
    instance.props = desired_state
    instance.definition = definition
    scope._save()

    log.info("resource_committed", phase=str(phase))
    return outcome.output


async def delete_instance(
    definition: ResourceDefinition,
    scope: Scope,
    instance: ResourceInstance,
) -> TeardownResult:
    """Run the delete phase for one instance; never raises.

    The instance is removed from the scope whatever the handler does, so a
    failing external delete cannot wedge teardown.
    """
    logical_id = instance.logical_id
    log = bind_context(scope=scope.name, resource_type=instance.resource_type, logical_id=logical_id)
    if not instance.exists:
        scope._remove(logical_id)
        return TeardownResult(logical_id, instance.resource_type, success=True, skipped=True)

    instance.phase = Phase.DELETE
    ctx = definition.context(Phase.DELETE, logical_id, scope.name, instance.output)
    try:
        props = definition.parse_props(instance.props)
        returned = await definition.handler(ctx, logical_id, props)
        outcome = ctx.verify(returned)
        if isinstance(outcome, Destroyed) and outcome.warning:
            raise ProviderError(
                outcome.warning,
                details={"resource_type": instance.resource_type, "logical_id": logical_id},
            )
    except Exception as exc:
        log.error(
            "resource_delete_failed",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        result = TeardownResult(logical_id, instance.resource_type, success=False, error=exc)
    else:
        log.info("resource_destroyed")
        result = TeardownResult(logical_id, instance.resource_type, success=True)
    finally:
        instance.output = None
        scope._remove(logical_id)

    return result
