import asyncio

import pytest
from converge.core.errors import (
    CommitContractError,
    DuplicateResourceTypeError,
    InvalidPropsError,
    NoActiveScopeError,
    ReconciliationError,
    ResourceTypeMismatchError,
    ScopeInactiveError,
    UnknownResourceTypeError,
)
from converge.resources import (
    Phase,
    ResourceRegistry,
    Scope,
    current_scope,
    destroy,
    resource,
)
from pydantic import BaseModel


class FakeSystem:
    """Tiny external system of record that records every handler call."""

    def __init__(self):
        self.items: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.next_id = 0

    def handler(self):
        async def reconcile(ctx, logical_id, props):
            self.calls.append((str(ctx.phase), logical_id))
            await asyncio.sleep(0)
            if ctx.phase is Phase.DELETE:
                self.items.pop(ctx.output["id"], None)
                return ctx.destroy()
            if ctx.phase is Phase.UPDATE:
                item_id = ctx.output["id"]
            else:
                self.next_id += 1
                item_id = f"id-{self.next_id}"
            self.items[item_id] = dict(props)
            return ctx.commit({"id": item_id, **props})

        return reconcile


@pytest.fixture
def registry():
    return ResourceRegistry()


@pytest.fixture
def system():
    return FakeSystem()


@pytest.fixture
def thing(registry, system):
    return resource("test::Thing", system.handler(), registry=registry)


def test_duplicate_type_registration_fails_fast(registry, thing, system):
    with pytest.raises(DuplicateResourceTypeError):
        resource("test::Thing", system.handler(), registry=registry)
    assert registry.get("test::Thing") is thing
    assert registry.list() == ["test::Thing"]


def test_resource_decorator_registers(registry):
    @resource("test::Decorated", registry=registry)
    async def decorated(ctx, logical_id, props):
        """Decorated handler."""
        return ctx.commit(dict(props))

    assert "test::Decorated" in registry
    assert decorated.type_name == "test::Decorated"
    assert decorated.__doc__ == "Decorated handler."


def test_unknown_type_lookup(registry):
    with pytest.raises(UnknownResourceTypeError):
        registry.require("test::Missing")


@pytest.mark.asyncio
async def test_call_outside_scope_is_configuration_error(thing):
    assert current_scope() is None
    with pytest.raises(NoActiveScopeError):
        await thing("a", {"name": "x"})


@pytest.mark.asyncio
async def test_create_then_update_keeps_identity(thing, system):
    async with Scope("run-1") as scope:
        first = await thing("a", {"name": "x"})
        second = await thing("a", {"name": "y"})

    assert first["id"] == second["id"] == "id-1"
    assert second["name"] == "y"
    assert system.calls == [("create", "a"), ("update", "a")]
    assert scope.get("a").phase is Phase.UPDATE
    assert system.items == {"id-1": {"name": "y"}}


@pytest.mark.asyncio
async def test_unchanged_props_do_not_invoke_handler(thing, system):
    async with Scope("run-1"):
        first = await thing("a", {"name": "x"})
        again = await thing("a", {"name": "x"})

    assert again == first
    assert system.calls == [("create", "a")]


@pytest.mark.asyncio
async def test_explicit_scope_argument(thing):
    scope = Scope("explicit")
    output = await thing("a", {"name": "x"}, scope=scope)
    assert scope.get("a").output == output


@pytest.mark.asyncio
async def test_nested_scopes_restore_outer(thing):
    outer = Scope("outer")
    inner = Scope("inner")
    async with outer:
        async with inner:
            await thing("a", {"name": "in"})
        assert current_scope() is outer
        await thing("b", {"name": "out"})
    assert current_scope() is None
    assert [i.logical_id for i in inner.instances] == ["a"]
    assert [i.logical_id for i in outer.instances] == ["b"]


@pytest.mark.asyncio
async def test_teardown_reverse_creation_order(thing, system):
    async with Scope("run-1") as scope:
        for logical_id in ("a", "b", "c"):
            await thing(logical_id, {"name": logical_id})
        # An update does not move an instance in the creation order.
        await thing("a", {"name": "a2"})

    result = await destroy(scope)

    assert result.visited == ["c", "b", "a"]
    assert result.success
    delete_calls = [call for call in system.calls if call[0] == "delete"]
    assert delete_calls == [("delete", "c"), ("delete", "b"), ("delete", "a")]
    assert system.items == {}
    assert scope.destroyed
    assert len(scope) == 0


@pytest.mark.asyncio
async def test_destroyed_scope_rejects_registrations_and_is_idempotent(thing, system):
    async with Scope("run-1") as scope:
        await thing("a", {"name": "x"})
        await scope.destroy()

        with pytest.raises(ScopeInactiveError):
            await thing("b", {"name": "y"})

    again = await scope.destroy()
    assert again.results == []
    assert [c for c in system.calls if c[0] == "delete"] == [("delete", "a")]


@pytest.mark.asyncio
async def test_handler_failure_on_delete_does_not_abort_teardown(registry, system):
    async def flaky(ctx, logical_id, props):
        if ctx.phase is Phase.DELETE and logical_id == "b":
            raise RuntimeError("HTTP 500")
        return await system.handler()(ctx, logical_id, props)

    thing = resource("test::Flaky", flaky, registry=registry)
    async with Scope("run-1") as scope:
        for logical_id in ("a", "b", "c"):
            await thing(logical_id, {"name": logical_id})

    result = await scope.destroy()

    assert result.visited == ["c", "b", "a"]
    assert not result.success
    [failure] = result.failures
    assert failure.logical_id == "b"
    assert "HTTP 500" in failure.error_message
    assert len(scope) == 0
    assert scope.destroyed


@pytest.mark.asyncio
async def test_destroy_with_warning_is_reported(registry):
    async def handler(ctx, logical_id, props):
        if ctx.phase is Phase.DELETE:
            return ctx.destroy(warning="remote delete not confirmed")
        return ctx.commit({"id": logical_id})

    thing = resource("test::Warn", handler, registry=registry)
    async with Scope("run-1") as scope:
        await thing("a", {})

    result = await scope.destroy()
    assert result.failures[0].error_message == "remote delete not confirmed"
    assert len(scope) == 0


@pytest.mark.asyncio
async def test_create_failure_leaves_no_instance(registry):
    attempts = {"n": 0}

    async def handler(ctx, logical_id, props):
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise ConnectionError("boom")
        return ctx.commit({"id": "ok"})

    thing = resource("test::Retry", handler, registry=registry)
    async with Scope("run-1") as scope:
        with pytest.raises(ReconciliationError) as exc_info:
            await thing("a", {})
        assert "a" not in scope
        assert isinstance(exc_info.value.__cause__, ConnectionError)

        assert await thing("a", {}) == {"id": "ok"}
        assert scope.get("a").phase is Phase.CREATE


@pytest.mark.asyncio
async def test_update_failure_keeps_prior_output(registry):
    async def handler(ctx, logical_id, props):
        if ctx.phase is Phase.UPDATE:
            raise RuntimeError("patch failed")
        return ctx.commit({"id": "1", **props})

    thing = resource("test::Sticky", handler, registry=registry)
    async with Scope("run-1") as scope:
        await thing("a", {"name": "x"})
        with pytest.raises(ReconciliationError):
            await thing("a", {"name": "y"})

    instance = scope.get("a")
    assert instance.output == {"id": "1", "name": "x"}
    assert instance.props == {"name": "x"}


@pytest.mark.asyncio
async def test_missing_commit_is_contract_violation(registry):
    async def handler(ctx, logical_id, props):
        return {"id": "forgot-to-commit"}

    thing = resource("test::NoCommit", handler, registry=registry)
    async with Scope("run-1") as scope:
        with pytest.raises(CommitContractError):
            await thing("a", {})
    assert len(scope) == 0


@pytest.mark.asyncio
async def test_wrong_primitive_is_contract_violation(registry):
    async def handler(ctx, logical_id, props):
        return ctx.destroy()

    thing = resource("test::Wrong", handler, registry=registry)
    async with Scope("run-1"):
        with pytest.raises(CommitContractError) as exc_info:
            await thing("a", {})
    assert exc_info.value.details["phase"] == "create"


@pytest.mark.asyncio
async def test_double_commit_is_contract_violation(registry):
    async def handler(ctx, logical_id, props):
        ctx.commit({"id": "1"})
        return ctx.commit({"id": "2"})

    thing = resource("test::Twice", handler, registry=registry)
    async with Scope("run-1"):
        with pytest.raises(CommitContractError):
            await thing("a", {})


@pytest.mark.asyncio
async def test_delete_without_destroy_is_recorded(registry):
    async def handler(ctx, logical_id, props):
        return ctx.commit({"id": "1"})

    thing = resource("test::NoDestroy", handler, registry=registry)
    async with Scope("run-1") as scope:
        await thing("a", {})

    result = await scope.destroy()
    assert isinstance(result.failures[0].error, CommitContractError)
    assert len(scope) == 0


@pytest.mark.asyncio
async def test_logical_id_reused_by_other_type(registry, thing, system):
    other = resource("test::Other", system.handler(), registry=registry)
    async with Scope("run-1"):
        await thing("a", {"name": "x"})
        with pytest.raises(ResourceTypeMismatchError):
            await other("a", {"name": "x"})


@pytest.mark.asyncio
async def test_single_instance_destroy(thing, system):
    async with Scope("run-1") as scope:
        await thing("a", {"name": "x"})
        await thing("b", {"name": "y"})

        result = await thing.destroy("a")
        assert result.success
        assert "a" not in scope and "b" in scope
        assert await thing.destroy("missing") is None

        recreated = await thing("a", {"name": "x"})

    assert recreated["id"] == "id-3"
    assert [i.logical_id for i in scope.instances] == ["b", "a"]


@pytest.mark.asyncio
async def test_single_instance_destroy_checks_type(registry, thing, system):
    other = resource("test::Other", system.handler(), registry=registry)
    async with Scope("run-1") as scope:
        await thing("a", {"name": "x"})
        with pytest.raises(ResourceTypeMismatchError):
            await other.destroy("a")
        assert "a" in scope
    assert system.calls == [("create", "a")]


@pytest.mark.asyncio
async def test_overlapping_calls_for_same_id_run_one_at_a_time(thing, system):
    scope = Scope("run-1")
    first, second = await asyncio.gather(
        thing("a", {"v": 1}, scope=scope),
        thing("a", {"v": 2}, scope=scope),
    )

    assert first["id"] == second["id"] == "id-1"
    assert system.calls == [("create", "a"), ("update", "a")]
    assert system.items == {"id-1": {"v": 2}}

    result = await scope.destroy()
    assert result.success
    assert system.items == {}


@pytest.mark.asyncio
async def test_teardown_waits_for_in_flight_create(registry, system):
    gate = asyncio.Event()
    inner = system.handler()

    async def gated(ctx, logical_id, props):
        if ctx.phase is Phase.CREATE:
            await gate.wait()
        return await inner(ctx, logical_id, props)

    slow = resource("test::Slow", gated, registry=registry)
    scope = Scope("run-1")
    pending = asyncio.create_task(slow("a", {"v": 1}, scope=scope))
    await asyncio.sleep(0)
    teardown = asyncio.create_task(scope.destroy())
    await asyncio.sleep(0)

    with pytest.raises(ScopeInactiveError):
        await slow("b", {"v": 2}, scope=scope)

    gate.set()
    output = await pending
    result = await teardown

    assert output["id"] == "id-1"
    assert [r.logical_id for r in result.results] == ["a"]
    assert result.success
    assert system.items == {}
    assert scope.destroyed


class Widget(BaseModel):
    id: str
    size: int


class WidgetProps(BaseModel):
    size: int


@pytest.mark.asyncio
async def test_models_validate_props_and_output(registry):
    async def handler(ctx, logical_id, props):
        assert isinstance(props, WidgetProps)
        if ctx.phase is Phase.DELETE:
            return ctx.destroy()
        return ctx.commit({"id": logical_id, "size": props.size})

    widget = resource(
        "test::Widget",
        handler,
        props_model=WidgetProps,
        output_model=Widget,
        registry=registry,
    )
    async with Scope("run-1") as scope:
        output = await widget("w", {"size": 3})
        assert output == Widget(id="w", size=3)

        with pytest.raises(InvalidPropsError):
            await widget("w", {"size": "large"})

    assert (await scope.destroy()).success


@pytest.mark.asyncio
async def test_output_not_matching_model_is_contract_violation(registry):
    async def handler(ctx, logical_id, props):
        return ctx.commit({"id": logical_id})

    widget = resource("test::BadWidget", handler, output_model=Widget, registry=registry)
    async with Scope("run-1"):
        with pytest.raises(CommitContractError):
            await widget("w", {})
