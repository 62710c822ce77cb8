"""Resource definitions: a type name paired with one reconciliation handler."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from converge.core.errors import InvalidPropsError
from converge.resources.base import Handler, Phase, TeardownResult
from converge.resources.context import Context
from converge.resources.engine import reconcile
from converge.resources.registry import ResourceRegistry, default_registry
from converge.resources.scope import Scope, resolve_scope


class ResourceDefinition:
    """A declared resource type.

    Awaiting the definition with a logical id and desired props converges
    that resource inside the active scope and returns its output.
    """

    def __init__(
        self,
        type_name: str,
        handler: Handler,
        *,
        props_model: type[BaseModel] | None = None,
        output_model: type[BaseModel] | None = None,
    ) -> None:
        self._type_name = type_name
        self._handler = handler
        self._props_model = props_model
        self._output_model = output_model
        self.__doc__ = handler.__doc__

    @property
    def type_name(self) -> str:
        return self._type_name

    @property
    def handler(self) -> Handler:
        return self._handler

    @property
    def props_model(self) -> type[BaseModel] | None:
        return self._props_model

    @property
    def output_model(self) -> type[BaseModel] | None:
        return self._output_model

    async def __call__(
        self,
        logical_id: str,
        props: Any = None,
        *,
        scope: Scope | None = None,
    ) -> Any:
        if not logical_id:
            raise ValueError("Logical id is required")
        return await reconcile(self, resolve_scope(scope), logical_id, props)

    async def destroy(self, logical_id: str, *, scope: Scope | None = None) -> TeardownResult | None:
        """Delete one instance of this type without tearing down its scope."""
        return await resolve_scope(scope).destroy_instance(logical_id, resource_type=self._type_name)

    def context(self, phase: Phase, logical_id: str, scope_name: str, output: Any) -> Context:
        return Context(
            phase=phase,
            resource_type=self._type_name,
            logical_id=logical_id,
            scope_name=scope_name,
            output=output,
            output_model=self._output_model,
        )

    def parse_props(self, props: Any) -> Any:
        if self._props_model is None:
            return dict(props or {})
        if isinstance(props, self._props_model):
            return props
        try:
            return self._props_model.model_validate(props or {})
        except ValidationError as exc:
            raise InvalidPropsError(
                f"Invalid props for {self._type_name}: {exc}",
                details={"resource_type": self._type_name},
            ) from exc

    def parse_output(self, output: Any) -> Any:
        if self._output_model is None or isinstance(output, self._output_model):
            return output
        return self._output_model.model_validate(output)

    def __repr__(self) -> str:
        return f"ResourceDefinition({self._type_name!r})"


def resource(
    type_name: str,
    handler: Handler | None = None,
    *,
    props_model: type[BaseModel] | None = None,
    output_model: type[BaseModel] | None = None,
    registry: ResourceRegistry | None = None,
) -> Any:
    """Declare and register a resource type.

    Usable directly, ``resource("acme::Thing", handler)``, or as a decorator
    on the handler. Registering a type name twice in one registry raises
    DuplicateResourceTypeError.
    """
    target = registry if registry is not None else default_registry

    def decorator(fn: Handler) -> ResourceDefinition:
        definition = ResourceDefinition(
            type_name,
            fn,
            props_model=props_model,
            output_model=output_model,
        )
        target.register(definition)
        return definition

    if handler is not None:
        return decorator(handler)
    return decorator

