from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Union

from pydantic import BaseModel

if TYPE_CHECKING:
    from converge.resources.context import Context
    from converge.resources.resource import ResourceDefinition


class Phase(StrEnum):
    """Lifecycle operation a handler invocation represents."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ScopeStatus(StrEnum):
    ACTIVE = "active"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"


@dataclass(frozen=True)
class Created:
    """Outcome of a successful create."""

    output: Any


@dataclass(frozen=True)
class Updated:
    """Outcome of a successful update."""

    output: Any


@dataclass(frozen=True)
class Destroyed:
    """Outcome of a delete; the instance leaves its scope.

    ``warning`` is set when the external removal could not be confirmed.
    """

    warning: str | None = None


Outcome = Union[Created, Updated, Destroyed]

Handler = Callable[["Context", str, Any], Awaitable[Outcome]]


@dataclass
class ResourceInstance:
    """A resource declared inside a scope, keyed by its logical id."""

    logical_id: str
    resource_type: str
    phase: Phase = Phase.CREATE
    output: Any = None
    props: dict[str, Any] = field(default_factory=dict)
    definition: ResourceDefinition | None = field(default=None, repr=False, compare=False)

    @property
    def exists(self) -> bool:
        return self.output is not None


@dataclass(frozen=True)
class TeardownResult:
    """Result of a delete attempt for a single instance."""

    logical_id: str
    resource_type: str
    success: bool
    skipped: bool = False
    error: BaseException | None = None

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error is not None else None


@dataclass
class DestroyResult:
    """Ordered per-instance results of a scope teardown."""

    scope: str
    results: list[TeardownResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every delete attempt succeeded."""
        return all(r.success for r in self.results)

    @property
    def failures(self) -> list[TeardownResult]:
        return [r for r in self.results if not r.success]

    @property
    def visited(self) -> list[str]:
        return [r.logical_id for r in self.results]


def normalize_props(props: Any) -> dict[str, Any]:
    """Return a plain dict view of desired properties for storage and comparison."""
    if props is None:
        return {}
    if isinstance(props, BaseModel):
        return props.model_dump(mode="json", by_alias=True)
    if isinstance(props, Mapping):
        return dict(props)
    raise TypeError(f"Resource props must be a mapping or pydantic model, got {type(props).__name__}")


def dump_output(output: Any) -> Any:
    """Return a JSON-compatible view of a committed output."""
    if isinstance(output, BaseModel):
        return output.model_dump(mode="json", by_alias=True)
    return output
