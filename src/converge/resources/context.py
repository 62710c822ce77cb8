"""Per-invocation handler context and its one-shot commit primitives."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from converge.core.errors import CommitContractError
from converge.resources.base import Created, Destroyed, Outcome, Phase, Updated


class Context:
    """Tells a handler what it is doing and collects what it did.

    A handler must return exactly one outcome obtained from this context:
    ``commit(output)`` while creating or updating, ``destroy()`` while
    deleting.
    """

    def __init__(
        self,
        *,
        phase: Phase,
        resource_type: str,
        logical_id: str,
        scope_name: str,
        output: Any = None,
        output_model: type[BaseModel] | None = None,
    ) -> None:
        self.phase = phase
        self.resource_type = resource_type
        self.logical_id = logical_id
        self.scope_name = scope_name
        self.output = output
        self._output_model = output_model
        self._committed: Outcome | None = None

    @property
    def committed(self) -> Outcome | None:
        return self._committed

    def commit(self, output: Any) -> Created | Updated:
        """Record the new output of a create or update."""
        if self.phase is Phase.DELETE:
            raise self._violation("commit() called during delete; use destroy()")
        if output is None:
            raise self._violation("commit() requires an output")
        self._check_not_committed()

        if self._output_model is not None and not isinstance(output, self._output_model):
            try:
                output = self._output_model.model_validate(output)
            except ValidationError as exc:
                raise self._violation(f"Committed output does not match {self._output_model.__name__}: {exc}") from exc

        outcome: Created | Updated = Created(output) if self.phase is Phase.CREATE else Updated(output)
        self._committed = outcome
        return outcome

    def destroy(self, *, warning: str | None = None) -> Destroyed:
        """Mark the instance as destroyed.

        Pass ``warning`` when the external system did not confirm removal;
        the instance still leaves its scope and teardown reports the warning.
        """
        if self.phase is not Phase.DELETE:
            raise self._violation(f"destroy() called during {self.phase}; use commit()")
        self._check_not_committed()
        outcome = Destroyed(warning=warning)
        self._committed = outcome
        return outcome

    def verify(self, returned: Any) -> Outcome:
        """Check what the handler returned against what it committed."""
        if self._committed is None:
            raise self._violation("Handler returned without committing")
        if returned is not self._committed:
            raise self._violation("Handler must return the outcome produced by its context")
        return self._committed

    def _check_not_committed(self) -> None:
        if self._committed is not None:
            raise self._violation("Handler committed more than once")

    def _violation(self, message: str) -> CommitContractError:
        return CommitContractError(
            message,
            details={
                "resource_type": self.resource_type,
                "logical_id": self.logical_id,
                "phase": str(self.phase),
            },
        )

    def __repr__(self) -> str:
        return f"Context(resource_type={self.resource_type!r}, logical_id={self.logical_id!r}, phase={self.phase!s})"
