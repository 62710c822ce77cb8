"""
Users in the Example Platform.

Example:
    props = {
        "orgId": "fe110c72385f49a4ad721a26cdd0f730",
        "firstName": "John",
        "lastName": "Doe",
        "funFact": "I love coding!",
    }
    async with Scope("dev") as scope:
        user = await UserResource("john-doe", props)
        # Same logical id, new props: the user is patched in place.
        user = await UserResource("john-doe", {**props, "funFact": "I also love coffee!"})
    await destroy(scope)
"""

from __future__ import annotations

import time
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from converge.core.errors import ReconciliationError, TransportError
from converge.example_platform.client import ExamplePlatformApi
from converge.resources.base import Outcome, Phase
from converge.resources.context import Context
from converge.resources.resource import resource

logger = structlog.get_logger()

USER_RESOURCE_TYPE = "example-platform::User"


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserProps(_ApiModel):
    """Desired state of a user."""

    org_id: str
    first_name: str
    last_name: str
    fun_fact: str | None = None

    def payload(self) -> dict[str, str | None]:
        # Optional fields are sent even when unset so an update can clear them.
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "funFact": self.fun_fact,
        }


class User(_ApiModel):
    """A reconciled user as returned by the platform."""

    id: str
    org_id: str
    first_name: str
    last_name: str
    fun_fact: str | None = None
    # Milliseconds since the epoch at which the user was first created.
    created_at: int


class ExamplePlatformUserResponse(_ApiModel):
    id: str
    first_name: str
    last_name: str
    fun_fact: str | None = None


_api_options: dict[str, Any] = {}


def configure_api(**options: Any) -> None:
    """Set the ExamplePlatformApi options used by the User handler."""
    _api_options.clear()
    _api_options.update(options)


def get_api() -> ExamplePlatformApi:
    return ExamplePlatformApi(**_api_options)


async def reconcile_user(ctx: Context, logical_id: str, props: UserProps) -> Outcome:
    api = get_api()
    prior: User | None = ctx.output

    if ctx.phase is Phase.DELETE:
        if prior is None or not prior.id:
            return ctx.destroy()
        warning = None
        try:
            response = await api.delete_user(prior.org_id, prior.id)
        except TransportError as exc:
            warning = f"Error deleting user {prior.id}: {exc.message}"
        else:
            if not response.is_success and response.status_code != 404:
                warning = f"Error deleting user {prior.id}: HTTP {response.status_code} {response.reason_phrase}"
        if warning:
            logger.error("user_delete_failed", logical_id=logical_id, user_id=prior.id, error=warning)
        return ctx.destroy(warning=warning)

    if ctx.phase is Phase.UPDATE and prior is not None and prior.id:
        response = await api.update_user(props.org_id, prior.id, props.payload())
    else:
        response = await api.create_user(props.org_id, props.payload())

    if not response.is_success:
        raise ReconciliationError(
            f"API error: HTTP {response.status_code} {response.reason_phrase}",
            details={"logical_id": logical_id, "phase": str(ctx.phase), "status": response.status_code},
        )

    try:
        data = ExamplePlatformUserResponse.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise ReconciliationError(
            f"Unexpected user payload from API: {exc}",
            details={"logical_id": logical_id, "phase": str(ctx.phase)},
        ) from exc

    created_at = prior.created_at if prior is not None else int(time.time() * 1000)
    return ctx.commit(
        User(
            id=data.id,
            org_id=props.org_id,
            first_name=data.first_name,
            last_name=data.last_name,
            fun_fact=data.fun_fact,
            created_at=created_at,
        )
    )


UserResource = resource(
    USER_RESOURCE_TYPE,
    reconcile_user,
    props_model=UserProps,
    output_model=User,
)
