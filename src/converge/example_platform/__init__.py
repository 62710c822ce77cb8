"""Example Platform provider: API client and the User resource."""

from converge.example_platform.client import ExamplePlatformApi
from converge.example_platform.user import (
    USER_RESOURCE_TYPE,
    User,
    UserProps,
    UserResource,
    configure_api,
)

__all__ = [
    "ExamplePlatformApi",
    "USER_RESOURCE_TYPE",
    "User",
    "UserProps",
    "UserResource",
    "configure_api",
]
