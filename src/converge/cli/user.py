"""
CLI command for reconciling Example Platform users.

Commands:
    converge user apply <logical-id> --org-id ORG --first-name A --last-name B
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional

from converge.cli.common import open_scope
from converge.cli.ux import print_key_value, success
from converge.core.errors import main_with_error_handling
from converge.example_platform import User, UserResource, configure_api


@main_with_error_handling()
def user_apply_command(
    logical_id: str,
    org_id: str,
    first_name: str,
    last_name: str,
    fun_fact: Optional[str] = None,
    scope_name: Optional[str] = None,
    state_dir: Optional[str] = None,
    api_url: Optional[str] = None,
    output_format: str = "table",
) -> int:
    """Create or update a user inside a persisted scope."""
    if api_url:
        configure_api(api_url=api_url)

    props = {
        "orgId": org_id,
        "firstName": first_name,
        "lastName": last_name,
        "funFact": fun_fact,
    }

    async def _apply() -> User:
        scope = open_scope(scope_name, state_dir)
        async with scope:
            return await UserResource(logical_id, props)

    user = asyncio.run(_apply())

    if output_format == "json":
        print(json.dumps(user.model_dump(mode="json", by_alias=True), indent=2))
        return 0

    success(f"User '{logical_id}' converged")
    print_key_value(
        {
            "id": user.id,
            "orgId": user.org_id,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "funFact": user.fun_fact or "-",
        }
    )
    return 0
