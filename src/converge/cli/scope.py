"""
CLI commands for inspecting and tearing down scopes.

Commands:
    converge scope show [--scope NAME] [--json]
    converge scope destroy [--scope NAME]
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional

from converge.cli.common import open_scope
from converge.cli.ux import error, header, info, print_table, success
from converge.core.errors import WarningResult, main_with_error_handling
from converge.example_platform import configure_api
from converge.resources import DestroyResult
from converge.resources.base import dump_output


@main_with_error_handling()
def scope_show_command(
    scope_name: Optional[str] = None,
    state_dir: Optional[str] = None,
    output_format: str = "table",
) -> int:
    scope = open_scope(scope_name, state_dir)

    if output_format == "json":
        print(json.dumps(scope.snapshot(), indent=2))
        return 0

    header(f"Scope: {scope.name}")
    if not len(scope):
        info("No resources")
        return 0

    rows = []
    for instance in scope.instances:
        output = dump_output(instance.output) or {}
        rows.append(
            [
                instance.logical_id,
                instance.resource_type,
                str(instance.phase),
                str(output.get("id", "-")),
            ]
        )
    print_table("Resources (creation order)", ["Logical ID", "Type", "Last phase", "ID"], rows)
    return 0


@main_with_error_handling()
def scope_destroy_command(
    scope_name: Optional[str] = None,
    state_dir: Optional[str] = None,
    api_url: Optional[str] = None,
) -> int:
    """Destroy every resource in a scope, last created first."""
    if api_url:
        configure_api(api_url=api_url)

    scope = open_scope(scope_name, state_dir)
    result: DestroyResult = asyncio.run(scope.destroy())

    for item in result.results:
        if item.success:
            success(f"Destroyed {item.resource_type} '{item.logical_id}'")
        else:
            error(f"{item.resource_type} '{item.logical_id}': {item.error_message}")

    if not result.success:
        raise WarningResult(
            f"Scope '{scope.name}' destroyed with {len(result.failures)} failure(s)",
            details={"scope": scope.name},
        )

    info(f"Scope '{scope.name}' destroyed ({len(result.results)} resources)")
    return 0
