"""
CLI commands for Converge.
"""

from converge.cli.scope import scope_destroy_command, scope_show_command
from converge.cli.user import user_apply_command

__all__ = [
    "scope_destroy_command",
    "scope_show_command",
    "user_apply_command",
]
