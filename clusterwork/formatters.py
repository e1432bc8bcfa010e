"""
Terraform-style output formatting for Clusterwork runs.

Dry runs are shown as a plan with ``+`` for tasks that would be created and
``~`` for tasks that would be updated. Real runs list each task with its
terminal status.
"""

from typing import Any, List, Optional

from rich.console import Console
from rich.text import Text

from .content import Content
from .engine import RunResult, TaskRef, TaskStatus
from .targets.dryrun import PlannedChange


class TerraformStyleFormatter:
    """
    Terraform-style formatter for Clusterwork runs.

    Symbols:
    - `+` for create operations
    - `~` for update operations
    """

    def __init__(self, console: Optional[Console] = None):
        """Initialize formatter with Rich console."""
        self.console = console or Console()

        # Color scheme matching Terraform output
        self.colors = {
            'create': 'green',
            'update': 'yellow',
            'failed': 'red',
            'skipped': 'dim',
            'no_change': 'dim',
            'header': 'bold blue',
            'comment': 'dim',
        }

        self.symbols = {
            'create': '+',
            'update': '~',
        }

        self.status_symbols = {
            TaskStatus.CREATED: ('✓', 'create'),
            TaskStatus.UPDATED: ('✓', 'update'),
            TaskStatus.NO_CHANGE: ('=', 'no_change'),
            TaskStatus.SKIPPED: ('⋯', 'skipped'),
            TaskStatus.FAILED: ('✗', 'failed'),
        }

    def format_plan(self, changes: List[PlannedChange]) -> Text:
        """
        Format the change-sets recorded by a dry run.

        Args:
            changes: Planned changes, as returned by DryRunTarget.changes

        Returns:
            Formatted plan output
        """
        output = Text()

        if not changes:
            output.append("No changes. Infrastructure is up-to-date.\n", style=self.colors['create'])
            return output

        output.append("Clusterwork will perform the following actions:\n\n", style=self.colors['header'])

        for change in changes:
            symbol = self.symbols[change.action]
            color = self.colors[change.action]

            output.append(f"  # {change.get_summary()}\n", style=self.colors['comment'])
            output.append(f"  {symbol} {change.task_type} \"{change.key}\" {{\n", style=color)
            for field in change.fields:
                if change.action == 'create':
                    line = f"{field.name} = {self._format_value(field.new)}"
                else:
                    line = (
                        f"{field.name} = {self._format_value(field.old)} -> "
                        f"{self._format_value(field.new)}"
                    )
                output.append(f"      {line}\n", style=color)
            output.append("    }\n\n", style=color)

        output.append(self._format_plan_summary(changes), style=self.colors['header'])
        return output

    def format_run(self, result: RunResult) -> Text:
        """
        Format the terminal status of every task in a run.

        Args:
            result: Result returned by the executor

        Returns:
            Formatted run output
        """
        output = Text()
        output.append(f"Clusterwork run against '{result.target}':\n\n", style=self.colors['header'])

        for key in result.order:
            task_result = result.results.get(key)
            if task_result is None:
                continue
            symbol, color_key = self.status_symbols[task_result.status]
            color = self.colors[color_key]

            output.append(f"  {symbol} {key}: ", style=color)
            output.append(f"{task_result.status.value}\n")

            if task_result.reason and task_result.status == TaskStatus.SKIPPED:
                output.append(f"    Reason: {task_result.reason}\n", style=self.colors['comment'])
            for warning in task_result.warnings:
                output.append(f"    Warning: {warning}\n", style=self.colors['update'])
            if task_result.error is not None:
                output.append(f"    Error: {task_result.error}\n", style=self.colors['failed'])

        output.append("\n")
        if result.error is not None:
            output.append(f"Error: {result.error}\n", style=self.colors['failed'])

        counts = result.counts()
        summary = (
            f"{counts['created']} created, {counts['updated']} updated, "
            f"{counts['no-change']} unchanged, {counts['skipped']} skipped, "
            f"{counts['failed']} failed."
        )
        if result.cancelled:
            output.append(f"Run cancelled! Tasks: {summary}\n", style=self.colors['failed'])
        elif result.success:
            output.append(f"Run complete! Tasks: {summary}\n", style=self.colors['create'])
        else:
            output.append(f"Run failed! Tasks: {summary}\n", style=self.colors['failed'])
        return output

    def _format_value(self, value: Any) -> str:
        """Format a field value for display."""
        if value is None:
            return "(none)"
        if isinstance(value, TaskRef):
            return f"<{value.key}>"
        if isinstance(value, Content):
            return "(content)"
        if isinstance(value, str):
            return f'"{value}"'
        if isinstance(value, bool):
            return str(value).lower()
        if hasattr(value, "value"):
            return f'"{value.value}"'
        return str(value)

    def _format_plan_summary(self, changes: List[PlannedChange]) -> str:
        """Format the plan summary line."""
        create_count = sum(1 for c in changes if c.action == 'create')
        update_count = sum(1 for c in changes if c.action == 'update')
        return f"Plan: {create_count} to add, {update_count} to change.\n"
