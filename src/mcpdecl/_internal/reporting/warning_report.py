"""Render validation warnings as a grouped console report (internal)."""

import io
import os
import sys
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.text import Text

from mcpdecl.codes import RuleCode
from mcpdecl.contracts import ValidationWarning

SEPARATOR = "=" * 70
MAX_RELATED_ITEMS = 10

RULE_TITLES: Dict[str, str] = {
    RuleCode.AMBIGUOUS_CAPABILITY_SHAPE.value: "Ambiguous Capability Shape",
    RuleCode.ORPHANED_HIDDEN_TOOL.value: "Orphaned Hidden Tool",
    RuleCode.ORPHANED_HIDDEN_RESOURCE.value: "Orphaned Hidden Resource",
    RuleCode.ORPHANED_HIDDEN_PROMPT.value: "Orphaned Hidden Prompt",
    RuleCode.INVALID_TOOL_REFERENCE.value: "Invalid Tool Reference",
    RuleCode.INVALID_RESOURCE_REFERENCE.value: "Invalid Resource Reference",
    RuleCode.INVALID_PROMPT_REFERENCE.value: "Invalid Prompt Reference",
    RuleCode.NON_HIDDEN_COMPONENTS.value: "Non-Hidden Components",
    RuleCode.EMPTY_SKILL_COMPONENTS.value: "Empty Skill Components",
    RuleCode.ORPHANED_SKILL_MEMBERSHIP.value: "Orphaned Skill Membership",
    RuleCode.MISSING_IMPLEMENTATION.value: "Missing Implementation",
}

# What related_items hold for each rule
RELATED_LABELS: Dict[str, str] = {
    RuleCode.ORPHANED_HIDDEN_TOOL.value: "Available skills",
    RuleCode.ORPHANED_HIDDEN_RESOURCE.value: "Available skills",
    RuleCode.ORPHANED_HIDDEN_PROMPT.value: "Available skills",
    RuleCode.INVALID_TOOL_REFERENCE.value: "Available tools",
    RuleCode.INVALID_RESOURCE_REFERENCE.value: "Available resources",
    RuleCode.INVALID_PROMPT_REFERENCE.value: "Available prompts",
    RuleCode.NON_HIDDEN_COMPONENTS.value: "Visible components",
    RuleCode.EMPTY_SKILL_COMPONENTS.value: "Available skills",
    RuleCode.ORPHANED_SKILL_MEMBERSHIP.value: "Available skills",
}

_ICONS = {"error": "❌", "warn": "⚠️"}
_LABELS = {"error": "ERROR", "warn": "WARNING"}
_STYLES = {"error": "bold red", "warn": "bold yellow"}


def rule_title(rule: str) -> str:
    """Human-readable rule title; unknown rules are shown as-is."""
    return RULE_TITLES.get(rule, rule)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _use_color(color: Optional[bool]) -> bool:
    if color is not None:
        return color
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


def _related_line(warning: ValidationWarning) -> Optional[str]:
    if not warning.related_items:
        return None
    label = RELATED_LABELS.get(warning.rule, "Related")
    shown = ", ".join(warning.related_items[:MAX_RELATED_ITEMS])
    extra = len(warning.related_items) - MAX_RELATED_ITEMS
    if extra > 0:
        shown += f" ... and {extra} more"
    return f"{label}: {shown}"


def _render_warning(console: Console, warning: ValidationWarning) -> None:
    style = _STYLES[warning.severity]
    console.print(
        Text.assemble(
            (f"{_ICONS[warning.severity]} {_LABELS[warning.severity]}: ", style),
            warning.message,
        ),
        soft_wrap=True,
    )
    if warning.file:
        location = f"{warning.file}:{warning.line}" if warning.line is not None else warning.file
        console.print(Text.assemble("   Location: ", (location, "cyan")), soft_wrap=True)
    if warning.suggestion:
        console.print(Text("   💡 Suggested fixes:", style="green"), soft_wrap=True)
        for line in warning.suggestion.splitlines():
            console.print(Text(f"      {line}"), soft_wrap=True)
    related = _related_line(warning)
    if related:
        console.print(Text(f"   {related}", style="dim"), soft_wrap=True)
    console.print()


def format_warnings(warnings: Sequence[ValidationWarning], color: Optional[bool] = None) -> str:
    """
    Format warnings as a grouped report.

    Warnings are grouped by rule in first-seen order, each group headed by
    its title and count, followed by a summary line.

    Args:
        warnings: Diagnostics to render
        color: Force ANSI colors on/off; None respects NO_COLOR and whether stdout is a TTY

    Returns:
        The rendered report
    """
    use_color = _use_color(color)
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        force_terminal=use_color,
        no_color=not use_color,
        color_system="standard" if use_color else None,
        highlight=False,
        emoji=False,
        width=120,
    )

    if not warnings:
        console.print(Text("✓ No skill validation warnings", style="bold green"))
        return buffer.getvalue()

    groups: Dict[str, List[ValidationWarning]] = {}
    for warning in warnings:
        groups.setdefault(warning.rule, []).append(warning)

    for rule, items in groups.items():
        severity = "error" if any(w.severity == "error" for w in items) else "warn"
        console.print(SEPARATOR)
        console.print(
            Text(f"{_ICONS[severity]}  {rule_title(rule)} ({len(items)})", style=_STYLES[severity]),
            soft_wrap=True,
        )
        console.print(SEPARATOR)
        console.print()
        for warning in items:
            _render_warning(console, warning)

    errors = sum(1 for w in warnings if w.severity == "error")
    count_warnings = len(warnings) - errors
    parts = []
    if errors:
        parts.append(_plural(errors, "error"))
    if count_warnings:
        parts.append(_plural(count_warnings, "warning"))
    console.print(Text.assemble(("Summary: ", "bold"), ", ".join(parts)), soft_wrap=True)
    return buffer.getvalue()
