"""Diagnostic rule codes for mcpdecl.

These constants prevent stringly-typed rule names and ensure
client code matches the codes attached to ValidationWarning.rule.
"""

from enum import Enum


class RuleCode(str, Enum):
    """Diagnostic rule codes."""

    # Compile-time classification
    AMBIGUOUS_CAPABILITY_SHAPE = "ambiguous-capability-shape"

    # Skill validation: orphaned hidden items
    ORPHANED_HIDDEN_TOOL = "orphaned-hidden-tool"
    ORPHANED_HIDDEN_RESOURCE = "orphaned-hidden-resource"
    ORPHANED_HIDDEN_PROMPT = "orphaned-hidden-prompt"

    # Skill validation: dangling references
    INVALID_TOOL_REFERENCE = "invalid-tool-reference"
    INVALID_RESOURCE_REFERENCE = "invalid-resource-reference"
    INVALID_PROMPT_REFERENCE = "invalid-prompt-reference"

    # Skill validation: grouping hygiene
    NON_HIDDEN_COMPONENTS = "non-hidden-components"
    EMPTY_SKILL_COMPONENTS = "empty-skill-components"
    ORPHANED_SKILL_MEMBERSHIP = "orphaned-skill-membership"

    # Dry run
    MISSING_IMPLEMENTATION = "missing-implementation"
