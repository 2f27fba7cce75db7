"""Skill validation engine.

Consistency rules over a ParseResult. Each rule is a pure function of the
result plus a precomputed reference index; rules run sequentially and never
raise. Whether error-severity findings are fatal is up to the caller.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from mcpdecl.codes import RuleCode
from mcpdecl.contracts import RuleSeverity, ValidationWarning
from mcpdecl.kernel.declarations import Declaration, ParseResult

logger = structlog.get_logger(__name__)


class RuleSeverities(BaseModel):
    """Per-rule severity, each one of off|warn|error."""
    orphaned_hidden: RuleSeverity = "warn"
    invalid_references: RuleSeverity = "error"
    non_hidden_components: RuleSeverity = "warn"
    empty_skills: RuleSeverity = "warn"
    orphaned_membership: RuleSeverity = "warn"

    model_config = ConfigDict(frozen=True, extra="forbid")


class SkillValidationConfig(BaseModel):
    enabled: bool = True
    strict: bool = False  # escalate every warn to error
    rules: RuleSeverities = Field(default_factory=RuleSeverities)

    model_config = ConfigDict(frozen=True, extra="forbid")


# Rule code -> configuration key that controls it
RULE_GROUPS: Dict[str, str] = {
    RuleCode.ORPHANED_HIDDEN_TOOL.value: "orphaned_hidden",
    RuleCode.ORPHANED_HIDDEN_RESOURCE.value: "orphaned_hidden",
    RuleCode.ORPHANED_HIDDEN_PROMPT.value: "orphaned_hidden",
    RuleCode.INVALID_TOOL_REFERENCE.value: "invalid_references",
    RuleCode.INVALID_RESOURCE_REFERENCE.value: "invalid_references",
    RuleCode.INVALID_PROMPT_REFERENCE.value: "invalid_references",
    RuleCode.NON_HIDDEN_COMPONENTS.value: "non_hidden_components",
    RuleCode.EMPTY_SKILL_COMPONENTS.value: "empty_skills",
    RuleCode.ORPHANED_SKILL_MEMBERSHIP.value: "orphaned_membership",
}


def rule_key(name: str) -> str:
    """Map a rule code or configuration key (either spelling) to its configuration key."""
    if name in RULE_GROUPS:
        return RULE_GROUPS[name]
    key = name.replace("-", "_")
    if key not in RuleSeverities.model_fields:
        raise ValueError(
            f"Unknown validation rule '{name}'. "
            f"Expected one of: {', '.join(sorted(RuleSeverities.model_fields))}"
        )
    return key


def load_validation_config(overrides: Optional[Mapping[str, Any]] = None) -> SkillValidationConfig:
    """Merge a partial configuration over the defaults.

    ``None`` values are ignored, so callers can pass optional flags through
    unchanged. Rule keys may use rule codes or hyphens.
    """
    defaults = SkillValidationConfig()
    if not overrides:
        return defaults

    data: Dict[str, Any] = {}
    for key in ("enabled", "strict"):
        if overrides.get(key) is not None:
            data[key] = overrides[key]

    rules = defaults.rules.model_dump()
    for name, severity in (overrides.get("rules") or {}).items():
        if severity is not None:
            rules[rule_key(name)] = severity
    data["rules"] = rules
    return SkillValidationConfig(**data)


def component_key(kind: str, name: str) -> str:
    return f"{kind}:{name}"


@dataclass
class ReferenceMaps:
    """Bidirectional index between skills and the components they expose."""
    component_to_skills: Dict[str, Set[str]] = field(default_factory=dict)
    skill_to_components: Dict[str, Set[str]] = field(default_factory=dict)
    # explicit skill components only, in declaration order
    skill_references: Dict[str, List[str]] = field(default_factory=dict)

    def add(self, skill: str, key: str) -> None:
        self.component_to_skills.setdefault(key, set()).add(skill)
        self.skill_to_components.setdefault(skill, set()).add(key)

    def references(self, skill: str) -> List[Tuple[str, str]]:
        """(kind, name) pairs a skill lists explicitly."""
        return [tuple(key.split(":", 1)) for key in self.skill_references.get(skill, [])]

    def skills_for(self, key: str) -> Set[str]:
        return self.component_to_skills.get(key, set())


def _components_by_kind(result: ParseResult) -> Dict[str, Mapping[str, Declaration]]:
    return {"tool": result.tools, "resource": result.resources, "prompt": result.prompts}


def build_reference_maps(result: ParseResult) -> ReferenceMaps:
    """Index explicit skill components and declared memberships."""
    maps = ReferenceMaps()
    for skill in result.skills.values():
        maps.skill_to_components.setdefault(skill.name, set())
        references = maps.skill_references.setdefault(skill.name, [])
        for kind, names in (
            ("tool", skill.components.tools),
            ("resource", skill.components.resources),
            ("prompt", skill.components.prompts),
        ):
            for name in names:
                maps.add(skill.name, component_key(kind, name))
                references.append(component_key(kind, name))

    for kind, declarations in _components_by_kind(result).items():
        for key, declaration in declarations.items():
            for skill in declaration.skill_membership:
                maps.add(skill, component_key(kind, key))
    return maps


def _where(declaration: Declaration) -> Dict[str, Any]:
    if declaration.location is None:
        return {}
    return {"file": declaration.location.file, "line": declaration.location.line}


def _label(kind: str, declaration: Declaration) -> str:
    if kind == "resource":
        return f"Resource '{declaration.key}'"
    return f"{kind.capitalize()} '{declaration.name}'"


RuleFn = Callable[[ParseResult, ReferenceMaps, RuleSeverity], List[ValidationWarning]]


def check_orphaned_hidden(result: ParseResult, maps: ReferenceMaps, severity: RuleSeverity) -> List[ValidationWarning]:
    """Statically hidden items that no existing skill exposes are unreachable."""
    warnings: List[ValidationWarning] = []
    available = tuple(result.skills)
    codes = {
        "tool": RuleCode.ORPHANED_HIDDEN_TOOL,
        "resource": RuleCode.ORPHANED_HIDDEN_RESOURCE,
        "prompt": RuleCode.ORPHANED_HIDDEN_PROMPT,
    }
    for kind, declarations in _components_by_kind(result).items():
        plural = f"{kind}s"
        for key, declaration in declarations.items():
            # dynamic predicates are decided at runtime
            if not declaration.hidden.is_static_hidden:
                continue
            owners = maps.skills_for(component_key(kind, key)) & set(result.skills)
            if owners:
                continue
            warnings.append(ValidationWarning(
                rule=codes[kind].value,
                severity=severity,
                message=f"{_label(kind, declaration)} is hidden but not referenced by any skill.",
                suggestion=(
                    f"Add it to a skill's components ({plural}: [\"{key}\"]), declare membership with "
                    f"skill: Literal[\"<skill_name>\"], or remove hidden."
                ),
                related_items=available,
                **_where(declaration),
            ))
    return warnings


def check_invalid_references(result: ParseResult, maps: ReferenceMaps, severity: RuleSeverity) -> List[ValidationWarning]:
    """Skill components that name a tool, resource or prompt that does not exist."""
    warnings: List[ValidationWarning] = []
    codes = {
        "tool": RuleCode.INVALID_TOOL_REFERENCE,
        "resource": RuleCode.INVALID_RESOURCE_REFERENCE,
        "prompt": RuleCode.INVALID_PROMPT_REFERENCE,
    }
    existing = _components_by_kind(result)
    for skill in result.skills.values():
        for kind, name in maps.references(skill.name):
            if name in existing[kind]:
                continue
            warnings.append(ValidationWarning(
                rule=codes[kind].value,
                severity=severity,
                message=f"Skill '{skill.name}' references {kind} '{name}', which does not exist.",
                suggestion=f"Check the spelling, or declare the {kind} '{name}'.",
                related_items=tuple(existing[kind]),
                **_where(skill),
            ))
    return warnings


def check_non_hidden_components(result: ParseResult, maps: ReferenceMaps, severity: RuleSeverity) -> List[ValidationWarning]:
    """Skills that group visible items; the grouping is probably redundant."""
    warnings: List[ValidationWarning] = []
    existing = _components_by_kind(result)
    for skill in result.skills.values():
        visible: List[str] = []
        for kind, name in maps.references(skill.name):
            declaration = existing[kind].get(name)
            if declaration is None:
                continue
            if declaration.hidden.is_static_hidden or declaration.hidden.is_dynamic:
                continue
            visible.append(name)
        if not visible:
            continue
        noun = "component" if len(visible) == 1 else "components"
        warnings.append(ValidationWarning(
            rule=RuleCode.NON_HIDDEN_COMPONENTS.value,
            severity=severity,
            message=(
                f"Skill '{skill.name}' references {len(visible)} non-hidden {noun}: "
                f"{', '.join(visible)}. Skills are meant to expose hidden items."
            ),
            suggestion="Mark these items hidden: Literal[True], or drop them from the skill.",
            related_items=tuple(visible),
            **_where(skill),
        ))
    return warnings


def check_empty_skills(result: ParseResult, maps: ReferenceMaps, severity: RuleSeverity) -> List[ValidationWarning]:
    warnings: List[ValidationWarning] = []
    for skill in result.skills.values():
        if maps.skill_to_components.get(skill.name):
            continue
        warnings.append(ValidationWarning(
            rule=RuleCode.EMPTY_SKILL_COMPONENTS.value,
            severity=severity,
            message=f"Skill '{skill.name}' has no components.",
            suggestion="List components on the skill, or declare skill membership on hidden items.",
            **_where(skill),
        ))
    return warnings


def check_orphaned_membership(result: ParseResult, maps: ReferenceMaps, severity: RuleSeverity) -> List[ValidationWarning]:
    """Items declaring membership in a skill that does not exist."""
    warnings: List[ValidationWarning] = []
    available = tuple(result.skills)
    for kind, declarations in _components_by_kind(result).items():
        for declaration in declarations.values():
            for skill in declaration.skill_membership:
                if skill in result.skills:
                    continue
                warnings.append(ValidationWarning(
                    rule=RuleCode.ORPHANED_SKILL_MEMBERSHIP.value,
                    severity=severity,
                    message=f"{_label(kind, declaration)} declares membership in skill '{skill}', which does not exist.",
                    suggestion=f"Declare a skill named '{skill}', or fix the skill name.",
                    related_items=available,
                    **_where(declaration),
                ))
    return warnings


RULES: List[Tuple[str, RuleFn]] = [
    ("orphaned_hidden", check_orphaned_hidden),
    ("invalid_references", check_invalid_references),
    ("non_hidden_components", check_non_hidden_components),
    ("empty_skills", check_empty_skills),
    ("orphaned_membership", check_orphaned_membership),
]


def validate(result: ParseResult, config: Optional[SkillValidationConfig] = None) -> List[ValidationWarning]:
    """Run every enabled rule over ``result`` and return the findings.

    The result is not modified.
    """
    config = config or SkillValidationConfig()
    if not config.enabled:
        return []

    maps = build_reference_maps(result)
    warnings: List[ValidationWarning] = []
    for key, rule in RULES:
        severity = getattr(config.rules, key)
        if severity == "off":
            continue
        found = rule(result, maps, severity)
        if found:
            logger.debug("validation rule fired", rule=key, count=len(found))
        warnings.extend(found)

    if config.strict:
        warnings = [w.escalated() for w in warnings]
    return warnings
