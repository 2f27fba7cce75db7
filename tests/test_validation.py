"""Tests for the skill validation engine."""

import pytest
from pydantic import ValidationError

from mcpdecl.codes import RuleCode
from mcpdecl.kernel.declarations import (
    HiddenFlag,
    ParseResult,
    PromptDeclaration,
    ResourceDeclaration,
    SkillComponents,
    SkillDeclaration,
    SourceLocation,
    ToolDeclaration,
)
from mcpdecl.kernel.validation import (
    SkillValidationConfig,
    build_reference_maps,
    check_invalid_references,
    check_non_hidden_components,
    load_validation_config,
    rule_key,
    validate,
)

HIDDEN = HiddenFlag(mode="static", value=True)


def _tool(name, hidden=None, skills=()):
    return ToolDeclaration(
        name=name,
        interface_name=f"{name.title()}Tool",
        hidden=hidden or HiddenFlag(),
        skill_membership=tuple(skills),
        location=SourceLocation(file="server.py", line=1),
    )


def _skill(name, tools=(), resources=(), prompts=()):
    return SkillDeclaration(
        name=name,
        interface_name=f"{name.title()}Skill",
        components=SkillComponents(tools=tuple(tools), resources=tuple(resources), prompts=tuple(prompts)),
        location=SourceLocation(file="server.py", line=10),
    )


def _result(tools=(), resources=(), prompts=(), skills=()):
    return ParseResult(
        source_path="server.py",
        tools={t.name: t for t in tools},
        resources={r.uri: r for r in resources},
        prompts={p.name: p for p in prompts},
        skills={s.name: s for s in skills},
    )


def _rules(warnings):
    return [w.rule for w in warnings]


def test_clean_result_has_no_findings():
    result = _result(
        tools=[_tool("analyze", hidden=HIDDEN)],
        skills=[_skill("analysis", tools=["analyze"])],
    )
    assert validate(result) == []


def test_orphaned_hidden_tool_fires_once_with_skill_names():
    result = _result(
        tools=[_tool("analyze", hidden=HIDDEN), _tool("report", hidden=HIDDEN)],
        skills=[_skill("analysis", tools=["report"]), _skill("ops", tools=["report"])],
    )
    warnings = [w for w in validate(result) if w.rule == RuleCode.ORPHANED_HIDDEN_TOOL.value]
    assert len(warnings) == 1
    warning = warnings[0]
    assert warning.severity == "warn"
    assert "analyze" in warning.message
    assert warning.related_items == ("analysis", "ops")
    assert warning.file == "server.py"


def test_membership_counts_as_reference():
    result = _result(
        tools=[_tool("analyze", hidden=HIDDEN, skills=["analysis"])],
        skills=[_skill("analysis")],
    )
    assert validate(result) == []


def test_membership_in_missing_skill_does_not_rescue_hidden_tool():
    result = _result(tools=[_tool("analyze", hidden=HIDDEN, skills=["ghost"])])
    assert _rules(validate(result)) == [
        RuleCode.ORPHANED_HIDDEN_TOOL.value,
        RuleCode.ORPHANED_SKILL_MEMBERSHIP.value,
    ]


def test_predicate_hidden_is_not_orphaned():
    result = _result(tools=[_tool("admin", hidden=HiddenFlag(mode="predicate", predicate="is_admin"))])
    assert validate(result) == []


def test_orphaned_hidden_resource_and_prompt():
    result = _result(
        resources=[ResourceDeclaration(name="secrets", interface_name="SecretsResource",
                                       uri="vault://secrets", hidden=HIDDEN, dynamic=True)],
        prompts=[PromptDeclaration(name="triage", interface_name="TriagePrompt", hidden=HIDDEN)],
    )
    assert _rules(validate(result)) == [
        RuleCode.ORPHANED_HIDDEN_RESOURCE.value,
        RuleCode.ORPHANED_HIDDEN_PROMPT.value,
    ]


def test_invalid_references_are_errors():
    result = _result(
        tools=[_tool("analyze", hidden=HIDDEN)],
        skills=[_skill("analysis", tools=["analyze", "missing"], resources=["db://x"], prompts=["nope"])],
    )
    warnings = validate(result)
    assert _rules(warnings) == [
        RuleCode.INVALID_TOOL_REFERENCE.value,
        RuleCode.INVALID_RESOURCE_REFERENCE.value,
        RuleCode.INVALID_PROMPT_REFERENCE.value,
    ]
    assert all(w.severity == "error" for w in warnings)
    assert warnings[0].related_items == ("analyze",)
    assert "'missing'" in warnings[0].message


def test_non_hidden_components_is_a_warning_per_skill():
    result = _result(
        tools=[_tool("search"), _tool("fetch"), _tool("secret", hidden=HIDDEN)],
        skills=[_skill("research", tools=["search", "fetch", "secret"])],
    )
    warnings = validate(result)
    assert _rules(warnings) == [RuleCode.NON_HIDDEN_COMPONENTS.value]
    assert warnings[0].severity == "warn"
    assert warnings[0].related_items == ("search", "fetch")
    assert "2 non-hidden components" in warnings[0].message


def test_empty_skill():
    result = _result(skills=[_skill("empty")])
    warnings = validate(result)
    assert _rules(warnings) == [RuleCode.EMPTY_SKILL_COMPONENTS.value]
    assert warnings[0].line == 10


def test_orphaned_membership_lists_available_skills():
    result = _result(
        tools=[_tool("export", skills=["reporting"]), _tool("analyze", hidden=HIDDEN)],
        skills=[_skill("analysis", tools=["analyze"])],
    )
    warnings = validate(result)
    assert _rules(warnings) == [RuleCode.ORPHANED_SKILL_MEMBERSHIP.value]
    assert warnings[0].related_items == ("analysis",)
    assert "'reporting'" in warnings[0].message


def test_strict_mode_escalates_everything():
    result = _result(skills=[_skill("empty")], tools=[_tool("orphan", hidden=HIDDEN)])
    warnings = validate(result, SkillValidationConfig(strict=True))
    assert warnings
    assert all(w.severity == "error" for w in warnings)


def test_rule_off_skips_it():
    result = _result(skills=[_skill("empty")])
    config = load_validation_config({"rules": {"empty-skill-components": "off"}})
    assert validate(result, config) == []


def test_disabled_validation_returns_nothing():
    result = _result(skills=[_skill("empty")])
    assert validate(result, SkillValidationConfig(enabled=False)) == []


def test_validate_does_not_modify_result():
    result = _result(skills=[_skill("empty")])
    before = result.model_dump()
    validate(result)
    assert result.model_dump() == before
    assert result.diagnostics == []


def test_reference_maps_are_bidirectional():
    result = _result(
        tools=[_tool("a", skills=["s"]), _tool("b")],
        skills=[_skill("s", tools=["b"])],
    )
    maps = build_reference_maps(result)
    assert maps.skills_for("tool:a") == {"s"}
    assert maps.skills_for("tool:b") == {"s"}
    assert maps.skill_to_components["s"] == {"tool:a", "tool:b"}
    assert maps.skills_for("tool:zzz") == set()


def test_reference_maps_keep_explicit_components_in_order():
    result = _result(
        tools=[_tool("a", skills=["s"]), _tool("b")],
        skills=[_skill("s", tools=["b"], resources=["docs://readme"], prompts=["intro"])],
    )
    maps = build_reference_maps(result)
    assert maps.references("s") == [("tool", "b"), ("resource", "docs://readme"), ("prompt", "intro")]
    assert maps.references("unknown") == []


def test_reference_rules_read_the_maps():
    result = _result(
        tools=[_tool("visible")],
        skills=[_skill("s")],
    )
    maps = build_reference_maps(result)
    maps.skill_references["s"] = ["tool:visible", "tool:ghost"]

    invalid = check_invalid_references(result, maps, "error")
    assert [w.message for w in invalid] == ["Skill 's' references tool 'ghost', which does not exist."]
    non_hidden = check_non_hidden_components(result, maps, "warn")
    assert [w.related_items for w in non_hidden] == [("visible",)]


def test_load_validation_config_defaults():
    config = load_validation_config(None)
    assert config.enabled is True
    assert config.strict is False
    assert config.rules.invalid_references == "error"
    assert config.rules.non_hidden_components == "warn"


def test_load_validation_config_ignores_none():
    config = load_validation_config({"strict": None, "enabled": None, "rules": {"orphaned_hidden": None}})
    assert config == SkillValidationConfig()


def test_load_validation_config_accepts_both_spellings():
    config = load_validation_config({
        "strict": True,
        "rules": {"orphaned-hidden-tool": "error", "non-hidden-components": "off", "empty_skills": "error"},
    })
    assert config.strict is True
    assert config.rules.orphaned_hidden == "error"
    assert config.rules.non_hidden_components == "off"
    assert config.rules.empty_skills == "error"


def test_unknown_rule_name():
    with pytest.raises(ValueError, match="Unknown validation rule 'bogus'"):
        load_validation_config({"rules": {"bogus": "warn"}})
    assert rule_key("invalid-prompt-reference") == "invalid_references"


def test_invalid_severity():
    with pytest.raises(ValidationError):
        load_validation_config({"rules": {"empty_skills": "loud"}})
