"""Tests for the grouped warning report."""

from mcpdecl._internal.reporting.warning_report import MAX_RELATED_ITEMS, SEPARATOR, format_warnings, rule_title
from mcpdecl.contracts import ValidationWarning


def _warning(rule="orphaned-hidden-tool", severity="warn", **kwargs):
    data = {"message": f"{rule} happened"}
    data.update(kwargs)
    return ValidationWarning(rule=rule, severity=severity, **data)


def test_no_warnings():
    assert format_warnings([], color=False) == "✓ No skill validation warnings\n"


def test_groups_by_rule_with_counts():
    report = format_warnings(
        [
            _warning(message="Tool 'a' is hidden but not referenced by any skill."),
            _warning(rule="empty-skill-components", message="Skill 's' has no components."),
            _warning(message="Tool 'b' is hidden but not referenced by any skill."),
        ],
        color=False,
    )
    assert "⚠️  Orphaned Hidden Tool (2)" in report
    assert "⚠️  Empty Skill Components (1)" in report
    assert report.index("Tool 'b'") < report.index("Empty Skill Components")
    assert report.count(SEPARATOR) == 4
    assert report.rstrip().endswith("Summary: 3 warnings")


def test_error_rendering_and_location():
    report = format_warnings(
        [
            _warning(
                rule="invalid-tool-reference",
                severity="error",
                message="Skill 's' references tool 'x', which does not exist.",
                file="server.py",
                line=12,
                suggestion="Check the spelling.\nOr declare it.",
                related_items=("search", "fetch"),
            )
        ],
        color=False,
    )
    assert "❌  Invalid Tool Reference (1)" in report
    assert "❌ ERROR: Skill 's' references tool 'x', which does not exist." in report
    assert "   Location: server.py:12" in report
    assert "   💡 Suggested fixes:" in report
    assert "      Check the spelling." in report
    assert "      Or declare it." in report
    assert "   Available tools: search, fetch" in report
    assert "Summary: 1 error" in report


def test_location_without_line():
    report = format_warnings([_warning(file="server.py")], color=False)
    assert "   Location: server.py\n" in report


def test_related_items_are_truncated():
    items = tuple(f"skill_{i}" for i in range(MAX_RELATED_ITEMS + 3))
    report = format_warnings([_warning(related_items=items)], color=False)
    assert "Available skills: skill_0" in report
    assert "skill_9 ... and 3 more" in report
    assert "skill_10" not in report


def test_mixed_summary():
    report = format_warnings(
        [_warning(severity="error"), _warning(rule="empty-skill-components"), _warning(rule="x-custom")],
        color=False,
    )
    assert "Summary: 1 error, 2 warnings" in report
    assert "x-custom (1)" in report


def test_color_output_has_ansi_codes():
    report = format_warnings([_warning(severity="error")], color=True)
    assert "\x1b[" in report


def test_no_color_env_disables_color(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    report = format_warnings([_warning()])
    assert "\x1b[" not in report


def test_rule_title_falls_back_to_code():
    assert rule_title("non-hidden-components") == "Non-Hidden Components"
    assert rule_title("something-new") == "something-new"
