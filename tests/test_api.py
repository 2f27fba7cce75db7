"""Tests for the public mcpdecl.api surface."""

import types

import pytest

import mcpdecl
from mcpdecl.api import (
    CheckResult,
    apply_validation,
    check,
    compile_file,
    missing_implementations,
    require_implementations,
    validate,
)
from mcpdecl.codes import RuleCode
from mcpdecl.kernel.errors import ImplementationNotFoundError, ProgramBuildError
from mcpdecl.kernel.program import ProgramCache, ProjectConfig
from mcpdecl.kernel.validation import SkillValidationConfig


@pytest.fixture
def weather_path(fixtures_dir):
    return fixtures_dir / "weather" / "server.py"


@pytest.fixture
def broken_path(fixtures_dir):
    return fixtures_dir / "broken" / "server.py"


def test_package_exports():
    assert mcpdecl.__version__
    for name in ("compile_file", "validate", "check", "require_implementations"):
        assert isinstance(getattr(mcpdecl, name), types.FunctionType)
    assert mcpdecl.ParseResult is not None
    assert set(mcpdecl.__all__) >= {"ITool", "IResource", "ISkill", "IServer", "ToolHelper"}


def test_check_clean_server(weather_path):
    result = check(weather_path, project_config=ProjectConfig())
    assert isinstance(result, CheckResult)
    assert result.ok is True
    assert result.errors == []
    assert result.warnings == []
    assert result.parse_result.server.name == "weather-server"


def test_check_reports_validation_and_missing_implementations(broken_path):
    result = check(broken_path, project_config=ProjectConfig())
    assert result.ok is False
    assert [w.rule for w in result.errors] == [
        RuleCode.INVALID_TOOL_REFERENCE.value,
        RuleCode.MISSING_IMPLEMENTATION.value,
        RuleCode.MISSING_IMPLEMENTATION.value,
    ]
    assert [w.rule for w in result.warnings] == [
        RuleCode.ORPHANED_HIDDEN_TOOL.value,
        RuleCode.NON_HIDDEN_COMPONENTS.value,
        RuleCode.EMPTY_SKILL_COMPONENTS.value,
        RuleCode.ORPHANED_SKILL_MEMBERSHIP.value,
    ]
    assert len(result.parse_result.diagnostics) == 7


def test_check_without_binding_requirement(broken_path):
    result = check(broken_path, project_config=ProjectConfig(), require_bindings=False)
    assert [w.rule for w in result.errors] == [RuleCode.INVALID_TOOL_REFERENCE.value]


def test_check_strict(broken_path):
    result = check(
        broken_path,
        project_config=ProjectConfig(),
        validation_config=SkillValidationConfig(strict=True),
    )
    assert result.warnings == []
    assert len(result.errors) == 7


def test_check_missing_file_raises(tmp_path):
    with pytest.raises(ProgramBuildError):
        check(tmp_path / "missing.py", project_config=ProjectConfig())


def test_missing_implementations_message(broken_path):
    result = compile_file(broken_path, project_config=ProjectConfig())
    missing = missing_implementations(result)
    assert [w.severity for w in missing] == ["error", "error"]
    assert missing[0].message == "Tool 'search' (SearchTool) has no implementation."
    assert missing[0].suggestion == "Add a method or function named one of: search, Search"
    assert missing[0].file == str(broken_path.resolve())


def test_require_implementations(broken_path, weather_path):
    require_implementations(compile_file(weather_path, project_config=ProjectConfig()))

    with pytest.raises(ImplementationNotFoundError) as excinfo:
        require_implementations(compile_file(broken_path, project_config=ProjectConfig()))
    error = excinfo.value
    assert error.kind == "tool"
    assert error.declaration == "search"
    assert error.tried == ("search", "Search")
    assert "Looked for members: search, Search" in str(error)


def test_apply_validation_returns_a_copy(broken_path):
    result = compile_file(broken_path, project_config=ProjectConfig())
    applied = apply_validation(result)
    assert result.diagnostics == []
    assert len(applied.diagnostics) == len(validate(result)) == 5
    assert applied.tools == result.tools


def test_compile_file_accepts_str_and_shares_cache(weather_path):
    cache = ProgramCache()
    first = compile_file(str(weather_path), cache=cache, project_config=ProjectConfig())
    second = compile_file(weather_path, cache=cache, project_config=ProjectConfig())
    assert len(cache) == 1
    assert first == second
    assert first.source_path == str(weather_path.resolve())
