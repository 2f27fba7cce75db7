"""Public API for the mcpdecl compiler.

High-level functions that return complete, structured results. Callers
(the CLI, a registration layer) should use these instead of importing from
kernel modules directly.
"""

import os
from pathlib import Path
from typing import List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict

from mcpdecl.codes import RuleCode
from mcpdecl.contracts import ValidationWarning
from mcpdecl.kernel.declarations import ParseResult
from mcpdecl.kernel.errors import ImplementationNotFoundError
from mcpdecl.kernel.extractor import compile_unit
from mcpdecl.kernel.program import ProgramCache, ProjectConfig, build
from mcpdecl.kernel.validation import SkillValidationConfig
from mcpdecl.kernel.validation import validate as _validate

logger = structlog.get_logger(__name__)


def _normalize_path(path: Union[str, os.PathLike, Path]) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


class CheckResult(BaseModel):
    """Result of a dry-run check."""
    ok: bool  # True if no errors (warnings don't block)
    parse_result: ParseResult
    errors: List[ValidationWarning]  # Blocking issues
    warnings: List[ValidationWarning]  # Non-blocking issues

    model_config = ConfigDict(frozen=True)


def compile_file(
    path: Union[str, os.PathLike, Path],
    *,
    cache: Optional[ProgramCache] = None,
    project_config: Optional[ProjectConfig] = None,
) -> ParseResult:
    """
    Compile one entry file into a fresh ParseResult.

    Args:
        path: Entry source file
        cache: Optional program cache shared across calls
        project_config: Explicit project configuration (skips discovery)

    Returns:
        ParseResult with compile-time diagnostics (ambiguous shapes) attached

    Raises:
        ProgramBuildError: file missing or unparsable
        ExtractionError: a declaration cannot be extracted
    """
    unit = build(_normalize_path(path), cache=cache, config=project_config)
    result = compile_unit(unit)
    logger.debug(
        "compiled",
        path=result.source_path,
        tools=len(result.tools),
        resources=len(result.resources),
        prompts=len(result.prompts),
        skills=len(result.skills),
    )
    return result


def validate(result: ParseResult, config: Optional[SkillValidationConfig] = None) -> List[ValidationWarning]:
    """Run the skill validation rules over a ParseResult (the result is not modified)."""
    return _validate(result, config)


def apply_validation(result: ParseResult, config: Optional[SkillValidationConfig] = None) -> ParseResult:
    """Return a copy of ``result`` with validation findings appended to its diagnostics."""
    return result.with_diagnostics(_validate(result, config))


def missing_implementations(result: ParseResult) -> List[ValidationWarning]:
    """One error diagnostic per declaration that needs an implementation but has none."""
    warnings: List[ValidationWarning] = []
    for declaration in result.unresolved_bindings():
        tried = ", ".join(declaration.binding_candidates) or "(none)"
        warnings.append(ValidationWarning(
            rule=RuleCode.MISSING_IMPLEMENTATION.value,
            severity="error",
            message=f"{declaration.kind.capitalize()} '{declaration.key}' ({declaration.interface_name}) has no implementation.",
            suggestion=f"Add a method or function named one of: {tried}",
            file=declaration.location.file if declaration.location else None,
            line=declaration.location.line if declaration.location else None,
        ))
    return warnings


def require_implementations(result: ParseResult) -> None:
    """
    Registration-layer contract: every declaration that needs an
    implementation must have one bound.

    Raises:
        ImplementationNotFoundError: for the first unresolved declaration
    """
    for declaration in result.unresolved_bindings():
        raise ImplementationNotFoundError(
            declaration.kind,
            declaration.key,
            declaration.interface_name,
            tried=declaration.binding_candidates,
        )


def check(
    path: Union[str, os.PathLike, Path],
    *,
    validation_config: Optional[SkillValidationConfig] = None,
    cache: Optional[ProgramCache] = None,
    project_config: Optional[ProjectConfig] = None,
    require_bindings: bool = True,
) -> CheckResult:
    """
    Dry run: compile, validate and check implementations.

    Build and extraction errors propagate. Everything else is collected:
    compile diagnostics, validation findings and (when ``require_bindings``)
    missing implementations, split into errors and warnings by severity.
    """
    result = compile_file(path, cache=cache, project_config=project_config)
    findings = list(result.diagnostics)
    findings.extend(_validate(result, validation_config))
    if require_bindings:
        findings.extend(missing_implementations(result))

    errors = [f for f in findings if f.severity == "error"]
    warnings = [f for f in findings if f.severity == "warn"]
    return CheckResult(
        ok=not errors,
        parse_result=result.model_copy(update={"diagnostics": findings}),
        errors=errors,
        warnings=warnings,
    )
