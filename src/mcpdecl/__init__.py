"""mcpdecl: static compiler + validation engine for declarative MCP servers."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("mcpdecl")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from mcpdecl.api import CheckResult, check, compile_file, require_implementations, validate
from mcpdecl.codes import RuleCode
from mcpdecl.contracts import ValidationWarning
from mcpdecl.interfaces import (
    CompletionHelper,
    ICompletion,
    IParam,
    IPrompt,
    IResource,
    IServer,
    ISkill,
    ISubscription,
    ITool,
    IToolAnnotations,
    IToolRouter,
    PromptHelper,
    ResourceHelper,
    SubscriptionHelper,
    ToolHelper,
)
from mcpdecl.kernel.declarations import ParameterSchema, ParseResult
from mcpdecl.kernel.program import ProgramCache, ProjectConfig
from mcpdecl.kernel.validation import SkillValidationConfig, load_validation_config

__all__ = [
    "__version__",
    "compile_file",
    "validate",
    "check",
    "require_implementations",
    "CheckResult",
    "ParseResult",
    "ParameterSchema",
    "ProgramCache",
    "ProjectConfig",
    "SkillValidationConfig",
    "load_validation_config",
    "RuleCode",
    "ValidationWarning",
    "IParam",
    "IToolAnnotations",
    "ITool",
    "IResource",
    "IPrompt",
    "IToolRouter",
    "ISkill",
    "ISubscription",
    "ICompletion",
    "IServer",
    "ToolHelper",
    "ResourceHelper",
    "PromptHelper",
    "CompletionHelper",
    "SubscriptionHelper",
]
