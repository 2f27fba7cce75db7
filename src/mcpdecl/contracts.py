"""Public diagnostic models for mcpdecl package."""

from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["warn", "error"]
RuleSeverity = Literal["off", "warn", "error"]


class ValidationWarning(BaseModel):
    """A diagnostic produced by the compiler or the validation engine."""
    rule: str  # RuleCode value, e.g. "orphaned-hidden-tool"
    severity: Severity
    message: str
    suggestion: Optional[str] = None
    related_items: Tuple[str, ...] = Field(default_factory=tuple)  # available names the user can pick from
    file: Optional[str] = None
    line: Optional[int] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    def escalated(self) -> "ValidationWarning":
        """Return a copy with severity raised to error."""
        if self.severity == "error":
            return self
        return self.model_copy(update={"severity": "error"})
