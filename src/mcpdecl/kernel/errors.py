"""Typed compiler errors.

Build and extraction errors abort the compile pass and always propagate to the
caller. Classification ambiguity and validation findings are diagnostics, not
exceptions (see kernel.validation).
"""

from pathlib import Path
from typing import Iterable, Optional, Union


class CompilerError(Exception):
    """Base exception for compiler errors."""
    pass


class ProgramBuildError(CompilerError):
    """Raised when the entry file (or a local import) cannot be loaded."""
    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Cannot build program for {self.path}: {reason}")


class ExtractionError(CompilerError):
    """Raised when a single declaration cannot be extracted.

    Carries the declaration's name (or URI for resources) and a remediation
    suggestion.
    """
    def __init__(
        self,
        declaration: str,
        message: str,
        suggestion: Optional[str] = None,
        interface_name: Optional[str] = None,
    ):
        self.declaration = declaration
        self.interface_name = interface_name
        self.suggestion = suggestion
        full = message
        if suggestion:
            full += "\n\n" + suggestion
        super().__init__(full)


def _resource_forms(interface_name: str, uri: str) -> str:
    return (
        "Use one of:\n"
        "  Static resources hold literal data in 'value':\n"
        f"    class {interface_name}(IResource):\n"
        f"        uri: Literal[\"{uri}\"]\n"
        "        value: {\"version\": \"1.0.0\"}\n"
        "  Dynamic resources declare the type definition in 'returns' and bind an implementation:\n"
        f"    class {interface_name}(IResource):\n"
        f"        uri: Literal[\"{uri}\"]\n"
        "        returns: {\"version\": str}"
    )


class MutuallyExclusiveFieldsError(ExtractionError):
    """Raised when a resource declares both 'value' and 'returns'."""
    def __init__(self, uri: str, interface_name: str):
        super().__init__(
            uri,
            f"Resource '{uri}' ({interface_name}) cannot have both 'value' and 'returns'. "
            "These fields are mutually exclusive.",
            suggestion=_resource_forms(interface_name, uri),
            interface_name=interface_name,
        )


class MissingLiteralDataError(ExtractionError):
    """Raised when a static resource's 'value' is not fully literal and nothing is bound."""
    def __init__(self, uri: str, interface_name: str):
        super().__init__(
            uri,
            f"Resource '{uri}' ({interface_name}) declares 'value' but it is not literal data, "
            "and no dynamic implementation was found.",
            suggestion=_resource_forms(interface_name, uri),
            interface_name=interface_name,
        )


class DuplicateDeclarationError(ExtractionError):
    """Raised when two declarations of the same kind share a name."""
    def __init__(self, kind: str, name: str, first: str, second: str):
        self.kind = kind
        super().__init__(
            name,
            f"Duplicate {kind} '{name}' declared by {first} and {second}.",
            suggestion=f"Give each {kind} a unique name.",
            interface_name=second,
        )


class ImplementationNotFoundError(CompilerError):
    """Raised by the registration layer when a declaration has no implementation."""
    def __init__(self, kind: str, declaration: str, interface_name: str, tried: Iterable[str] = ()):
        self.kind = kind
        self.declaration = declaration
        self.interface_name = interface_name
        self.tried = tuple(tried)
        tried_str = ", ".join(self.tried) if self.tried else "(none)"
        super().__init__(
            f"{kind.capitalize()} '{declaration}' ({interface_name}) is declared but not implemented.\n"
            f"  Looked for members: {tried_str}\n"
            f"  Add a method or function named one of these, or annotate an implementation "
            f"with '{interface_name}'."
        )
