"""Guardrails to keep the kernel static: it reads source, never runs it."""

import re
from pathlib import Path


FORBIDDEN_PATTERNS = {
    "argparse": re.compile(r"\bargparse\b"),
    "print(": re.compile(r"(?<![A-Za-z0-9_.])print\s*\("),
    "sys.exit": re.compile(r"\bsys\.exit\b"),
    "importlib": re.compile(r"\bimportlib\b"),
    "__import__": re.compile(r"\b__import__\b"),
    "exec(": re.compile(r"(?<![A-Za-z0-9_.])exec\s*\("),
    "eval(": re.compile(r"(?<![A-Za-z0-9_.])eval\s*\("),
    "literal_eval": re.compile(r"\bliteral_eval\b"),
    "import warnings": re.compile(r"\bimport warnings\b"),
    "rich": re.compile(r"^\s*(from|import) rich\b", re.MULTILINE),
}


def test_kernel_has_no_forbidden_tokens():
    kernel_dir = Path(__file__).resolve().parents[1] / "src" / "mcpdecl" / "kernel"
    offenders = []

    for path in kernel_dir.glob("*.py"):
        contents = path.read_text(encoding="utf-8")
        for token, pattern in FORBIDDEN_PATTERNS.items():
            if pattern.search(contents):
                offenders.append(f"{path.name}: {token}")

    assert not offenders, "Forbidden kernel tokens found: " + ", ".join(offenders)


def test_kernel_logs_through_structlog():
    kernel_dir = Path(__file__).resolve().parents[1] / "src" / "mcpdecl" / "kernel"
    for path in kernel_dir.glob("*.py"):
        contents = path.read_text(encoding="utf-8")
        assert "logging.getLogger" not in contents, path.name
        if "logger." in contents:
            assert "structlog.get_logger(__name__)" in contents, path.name
