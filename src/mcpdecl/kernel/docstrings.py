"""Docstring parsing for implementing members.

Recognizes Google (``Args:``), Sphinx (``:param x:``) and NumPy
(``Parameters`` + dashes) parameter sections.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

_GOOGLE_SECTION = re.compile(r"^\s*(Args|Arguments|Parameters|Params)\s*:\s*$")
_GOOGLE_ITEM = re.compile(r"^(\s*)(\*{0,2}\w+)\s*(?:\([^)]*\))?\s*:\s*(.*)$")
_SPHINX_PARAM = re.compile(r"^\s*:param\s+(?:[^:]*\s)?(\w+)\s*:\s*(.*)$")
_SPHINX_FIELD = re.compile(r"^\s*:\w+")
_NUMPY_HEADER = re.compile(r"^\s*(Parameters|Other Parameters)\s*$")
_NUMPY_RULE = re.compile(r"^\s*-{3,}\s*$")
_NUMPY_ITEM = re.compile(r"^(\w+)\s*(?::.*)?$")
_SECTION_HEADER = re.compile(r"^\s*[A-Z][A-Za-z ]*:\s*$")


@dataclass
class DocComment:
    description: str = ""
    param_descriptions: Dict[str, str] = field(default_factory=dict)


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def _google_params(lines: List[str], start: int) -> Dict[str, str]:
    params: Dict[str, str] = {}
    base_indent: Optional[int] = None
    current: Optional[str] = None
    for line in lines[start:]:
        if not line.strip():
            current = None
            continue
        indent = _indent(line)
        if base_indent is None:
            base_indent = indent
        if indent < base_indent or (_SECTION_HEADER.match(line) and indent <= base_indent):
            break
        match = _GOOGLE_ITEM.match(line)
        if indent == base_indent and match:
            current = match.group(2).lstrip("*")
            params[current] = match.group(3).strip()
        elif current is not None:
            params[current] = f"{params[current]} {line.strip()}".strip()
    return params


def _numpy_params(lines: List[str], start: int) -> Dict[str, str]:
    params: Dict[str, str] = {}
    current: Optional[str] = None
    base_indent: Optional[int] = None
    for i in range(start, len(lines)):
        line = lines[i]
        if not line.strip():
            continue
        # next section: a header line followed by a dashed rule
        if i + 1 < len(lines) and _NUMPY_RULE.match(lines[i + 1]) and not _NUMPY_RULE.match(line):
            break
        indent = _indent(line)
        if base_indent is None:
            base_indent = indent
        match = _NUMPY_ITEM.match(line.strip())
        if indent == base_indent and match:
            current = match.group(1)
            params[current] = ""
        elif current is not None:
            params[current] = f"{params[current]} {line.strip()}".strip()
    return params


def parse_docstring(doc: Optional[str]) -> DocComment:
    """Split a docstring into its description and per-parameter descriptions.

    The description is the text before the first recognized section or
    field list, with paragraphs joined by a blank line.
    """
    if not doc:
        return DocComment()
    lines = doc.expandtabs().splitlines()

    description_lines: List[str] = []
    params: Dict[str, str] = {}
    i = 0
    in_description = True
    while i < len(lines):
        line = lines[i]
        if _GOOGLE_SECTION.match(line):
            params.update(_google_params(lines, i + 1))
            in_description = False
        elif _NUMPY_HEADER.match(line) and i + 1 < len(lines) and _NUMPY_RULE.match(lines[i + 1]):
            params.update(_numpy_params(lines, i + 2))
            in_description = False
            i += 1
        elif _NUMPY_RULE.match(line) and in_description and description_lines:
            # a dashed rule under some other NumPy section ends the description
            description_lines.pop()
            in_description = False
        else:
            sphinx = _SPHINX_PARAM.match(line)
            if sphinx:
                params[sphinx.group(1)] = sphinx.group(2).strip()
                in_description = False
            elif _SPHINX_FIELD.match(line) or _SECTION_HEADER.match(line):
                in_description = False
            elif in_description:
                description_lines.append(line.strip())
        i += 1

    paragraphs: List[str] = []
    buffer: List[str] = []
    for line in description_lines:
        if line:
            buffer.append(line)
        elif buffer:
            paragraphs.append(" ".join(buffer))
            buffer = []
    if buffer:
        paragraphs.append(" ".join(buffer))

    return DocComment(description="\n\n".join(paragraphs), param_descriptions=params)
