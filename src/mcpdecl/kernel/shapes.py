"""Interface shape matcher.

Decides which capability kind(s) a candidate declaration represents, by
explicit heritage (a base class resolving to a marker interface) and by
structure (the candidate exposes every required field of a shape).
"""

import ast
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Set

from mcpdecl.kernel.literals import dotted_name, subscript_args
from mcpdecl.kernel.naming import to_snake_case
from mcpdecl.kernel.program import SymbolTable


@dataclass(frozen=True)
class CapabilityShape:
    kind: str
    interfaces: FrozenSet[str]
    required: FrozenSet[str]

    @property
    def distinguishing(self) -> FrozenSet[str]:
        """Required fields minus the ones every capability shares."""
        return self.required - {"name", "description"}


CAPABILITY_SHAPES: Dict[str, CapabilityShape] = {
    shape.kind: shape
    for shape in (
        CapabilityShape("tool", frozenset({"ITool"}), frozenset({"name", "description", "params"})),
        CapabilityShape("resource", frozenset({"IResource"}), frozenset({"uri", "name", "description", "mime_type"})),
        CapabilityShape("prompt", frozenset({"IPrompt"}), frozenset({"name", "description", "args"})),
        CapabilityShape("router", frozenset({"IToolRouter"}), frozenset({"description", "tools"})),
        CapabilityShape("skill", frozenset({"ISkill"}), frozenset({"name", "description", "components"})),
        CapabilityShape("subscription", frozenset({"ISubscription"}), frozenset({"uri", "description"})),
        CapabilityShape("completion", frozenset({"ICompletion"}), frozenset({"name", "description", "ref"})),
    )
}

SERVER_INTERFACES = frozenset({"IServer"})
PARAM_INTERFACES = frozenset({"IParam"})
HELPER_INTERFACES = frozenset({"IToolAnnotations"})

# ToolHelper[GetWeatherTool] etc. annotate implementations; they unwrap to their argument
HELPER_ALIASES = frozenset(
    {"ToolHelper", "ResourceHelper", "PromptHelper", "CompletionHelper", "SubscriptionHelper"}
)

INTERFACE_TO_KIND: Dict[str, str] = {
    name: shape.kind for shape in CAPABILITY_SHAPES.values() for name in shape.interfaces
}
INTERFACE_TO_KIND.update({name: "server" for name in SERVER_INTERFACES})

ALL_INTERFACE_NAMES = frozenset(INTERFACE_TO_KIND) | PARAM_INTERFACES | HELPER_INTERFACES


@dataclass
class FieldInfo:
    """One declared field of a candidate."""
    name: str  # normalized to snake_case
    annotation: Optional[ast.AST] = None
    value: Optional[ast.AST] = None
    line: int = 0


@dataclass
class Candidate:
    """A class or dict literal that may declare a capability."""
    name: str
    module: str
    node: ast.AST
    origin: str  # "class", "dict" or "member" (dict-literal attribute of the implementation class)
    bases: List[ast.AST] = field(default_factory=list)  # class bases, or the dict's annotation
    fields: Dict[str, FieldInfo] = field(default_factory=dict)
    docstring: Optional[str] = None

    @property
    def line(self) -> int:
        return getattr(self.node, "lineno", 0)

    def field_names(self) -> Set[str]:
        return set(self.fields)

    def get(self, name: str) -> Optional[FieldInfo]:
        return self.fields.get(name)


@dataclass(frozen=True)
class Classification:
    kinds: FrozenSet[str]
    ambiguous: bool = False
    reason: Optional[str] = None


def unwrap_helper(node: ast.AST) -> ast.AST:
    """``ToolHelper[X]`` -> ``X``; generic interfaces like ``ITool[P, R]`` -> ``ITool``."""
    if isinstance(node, ast.Subscript):
        head = dotted_name(node.value)
        if head is not None and head.rpartition(".")[2] in HELPER_ALIASES:
            args = subscript_args(node)
            if args:
                return unwrap_helper(args[0])
        return node.value
    return node


def is_interface_base(name: Optional[str]) -> bool:
    """Whether a (possibly dotted) name is one of the marker interfaces."""
    if not name:
        return False
    return name.rpartition(".")[2] in ALL_INTERFACE_NAMES


def _class_fields(
    node: ast.ClassDef,
    module: str,
    symbols: SymbolTable,
    seen: Optional[Set[str]] = None,
) -> Dict[str, FieldInfo]:
    """Fields declared on a class and its local base classes (subclass wins)."""
    seen = seen if seen is not None else set()
    key = f"{module}.{node.name}"
    if key in seen:
        return {}
    seen.add(key)

    fields: Dict[str, FieldInfo] = {}
    for base in node.bases:
        symbol = symbols.resolve(module, unwrap_helper(base))
        if symbol is not None and symbol.kind == "class" and isinstance(symbol.node, ast.ClassDef):
            fields.update(_class_fields(symbol.node, symbol.module, symbols, seen))

    for stmt in node.body:
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            name = to_snake_case(stmt.target.id)
            fields[name] = FieldInfo(name=name, annotation=stmt.annotation, value=stmt.value, line=stmt.lineno)
        elif isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                if isinstance(target, ast.Name):
                    name = to_snake_case(target.id)
                    fields[name] = FieldInfo(name=name, value=stmt.value, line=stmt.lineno)
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)) and stmt.name in {"hidden", "complete"}:
            # predicate / completion functions declared inline
            fields[stmt.name] = FieldInfo(name=stmt.name, value=stmt, line=stmt.lineno)
    return fields


def candidate_from_class(node: ast.ClassDef, module: str, symbols: SymbolTable) -> Candidate:
    return Candidate(
        name=node.name,
        module=module,
        node=node,
        origin="class",
        bases=list(node.bases),
        fields=_class_fields(node, module, symbols),
        docstring=ast.get_docstring(node),
    )


def candidate_from_dict(
    name: str,
    node: ast.AST,
    value: ast.Dict,
    module: str,
    annotation: Optional[ast.AST] = None,
    origin: str = "dict",
) -> Candidate:
    fields: Dict[str, FieldInfo] = {}
    for key, item in zip(value.keys, value.values):
        if isinstance(key, ast.Constant) and isinstance(key.value, str):
            field_name = to_snake_case(key.value)
            fields[field_name] = FieldInfo(name=field_name, value=item, line=getattr(key, "lineno", 0))
    return Candidate(
        name=name,
        module=module,
        node=node,
        origin=origin,
        bases=[annotation] if annotation is not None else [],
        fields=fields,
    )


def _explicit_kinds_of_bases(
    bases: List[ast.AST],
    module: str,
    symbols: SymbolTable,
    seen: Set[str],
) -> Set[str]:
    kinds: Set[str] = set()
    for base in bases:
        base = unwrap_helper(base)
        symbol = symbols.resolve(module, base)
        if symbol is not None and symbol.kind == "class" and isinstance(symbol.node, ast.ClassDef):
            key = f"{symbol.module}.{symbol.name}"
            if symbol.name in INTERFACE_TO_KIND:
                kinds.add(INTERFACE_TO_KIND[symbol.name])
            if key in seen:
                continue
            seen.add(key)
            kinds |= _explicit_kinds_of_bases(symbol.node.bases, symbol.module, symbols, seen)
            continue
        if symbol is not None and symbol.kind == "external":
            short = symbol.name or symbol.module.rpartition(".")[2]
        else:
            short = (dotted_name(base) or "").rpartition(".")[2]
        if short in INTERFACE_TO_KIND:
            kinds.add(INTERFACE_TO_KIND[short])
    return kinds


def explicit_kinds(candidate: Candidate, symbols: SymbolTable) -> FrozenSet[str]:
    """Kinds declared through the candidate's name or (recursive) heritage."""
    kinds: Set[str] = set()
    if candidate.name in INTERFACE_TO_KIND:
        kinds.add(INTERFACE_TO_KIND[candidate.name])
    kinds |= _explicit_kinds_of_bases(candidate.bases, candidate.module, symbols, {f"{candidate.module}.{candidate.name}"})
    return frozenset(kinds)


def structural_kinds(candidate: Candidate) -> FrozenSet[str]:
    """Kinds whose required fields the candidate exposes, most specific only.

    A match whose required set is a strict subset of another match's
    required set is dropped (a full resource also exposes a subscription's
    fields).
    """
    present = candidate.field_names()
    matches = [shape for shape in CAPABILITY_SHAPES.values() if shape.required <= present]
    kept = [
        shape
        for shape in matches
        if not any(shape.required < other.required for other in matches)
    ]
    return frozenset(shape.kind for shape in kept)


def compatible(kind_a: str, kind_b: str) -> bool:
    """Two kinds may coexist on one candidate when their distinguishing fields do not overlap."""
    if kind_a == kind_b:
        return True
    if "server" in (kind_a, kind_b):
        return True
    a = CAPABILITY_SHAPES[kind_a].distinguishing
    b = CAPABILITY_SHAPES[kind_b].distinguishing
    return not (a & b)


def classify(candidate: Candidate, symbols: SymbolTable) -> FrozenSet[str]:
    """Union of explicit and structural kinds."""
    return explicit_kinds(candidate, symbols) | structural_kinds(candidate)


def resolve(candidate: Candidate, symbols: SymbolTable) -> Classification:
    """Classify and check the result for incompatible kinds.

    Explicit heritage is authoritative: structural matches that conflict
    with an explicit kind are discarded. Conflicts among explicit kinds, or
    among structural kinds when nothing is explicit, are ambiguous.
    """
    explicit = explicit_kinds(candidate, symbols)
    structural = structural_kinds(candidate)
    kinds = set(explicit)
    for kind in structural:
        if all(compatible(kind, other) for other in explicit):
            kinds.add(kind)

    ordered = sorted(kinds)
    for i, kind_a in enumerate(ordered):
        for kind_b in ordered[i + 1:]:
            if not compatible(kind_a, kind_b):
                shared = sorted(
                    CAPABILITY_SHAPES[kind_a].distinguishing & CAPABILITY_SHAPES[kind_b].distinguishing
                )
                reason = (
                    f"'{candidate.name}' matches both the {kind_a} and {kind_b} shapes "
                    f"(shared fields: {', '.join(shared)})"
                )
                return Classification(kinds=frozenset(kinds), ambiguous=True, reason=reason)
    return Classification(kinds=frozenset(kinds))


def is_param_class(node: ast.ClassDef, module: str, symbols: SymbolTable) -> bool:
    """Whether a class inherits (directly or through local bases) from IParam."""
    seen: Set[str] = set()
    stack = [(base, module) for base in node.bases]
    while stack:
        base, base_module = stack.pop()
        symbol = symbols.resolve(base_module, unwrap_helper(base))
        if symbol is not None and symbol.kind == "class" and isinstance(symbol.node, ast.ClassDef):
            if symbol.name in PARAM_INTERFACES:
                return True
            key = f"{symbol.module}.{symbol.name}"
            if key not in seen:
                seen.add(key)
                stack.extend((b, symbol.module) for b in symbol.node.bases)
            continue
        if symbol is not None and symbol.kind == "external":
            short = symbol.name
        else:
            short = (dotted_name(base) or "").rpartition(".")[2]
        if short in PARAM_INTERFACES:
            return True
    return False
