"""Declaration extractor.

Walks the entry module of a CompiledUnit, classifies candidate classes and
dict literals, binds each declaration to its implementing member, and builds
the ParseResult IR.
"""

import ast
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog

from mcpdecl.codes import RuleCode
from mcpdecl.contracts import ValidationWarning
from mcpdecl.kernel.declarations import (
    ANY_SCHEMA,
    EMPTY_OBJECT_SCHEMA,
    CompletionDeclaration,
    Declaration,
    HiddenFlag,
    ParameterSchema,
    ParseResult,
    PromptDeclaration,
    ResourceDeclaration,
    RouterDeclaration,
    ServerMeta,
    SkillComponents,
    SkillDeclaration,
    SourceLocation,
    SubscriptionDeclaration,
    ToolDeclaration,
)
from mcpdecl.kernel.docstrings import DocComment, parse_docstring
from mcpdecl.kernel.errors import (
    DuplicateDeclarationError,
    ExtractionError,
    MissingLiteralDataError,
    MutuallyExclusiveFieldsError,
    ProgramBuildError,
)
from mcpdecl.kernel.literals import UNDEFINED, dotted_name, extract_literal
from mcpdecl.kernel.naming import identifier_from_uri, to_kebab_case, to_snake_case, variants_of
from mcpdecl.kernel.program import CompiledUnit
from mcpdecl.kernel.schema import SchemaConverter
from mcpdecl.kernel.shapes import (
    ALL_INTERFACE_NAMES,
    HELPER_INTERFACES,
    Candidate,
    candidate_from_class,
    candidate_from_dict,
    explicit_kinds,
    is_param_class,
    resolve,
    unwrap_helper,
)

logger = structlog.get_logger(__name__)

IMPLEMENTATION_SUFFIXES = ("Server", "Service", "Impl", "Handler", "Provider", "Manager")

# Bases that mark a class as a data type rather than a declaration or implementation
_DATA_TYPE_BASES = {"TypedDict", "BaseModel", "NamedTuple", "Enum", "IntEnum", "StrEnum", "Protocol"}

_KIND_SUFFIXES = {
    "tool": ("Tool",),
    "resource": ("Resource",),
    "prompt": ("Prompt",),
    "router": ("ToolRouter", "Router"),
    "skill": ("Skill",),
    "subscription": ("Subscription",),
    "completion": ("Completion",),
}

# Type-position fields whose bare generic annotation defers to the assigned value
_GENERIC_ANNOTATIONS = {"dict", "Dict", "Any", "object", "list", "List"}


@dataclass
class ExtractionOutcome:
    declarations: List[Declaration] = field(default_factory=list)
    server: Optional[ServerMeta] = None
    class_name: Optional[str] = None
    diagnostics: List[ValidationWarning] = field(default_factory=list)


@dataclass
class _Binding:
    name: Optional[str]
    owner: Optional[str]
    node: Optional[ast.AST]
    tried: Tuple[str, ...]


def _short(node: Optional[ast.AST]) -> str:
    return (dotted_name(node) or "").rpartition(".")[2] if node is not None else ""


def _base_shorts(node: ast.ClassDef) -> List[str]:
    shorts = []
    for base in node.bases:
        target = base.value if isinstance(base, ast.Subscript) else base
        shorts.append(_short(target))
    return shorts


def _is_data_type(node: ast.ClassDef) -> bool:
    if set(_base_shorts(node)) & _DATA_TYPE_BASES:
        return True
    for decorator in node.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        if _short(target) == "dataclass":
            return True
    return False


def _dunder_all(tree: ast.Module) -> List[str]:
    for stmt in tree.body:
        if isinstance(stmt, ast.Assign) and any(
            isinstance(t, ast.Name) and t.id == "__all__" for t in stmt.targets
        ):
            names = extract_literal(stmt.value)
            if isinstance(names, list):
                return [n for n in names if isinstance(n, str)]
    return []


class Extractor:
    """Extraction pass over one CompiledUnit."""

    def __init__(self, unit: CompiledUnit):
        self.unit = unit
        self.module = unit.module_name
        self.symbols = unit.symbols
        self.converter = SchemaConverter(unit)
        self.file = str(unit.path)
        self.classes = [n for n in unit.tree.body if isinstance(n, ast.ClassDef)]
        self.implementation = self._find_implementation_class()
        self._members = self._implementation_members()
        self._annotated = self._annotated_bindings()

    # -- implementation class ---------------------------------------------

    def _inherits_server_declaration(self, node: ast.ClassDef) -> bool:
        for base in node.bases:
            symbol = self.symbols.resolve(self.module, unwrap_helper(base))
            if symbol is None or symbol.kind != "class" or not isinstance(symbol.node, ast.ClassDef):
                continue
            base_candidate = candidate_from_class(symbol.node, symbol.module, self.symbols)
            if "server" in explicit_kinds(base_candidate, self.symbols):
                return True
        return False

    def _is_declaration_class(self, node: ast.ClassDef) -> bool:
        if node.name in ALL_INTERFACE_NAMES:
            return True
        if set(_base_shorts(node)) & HELPER_INTERFACES:
            return True
        if is_param_class(node, self.module, self.symbols):
            return True
        if self._inherits_server_declaration(node):
            return False
        candidate = candidate_from_class(node, self.module, self.symbols)
        return bool(resolve(candidate, self.symbols).kinds)

    def _find_implementation_class(self) -> Optional[ast.ClassDef]:
        """Pick the class that implements the declarations.

        Priority: first non-declaration class in ``__all__``; a class
        inheriting the server declaration; a name ending in a conventional
        suffix; the only remaining concrete class.
        """
        by_name = {node.name: node for node in self.classes}
        for name in _dunder_all(self.unit.tree):
            node = by_name.get(name)
            if node is not None and not _is_data_type(node) and not self._is_declaration_class(node):
                return node

        for node in self.classes:
            if self._inherits_server_declaration(node):
                return node

        concrete = [
            node for node in self.classes
            if not _is_data_type(node) and not self._is_declaration_class(node)
        ]
        for node in concrete:
            if node.name.endswith(IMPLEMENTATION_SUFFIXES):
                return node
        if len(concrete) == 1:
            return concrete[0]
        return None

    def _implementation_members(self) -> Dict[str, ast.AST]:
        members: Dict[str, ast.AST] = {}
        if self.implementation is None:
            return members
        for stmt in self.implementation.body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                members[stmt.name] = stmt
            elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                members[stmt.target.id] = stmt
            elif isinstance(stmt, ast.Assign):
                for target in stmt.targets:
                    if isinstance(target, ast.Name):
                        members[target.id] = stmt
        return members

    def _annotated_bindings(self) -> Dict[str, _Binding]:
        """Interface name -> member annotated with it (``x: GetWeatherTool = ...``)."""
        found: Dict[str, _Binding] = {}

        def visit(body: Iterable[ast.stmt], owner: Optional[str]) -> None:
            for stmt in body:
                if not (isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name)):
                    continue
                if isinstance(stmt.value, ast.Dict):
                    continue  # dict literals are declarations, not bindings
                target = unwrap_helper(stmt.annotation)
                interface = _short(target)
                if interface and interface not in found:
                    found[interface] = _Binding(stmt.target.id, owner, stmt, (stmt.target.id,))

        if self.implementation is not None:
            visit(self.implementation.body, self.implementation.name)
        visit(self.unit.tree.body, None)
        return found

    # -- candidates -------------------------------------------------------

    def candidates(self) -> List[Candidate]:
        out: List[Candidate] = []
        for node in self.classes:
            if node is self.implementation or node.name in ALL_INTERFACE_NAMES:
                continue
            if is_param_class(node, self.module, self.symbols):
                continue
            out.append(candidate_from_class(node, self.module, self.symbols))

        for stmt in self.unit.tree.body:
            out.extend(self._dict_candidates(stmt, "dict"))
        if self.implementation is not None:
            for stmt in self.implementation.body:
                out.extend(self._dict_candidates(stmt, "member"))
        return out

    def _dict_candidates(self, stmt: ast.stmt, origin: str) -> List[Candidate]:
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name) and isinstance(stmt.value, ast.Dict):
            return [candidate_from_dict(stmt.target.id, stmt, stmt.value, self.module, stmt.annotation, origin)]
        if isinstance(stmt, ast.Assign) and isinstance(stmt.value, ast.Dict):
            return [
                candidate_from_dict(target.id, stmt, stmt.value, self.module, None, origin)
                for target in stmt.targets
                if isinstance(target, ast.Name) and not target.id.startswith("__")
            ]
        return []

    # -- field helpers ----------------------------------------------------

    def _literal(self, candidate: Candidate, name: str, default: Any = UNDEFINED) -> Any:
        info = candidate.get(name)
        if info is None:
            return default
        if info.value is not None:
            value = extract_literal(info.value)
            if value is not UNDEFINED:
                return value
        if info.annotation is not None:
            value = extract_literal(info.annotation)
            if value is not UNDEFINED:
                return value
        return default

    def _type_node(self, candidate: Candidate, name: str) -> Optional[ast.AST]:
        info = candidate.get(name)
        if info is None:
            return None
        if info.annotation is None:
            return info.value
        if info.value is not None and _short(info.annotation) in _GENERIC_ANNOTATIONS:
            return info.value
        return info.annotation

    def _lower_field(self, candidate: Candidate, name: str, default: ParameterSchema) -> ParameterSchema:
        node = self._type_node(candidate, name)
        if node is None:
            return default
        return self.converter.lower(node, candidate.module)

    def _location(self, line: int) -> SourceLocation:
        return SourceLocation(file=self.file, line=line)

    def _derive_name(self, candidate: Candidate, kind: str, binding: Optional[_Binding] = None) -> str:
        name = self._literal(candidate, "name")
        if isinstance(name, str) and name:
            return name
        if binding is not None and binding.name and candidate.origin == "class" and binding.node is not None:
            if isinstance(binding.node, ast.AnnAssign):
                return to_snake_case(binding.name)
        if candidate.origin == "class":
            base = candidate.name
            for suffix in _KIND_SUFFIXES.get(kind, ()):
                if base.endswith(suffix) and base != suffix:
                    base = base[: -len(suffix)]
                    break
            return to_snake_case(base)
        return to_snake_case(candidate.name)

    def _hidden(self, candidate: Candidate) -> HiddenFlag:
        info = candidate.get("hidden")
        if info is None:
            return HiddenFlag()
        value = self._literal(candidate, "hidden")
        if isinstance(value, bool):
            return HiddenFlag(mode="static", value=value)
        if isinstance(info.value, (ast.FunctionDef, ast.AsyncFunctionDef)):
            return HiddenFlag(mode="predicate", predicate=f"{candidate.name}.{info.value.name}")
        if info.value is not None:
            return HiddenFlag(mode="predicate", predicate=ast.unparse(info.value))
        if info.annotation is not None and _short(
            info.annotation.value if isinstance(info.annotation, ast.Subscript) else info.annotation
        ) == "Callable":
            return HiddenFlag(mode="predicate", predicate=ast.unparse(info.annotation))
        return HiddenFlag()

    def _skills(self, candidate: Candidate) -> Tuple[str, ...]:
        value = self._literal(candidate, "skill", default=None)
        if value is None:
            value = self._literal(candidate, "skills", default=None)
        if isinstance(value, str):
            return (value,)
        if isinstance(value, list):
            return tuple(v for v in value if isinstance(v, str))
        return ()

    def _bind(self, candidate: Candidate, name: str, extra: Iterable[str] = ()) -> _Binding:
        """Find the implementing member for a declaration.

        Order: a member annotated with the interface; an implementation-class
        member matching a naming variant; a module-level function or
        variable matching a variant.
        """
        annotated = self._annotated.get(candidate.name) if candidate.origin == "class" else None
        if annotated is not None:
            return annotated

        tried: List[str] = []
        for variant in [*variants_of(name), *extra]:
            if variant not in tried:
                tried.append(variant)

        if self.implementation is not None:
            for variant in tried:
                member = self._members.get(variant)
                if member is not None and member is not candidate.node:
                    return _Binding(variant, self.implementation.name, member, tuple(tried))

        definitions = self.unit.entry.definitions
        for variant in tried:
            node = definitions.get(variant)
            if node is None or node is candidate.node or isinstance(node, ast.ClassDef):
                continue
            if isinstance(node, (ast.Assign, ast.AnnAssign)) and isinstance(node.value, ast.Dict):
                continue
            return _Binding(variant, None, node, tuple(tried))

        return _Binding(None, None, None, tuple(tried))

    @staticmethod
    def _doc_of(binding: _Binding) -> DocComment:
        node = binding.node
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            return parse_docstring(ast.get_docstring(node))
        return DocComment()

    def _description(self, candidate: Candidate, doc: DocComment) -> str:
        value = self._literal(candidate, "description")
        if isinstance(value, str) and value:
            return value
        if doc.description:
            return doc.description
        if candidate.docstring:
            return parse_docstring(candidate.docstring).description
        return ""

    @staticmethod
    def _fill_param_docs(schema: ParameterSchema, doc: DocComment) -> ParameterSchema:
        """Fill missing property descriptions from the member's docstring."""
        if schema.kind != "object" or not schema.properties or not doc.param_descriptions:
            return schema
        properties = {}
        changed = False
        for name, prop in schema.properties.items():
            text = doc.param_descriptions.get(name)
            if text and not prop.description:
                prop = prop.model_copy(update={"description": text})
                changed = True
            properties[name] = prop
        if not changed:
            return schema
        return schema.model_copy(update={"properties": properties})

    def _common(self, candidate: Candidate, kind: str, name: str, binding: Optional[_Binding]) -> Dict[str, Any]:
        doc = self._doc_of(binding) if binding is not None else DocComment()
        data: Dict[str, Any] = {
            "name": name,
            "description": self._description(candidate, doc),
            "interface_name": candidate.name,
            "hidden": self._hidden(candidate),
            "skill_membership": self._skills(candidate),
            "location": self._location(candidate.line),
        }
        if binding is not None:
            data["binding_name"] = binding.name
            data["binding_owner"] = binding.owner
            data["binding_candidates"] = binding.tried
        return data

    # -- per-kind extraction ----------------------------------------------

    def _tool(self, candidate: Candidate) -> ToolDeclaration:
        annotated = self._annotated.get(candidate.name) if candidate.origin == "class" else None
        name = self._derive_name(candidate, "tool", annotated)
        binding = self._bind(candidate, name)
        doc = self._doc_of(binding)
        params = self._lower_field(candidate, "params", EMPTY_OBJECT_SCHEMA)
        annotations = self._literal(candidate, "annotations", default=None)
        if annotations is None:
            annotations = self._annotations_class(candidate)
        return ToolDeclaration(
            **self._common(candidate, "tool", name, binding),
            params=self._fill_param_docs(params, doc),
            result=self._lower_field(candidate, "result", ANY_SCHEMA),
            annotations=annotations if isinstance(annotations, dict) else None,
        )

    def _annotations_class(self, candidate: Candidate) -> Optional[Dict[str, Any]]:
        """Tool annotations given as a reference to an IToolAnnotations subclass."""
        node = self._type_node(candidate, "annotations")
        if not isinstance(node, (ast.Name, ast.Attribute)):
            return None
        symbol = self.symbols.resolve(candidate.module, node)
        if symbol is None or symbol.kind != "class" or not isinstance(symbol.node, ast.ClassDef):
            return None
        nested = candidate_from_class(symbol.node, symbol.module, self.symbols)
        out: Dict[str, Any] = {}
        for field_name in nested.fields:
            value = self._literal(nested, field_name)
            if value is not UNDEFINED:
                out[field_name] = value
        return out or None

    def _require_uri(self, candidate: Candidate, kind: str) -> str:
        uri = self._literal(candidate, "uri")
        if not isinstance(uri, str) or not uri:
            raise ExtractionError(
                candidate.name,
                f"{kind.capitalize()} {candidate.name} must declare a literal 'uri'.",
                suggestion=f"Add: uri: Literal[\"config://{to_snake_case(candidate.name)}\"]",
                interface_name=candidate.name,
            )
        return uri

    def _resource(self, candidate: Candidate) -> ResourceDeclaration:
        uri = self._require_uri(candidate, "resource")
        value_field = "value" if candidate.get("value") is not None else "data"
        has_value_field = candidate.get(value_field) is not None
        has_returns_field = candidate.get("returns") is not None
        if has_value_field and has_returns_field:
            raise MutuallyExclusiveFieldsError(uri, candidate.name)

        name = self._literal(candidate, "name")
        if not isinstance(name, str) or not name:
            name = self._derive_name(candidate, "resource")
        mime_type = self._literal(candidate, "mime_type")
        if not isinstance(mime_type, str):
            mime_type = "application/json"

        if has_value_field:
            value = self._literal(candidate, value_field)
            if value is not UNDEFINED:
                return ResourceDeclaration(
                    **self._common(candidate, "resource", name, None),
                    uri=uri,
                    mime_type=mime_type,
                    value=value,
                    has_value=True,
                )
            binding = self._bind(candidate, name, [identifier_from_uri(uri)])
            if binding.name is None:
                raise MissingLiteralDataError(uri, candidate.name)
            return ResourceDeclaration(
                **self._common(candidate, "resource", name, binding),
                uri=uri,
                mime_type=mime_type,
                dynamic=True,
            )

        binding = self._bind(candidate, name, [identifier_from_uri(uri)])
        returns = self._lower_field(candidate, "returns", ANY_SCHEMA) if has_returns_field else None
        return ResourceDeclaration(
            **self._common(candidate, "resource", name, binding),
            uri=uri,
            mime_type=mime_type,
            dynamic=True,
            returns=returns,
        )

    def _prompt(self, candidate: Candidate) -> PromptDeclaration:
        annotated = self._annotated.get(candidate.name) if candidate.origin == "class" else None
        name = self._derive_name(candidate, "prompt", annotated)
        template = self._literal(candidate, "template", default=None)
        binding = self._bind(candidate, name)
        doc = self._doc_of(binding)
        args = self._lower_field(candidate, "args", EMPTY_OBJECT_SCHEMA)
        return PromptDeclaration(
            **self._common(candidate, "prompt", name, binding),
            args=self._fill_param_docs(args, doc),
            template=template if isinstance(template, str) else None,
        )

    def _router(self, candidate: Candidate) -> RouterDeclaration:
        name = self._derive_name(candidate, "router")
        tools = self._literal(candidate, "tools", default=[])
        if not isinstance(tools, list):
            logger.warning("router tools are not a literal list", router=name)
            tools = []
        metadata = self._literal(candidate, "metadata", default=None)
        return RouterDeclaration(
            **self._common(candidate, "router", name, None),
            tools=tuple(t for t in tools if isinstance(t, str)),
            metadata=metadata if isinstance(metadata, dict) else None,
        )

    def _skill(self, candidate: Candidate) -> SkillDeclaration:
        name = self._derive_name(candidate, "skill")
        components = self._literal(candidate, "components", default={})
        if not isinstance(components, dict):
            logger.warning("skill components are not a literal dict", skill=name)
            components = {}

        def names(key: str) -> Tuple[str, ...]:
            value = components.get(key, [])
            if isinstance(value, str):
                return (value,)
            if isinstance(value, list):
                return tuple(v for v in value if isinstance(v, str))
            return ()

        content = self._literal(candidate, "content", default=None)
        if content is None:
            content = self._literal(candidate, "skill_md", default=None)
        return SkillDeclaration(
            **self._common(candidate, "skill", name, None),
            components=SkillComponents(tools=names("tools"), resources=names("resources"), prompts=names("prompts")),
            content=content if isinstance(content, str) else None,
        )

    def _subscription(self, candidate: Candidate) -> SubscriptionDeclaration:
        uri = self._require_uri(candidate, "subscription")
        name = self._literal(candidate, "name")
        if not isinstance(name, str) or not name:
            name = self._derive_name(candidate, "subscription")
        binding = self._bind(candidate, name, [identifier_from_uri(uri), f"on_{identifier_from_uri(uri)}"])
        has_handler = binding.name is not None or candidate.get("handler") is not None
        return SubscriptionDeclaration(
            **self._common(candidate, "subscription", name, binding),
            uri=uri,
            has_handler=has_handler,
        )

    def _completion(self, candidate: Candidate) -> CompletionDeclaration:
        name = self._derive_name(candidate, "completion")
        ref = self._literal(candidate, "ref", default=None)
        binding = self._bind(candidate, name)
        arg_field = "arg" if candidate.get("arg") is not None else "argument"
        return CompletionDeclaration(
            **self._common(candidate, "completion", name, binding),
            ref=ref if isinstance(ref, dict) else None,
            arg=self._lower_field(candidate, arg_field, ANY_SCHEMA),
            has_complete_function=candidate.get("complete") is not None or binding.name is not None,
        )

    # -- server -----------------------------------------------------------

    def _server(self, candidate: Candidate) -> Optional[ServerMeta]:
        raw_name = self._literal(candidate, "name")
        if not isinstance(raw_name, str) or not raw_name:
            logger.warning("server interface missing literal name", interface=candidate.name)
            return None
        name = to_kebab_case(raw_name)
        if name != raw_name:
            logger.warning(
                "server name converted to kebab-case",
                original=raw_name,
                converted=name,
                hint="use kebab-case (lowercase with hyphens) for server names",
            )

        def typed(field_name: str, types: tuple) -> Any:
            value = self._literal(candidate, field_name, default=None)
            if isinstance(value, bool) and bool not in types:
                return None
            return value if isinstance(value, types) else None

        version = typed("version", (str,)) or "1.0.0"
        description = typed("description", (str,)) or (
            parse_docstring(candidate.docstring).description if candidate.docstring else None
        )
        port = typed("port", (int,))
        stateful = typed("stateful", (bool,))
        websocket = typed("websocket", (dict,))
        transport = typed("transport", (str,))
        if transport not in ("stdio", "http", "websocket"):
            if websocket is not None:
                transport = "websocket"
            elif port is not None or stateful is not None:
                transport = "http"
            else:
                transport = "stdio"

        return ServerMeta(
            interface_name=candidate.name,
            name=name,
            version=version,
            description=description,
            transport=transport,
            port=port,
            stateful=stateful,
            websocket=websocket,
            flatten_routers=typed("flatten_routers", (bool,)),
            class_name=self.implementation.name if self.implementation is not None else None,
            location=self._location(candidate.line),
        )

    # -- driver -----------------------------------------------------------

    def _ambiguity(self, candidate: Candidate, reason: str) -> ValidationWarning:
        return ValidationWarning(
            rule=RuleCode.AMBIGUOUS_CAPABILITY_SHAPE.value,
            severity="error",
            message=f"Cannot classify {candidate.name}: {reason}.",
            suggestion="Inherit from exactly one capability interface, or rename the conflicting fields.",
            file=self.file,
            line=candidate.line,
        )

    def run(self, candidates: Optional[List[Candidate]] = None) -> ExtractionOutcome:
        outcome = ExtractionOutcome(
            class_name=self.implementation.name if self.implementation is not None else None
        )
        builders = {
            "tool": self._tool,
            "resource": self._resource,
            "prompt": self._prompt,
            "router": self._router,
            "skill": self._skill,
            "subscription": self._subscription,
            "completion": self._completion,
        }
        for candidate in candidates if candidates is not None else self.candidates():
            explicit = explicit_kinds(candidate, self.symbols)
            if not explicit and isinstance(candidate.node, ast.ClassDef) and _is_data_type(candidate.node):
                continue
            classification = resolve(candidate, self.symbols)
            if not classification.kinds:
                continue
            if classification.ambiguous:
                logger.debug("ambiguous capability shape", candidate=candidate.name, reason=classification.reason)
                outcome.diagnostics.append(self._ambiguity(candidate, classification.reason or "incompatible shapes"))
                continue

            for kind in sorted(classification.kinds):
                if kind == "server":
                    if outcome.server is None:
                        outcome.server = self._server(candidate)
                    else:
                        logger.warning("multiple server interfaces, keeping the first", ignored=candidate.name)
                    continue
                if kind not in explicit and kind in ("resource", "subscription") and not isinstance(
                    self._literal(candidate, "uri"), str
                ):
                    # duck-typed match without literal data, e.g. a record type with a 'uri' field
                    logger.debug("structural match without literal uri skipped", candidate=candidate.name, kind=kind)
                    continue
                declaration = builders[kind](candidate)
                logger.debug(
                    "declaration extracted",
                    kind=kind,
                    name=declaration.name,
                    binding=declaration.binding_name,
                )
                outcome.declarations.append(declaration)
        return outcome


def extract(unit: CompiledUnit, candidates: Optional[List[Candidate]] = None) -> ExtractionOutcome:
    """Extract every declaration in the unit's entry module."""
    return Extractor(unit).run(candidates)


def compile_unit(unit: CompiledUnit) -> ParseResult:
    """Extract declarations and assemble a fresh ParseResult.

    Raises:
        ProgramBuildError: the entry module declares nothing the compiler recognizes.
        DuplicateDeclarationError: two declarations of one kind share a name or key.
    """
    outcome = extract(unit)
    if not outcome.declarations and outcome.server is None and not outcome.diagnostics:
        raise ProgramBuildError(unit.path, "no capability declarations found")

    names: Dict[str, Dict[str, Declaration]] = {}
    groups: Dict[str, Dict[str, Declaration]] = {
        "tool": {},
        "resource": {},
        "prompt": {},
        "router": {},
        "skill": {},
        "subscription": {},
        "completion": {},
    }
    for declaration in outcome.declarations:
        group = groups[declaration.kind]
        named = names.setdefault(declaration.kind, {})
        existing = group.get(declaration.key)
        if existing is None:
            existing = named.get(declaration.name)
        if existing is not None:
            duplicate = declaration.key if declaration.key in group else declaration.name
            raise DuplicateDeclarationError(
                declaration.kind, duplicate, existing.interface_name, declaration.interface_name
            )
        group[declaration.key] = declaration
        named[declaration.name] = declaration

    return ParseResult(
        source_path=str(unit.path),
        server=outcome.server,
        class_name=outcome.class_name,
        tools=groups["tool"],
        resources=groups["resource"],
        prompts=groups["prompt"],
        routers=groups["router"],
        skills=groups["skill"],
        subscriptions=groups["subscription"],
        completions=groups["completion"],
        diagnostics=outcome.diagnostics,
    )
