"""Type -> ParameterSchema lowering.

Lowers Python type expressions (annotations, dict displays, IParam dicts and
class references) into the canonical ParameterSchema tree. Anything the
converter cannot classify statically becomes the opaque ``any`` schema; that
is an escape hatch, not an error.
"""

import ast
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog

from mcpdecl.kernel.declarations import ANY_SCHEMA, SCHEMA_KINDS, ParameterSchema
from mcpdecl.kernel.literals import UNDEFINED, dotted_name, extract_literal, subscript_args
from mcpdecl.kernel.naming import to_snake_case
from mcpdecl.kernel.program import CompiledUnit, Symbol
from mcpdecl.kernel.shapes import PARAM_INTERFACES, is_param_class

logger = structlog.get_logger(__name__)

_PRIMITIVES = {
    "str": ParameterSchema(kind="string"),
    "int": ParameterSchema(kind="integer"),
    "float": ParameterSchema(kind="number"),
    "complex": ANY_SCHEMA,
    "Decimal": ParameterSchema(kind="number"),
    "bool": ParameterSchema(kind="boolean"),
    "None": ParameterSchema(kind="null"),
    "NoneType": ParameterSchema(kind="null"),
    "bytes": ANY_SCHEMA,
    "Any": ANY_SCHEMA,
    "object": ANY_SCHEMA,
    "datetime": ParameterSchema(kind="string", format="date-time"),
    "date": ParameterSchema(kind="string", format="date"),
    "time": ParameterSchema(kind="string", format="time"),
    "UUID": ParameterSchema(kind="string", format="uuid"),
    "list": ParameterSchema(kind="array"),
    "List": ParameterSchema(kind="array"),
    "tuple": ParameterSchema(kind="array"),
    "Tuple": ParameterSchema(kind="array"),
    "set": ParameterSchema(kind="array", unique_items=True),
    "frozenset": ParameterSchema(kind="array", unique_items=True),
    "dict": ParameterSchema(kind="object", additional_properties=True),
    "Dict": ParameterSchema(kind="object", additional_properties=True),
}

_SEQUENCES = {"list", "List", "Sequence", "MutableSequence", "Iterable", "Collection", "Iterator"}
_SETS = {"set", "Set", "frozenset", "FrozenSet", "AbstractSet", "MutableSet"}
_TUPLES = {"tuple", "Tuple"}
_MAPPINGS = {"dict", "Dict", "Mapping", "MutableMapping", "Record", "OrderedDict", "DefaultDict", "defaultdict"}
_OPTIONAL_WRAPPERS = {"NotRequired"}
_PASSTHROUGH_WRAPPERS = {"Required", "ClassVar", "Final", "ReadOnly"}
_ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}
_TYPEDDICT_BASES = {"TypedDict"}

# IParam keys (after snake_case normalization) -> ParameterSchema field
_PARAM_KEYS = {
    "description": "description",
    "min_length": "min_length",
    "max_length": "max_length",
    "pattern": "pattern",
    "format": "format",
    "min": "minimum",
    "max": "maximum",
    "minimum": "minimum",
    "maximum": "maximum",
    "exclusive_min": "exclusive_minimum",
    "exclusive_max": "exclusive_maximum",
    "exclusive_minimum": "exclusive_minimum",
    "exclusive_maximum": "exclusive_maximum",
    "multiple_of": "multiple_of",
    "min_items": "min_items",
    "max_items": "max_items",
    "unique_items": "unique_items",
    "default": "default",
}

# Annotated[X, Field(...)] keywords -> ParameterSchema field
_FIELD_KEYWORDS = {
    "ge": "minimum",
    "le": "maximum",
    "gt": "exclusive_minimum",
    "lt": "exclusive_maximum",
    "multiple_of": "multiple_of",
    "min_length": "min_length",
    "max_length": "max_length",
    "pattern": "pattern",
    "description": "description",
}


_NUMERIC_CONSTRAINTS = {
    "min_length", "max_length", "minimum", "maximum", "exclusive_minimum",
    "exclusive_maximum", "multiple_of", "min_items", "max_items",
}
_TEXT_CONSTRAINTS = {"description", "pattern", "format"}


def _constraint_value(target: str, value: Any) -> Any:
    """The literal as declared, or UNDEFINED when it cannot fill ``target``."""
    if target in _NUMERIC_CONSTRAINTS:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif target in _TEXT_CONSTRAINTS:
        ok = isinstance(value, str)
    elif target == "unique_items":
        ok = isinstance(value, bool)
    else:
        ok = True
    if not ok:
        logger.debug("constraint ignored", constraint=target, value=repr(value))
        return UNDEFINED
    return value


def _is_none(node: ast.AST) -> bool:
    return (isinstance(node, ast.Constant) and node.value is None) or (isinstance(node, ast.Name) and node.id == "None")


def _short(name: Optional[str]) -> str:
    return (name or "").rpartition(".")[2]


def _optional(schema: ParameterSchema) -> ParameterSchema:
    if not schema.required:
        return schema
    return schema.model_copy(update={"required": False})


def _object(properties: Dict[str, ParameterSchema], required: Optional[List[str]] = None) -> ParameterSchema:
    if required is None:
        required = [name for name, prop in properties.items() if prop.required]
    return ParameterSchema(kind="object", properties=properties, required_properties=tuple(required))


class SchemaConverter:
    """Lowers type expressions found in one module of a CompiledUnit."""

    def __init__(self, unit: CompiledUnit, module_name: Optional[str] = None):
        self.unit = unit
        self.symbols = unit.symbols
        self.module_name = module_name or unit.module_name
        self._expanding: Set[str] = set()

    def lower(self, node: Optional[ast.AST], module: Optional[str] = None) -> ParameterSchema:
        """Lower a type expression node into a ParameterSchema."""
        return self._lower(node, module or self.module_name)

    # -- dispatch ---------------------------------------------------------

    def _lower(self, node: Optional[ast.AST], module: str) -> ParameterSchema:
        if node is None:
            return ANY_SCHEMA

        if isinstance(node, ast.Constant):
            if node.value is None:
                return ParameterSchema(kind="null")
            if isinstance(node.value, str):
                return self._lower_forward_ref(node.value, module)
            return ANY_SCHEMA

        if isinstance(node, ast.Dict):
            if self._is_param_dict(node):
                return self._from_param_fields(self._dict_items(node), module)
            return self._lower_dict_display(node, module)

        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return self._lower_union(self._flatten_bitor(node), module)

        if isinstance(node, (ast.Name, ast.Attribute)):
            return self._lower_reference(node, module)

        if isinstance(node, ast.Subscript):
            return self._lower_subscript(node, module)

        return ANY_SCHEMA

    def _lower_forward_ref(self, text: str, module: str) -> ParameterSchema:
        try:
            expr = ast.parse(text, mode="eval").body
        except SyntaxError:
            return ANY_SCHEMA
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            return ANY_SCHEMA
        return self._lower(expr, module)

    # -- names ------------------------------------------------------------

    def _resolve(self, node: ast.AST, module: str) -> Tuple[Optional[Symbol], str]:
        symbol = self.symbols.resolve(module, node)
        if symbol is not None and symbol.kind == "external":
            return symbol, symbol.name or _short(symbol.module)
        if symbol is not None:
            return symbol, symbol.name
        return None, _short(dotted_name(node))

    def _lower_reference(self, node: ast.AST, module: str) -> ParameterSchema:
        symbol, short = self._resolve(node, module)
        if symbol is not None and symbol.kind == "class":
            return self._lower_class(symbol)
        if symbol is not None and symbol.kind in ("alias", "variable"):
            return self._lower_alias(symbol)
        if short in _PRIMITIVES:
            return _PRIMITIVES[short]
        return ANY_SCHEMA

    def _lower_alias(self, symbol: Symbol) -> ParameterSchema:
        key = symbol.qualified_name
        if key in self._expanding:
            return ANY_SCHEMA
        node = symbol.node
        if isinstance(node, (ast.Assign, ast.AnnAssign)):
            target = node.value
        elif type(node).__name__ == "TypeAlias":
            target = node.value
        else:
            return ANY_SCHEMA
        if target is None:
            return ANY_SCHEMA
        self._expanding.add(key)
        try:
            return self._lower(target, symbol.module)
        finally:
            self._expanding.discard(key)

    # -- subscripts -------------------------------------------------------

    def _lower_subscript(self, node: ast.Subscript, module: str) -> ParameterSchema:
        symbol, head = self._resolve(node.value, module)
        args = subscript_args(node)
        if symbol is not None and symbol.kind in ("class", "alias", "variable"):
            # generic instantiation of a local type
            return ANY_SCHEMA

        if head == "Literal":
            return self._lower_union([node], module)
        if head == "Optional":
            return self._lower_not_required(args[0], module)
        if head == "Union":
            return self._lower_union(args, module)
        if head in _OPTIONAL_WRAPPERS:
            return self._lower_not_required(args[0], module)
        if head in _PASSTHROUGH_WRAPPERS:
            return self._lower(args[0], module)
        if head == "Annotated":
            return self._lower_annotated(args, module)
        if head in _SEQUENCES:
            return ParameterSchema(kind="array", items=self._lower(args[0], module))
        if head in _SETS:
            return ParameterSchema(kind="array", items=self._lower(args[0], module), unique_items=True)
        if head in _TUPLES:
            return self._lower_tuple(args, module)
        if head in _MAPPINGS and len(args) == 2:
            return ParameterSchema(kind="object", additional_properties=self._lower(args[1], module))
        return ANY_SCHEMA

    def _lower_not_required(self, inner: ast.AST, module: str) -> ParameterSchema:
        schema = self._lower(inner, module)
        if self._explicit_required(inner, module) is not None:
            return schema
        return _optional(schema)

    def _lower_annotated(self, args: List[ast.AST], module: str) -> ParameterSchema:
        schema = self._lower(args[0], module)
        updates: Dict[str, Any] = {}
        for meta in args[1:]:
            if isinstance(meta, ast.Constant) and isinstance(meta.value, str):
                updates["description"] = meta.value
                continue
            if not isinstance(meta, ast.Call) or _short(dotted_name(meta.func)) != "Field":
                continue
            for kw in meta.keywords:
                if kw.arg not in _FIELD_KEYWORDS:
                    continue
                value = extract_literal(kw.value)
                if value is UNDEFINED:
                    continue
                target = _FIELD_KEYWORDS[kw.arg]
                if schema.kind == "array" and target in ("min_length", "max_length"):
                    target = "min_items" if target == "min_length" else "max_items"
                value = _constraint_value(target, value)
                if value is not UNDEFINED:
                    updates[target] = value
        if not updates:
            return schema
        return schema.model_copy(update=updates)

    def _lower_tuple(self, args: List[ast.AST], module: str) -> ParameterSchema:
        if len(args) == 2 and isinstance(args[1], ast.Constant) and args[1].value is Ellipsis:
            return ParameterSchema(kind="array", items=self._lower(args[0], module))
        if len(args) == 1 and isinstance(args[0], ast.Tuple) and not args[0].elts:
            # tuple[()]
            return ParameterSchema(kind="array", min_items=0, max_items=0)
        elements = [self._lower(arg, module) for arg in args]
        size = len(elements)
        if all(element == elements[0] for element in elements):
            return ParameterSchema(kind="array", items=elements[0], min_items=size, max_items=size)
        return ParameterSchema(kind="array", prefix_items=tuple(elements), min_items=size, max_items=size)

    # -- unions and literals ----------------------------------------------

    def _flatten_bitor(self, node: ast.AST) -> List[ast.AST]:
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return self._flatten_bitor(node.left) + self._flatten_bitor(node.right)
        return [node]

    def _literal_values(self, node: ast.AST, module: str) -> Optional[List[Any]]:
        """Values of a Literal[...] member (through aliases), or None if not a literal."""
        if not isinstance(node, ast.Subscript):
            symbol = self.symbols.resolve(module, node) if isinstance(node, (ast.Name, ast.Attribute)) else None
            if symbol is not None and symbol.kind in ("alias", "variable") and symbol.node is not None:
                target = getattr(symbol.node, "value", None)
                if target is not None and symbol.qualified_name not in self._expanding:
                    self._expanding.add(symbol.qualified_name)
                    try:
                        return self._literal_values(target, symbol.module)
                    finally:
                        self._expanding.discard(symbol.qualified_name)
            return None
        _, head = self._resolve(node.value, module)
        if head != "Literal":
            return None
        values = []
        for arg in subscript_args(node):
            value = extract_literal(arg)
            if value is UNDEFINED or isinstance(value, (list, dict)):
                return None
            values.append(value)
        return values

    def _lower_union(self, members: List[ast.AST], module: str) -> ParameterSchema:
        flat: List[ast.AST] = []
        for member in members:
            flat.extend(self._flatten_bitor(member))

        literal_values: List[Any] = []
        others: List[ast.AST] = []
        has_none = False
        for member in flat:
            if isinstance(member, ast.Constant) and member.value is None:
                has_none = True
                continue
            if isinstance(member, ast.Name) and member.id == "None":
                has_none = True
                continue
            values = self._literal_values(member, module)
            if values is None:
                others.append(member)
                continue
            for value in values:
                if value is None:
                    has_none = True
                elif not any(v == value and type(v) is type(value) for v in literal_values):
                    literal_values.append(value)

        if literal_values and others:
            schema = ANY_SCHEMA
        elif literal_values:
            schema = self._literal_schema(literal_values)
        elif len(others) == 1:
            schema = self._lower(others[0], module)
        elif others:
            schema = ANY_SCHEMA
        else:
            return ParameterSchema(kind="null")

        if has_none:
            if len(others) == 1 and not literal_values and self._explicit_required(others[0], module) is not None:
                return schema
            return _optional(schema)
        return schema

    @staticmethod
    def _literal_schema(values: List[Any]) -> ParameterSchema:
        if all(isinstance(v, bool) for v in values):
            return ParameterSchema(kind="boolean")
        if any(isinstance(v, bool) for v in values):
            return ANY_SCHEMA
        return ParameterSchema(kind="enum", values=tuple(values))

    # -- objects ----------------------------------------------------------

    @staticmethod
    def _dict_items(node: ast.Dict) -> Dict[str, ast.AST]:
        items: Dict[str, ast.AST] = {}
        for key, value in zip(node.keys, node.values):
            if isinstance(key, ast.Constant) and isinstance(key.value, str):
                items[to_snake_case(key.value)] = value
        return items

    @staticmethod
    def _is_param_dict(node: ast.Dict) -> bool:
        """A dict display is an IParam when its 'type' key holds a schema kind string."""
        for key, value in zip(node.keys, node.values):
            if isinstance(key, ast.Constant) and key.value == "type":
                kind = extract_literal(value)
                return isinstance(kind, str) and kind in SCHEMA_KINDS
        return False

    def _lower_dict_display(self, node: ast.Dict, module: str) -> ParameterSchema:
        properties: Dict[str, ParameterSchema] = {}
        for key, value in zip(node.keys, node.values):
            if not (isinstance(key, ast.Constant) and isinstance(key.value, str)):
                return ParameterSchema(kind="object", additional_properties=True)
            properties[key.value] = self._lower(value, module)
        return _object(properties)

    def _explicit_required(self, node: ast.AST, module: str) -> Optional[bool]:
        """The 'required' key of an IParam dict or class, when present.

        Looks through Optional/NotRequired/Required/Annotated and unions with None.
        """
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            members = [m for m in self._flatten_bitor(node) if not _is_none(m)]
            return self._explicit_required(members[0], module) if len(members) == 1 else None
        if isinstance(node, ast.Subscript):
            _, head = self._resolve(node.value, module)
            args = subscript_args(node)
            if head in ("Optional", "NotRequired", "Required", "Annotated") and args:
                return self._explicit_required(args[0], module)
            if head == "Union":
                members = [m for m in args if not _is_none(m)]
                return self._explicit_required(members[0], module) if len(members) == 1 else None
            return None
        if isinstance(node, ast.Dict) and self._is_param_dict(node):
            value = extract_literal(self._dict_items(node).get("required"))
            return value if isinstance(value, bool) else None
        if isinstance(node, (ast.Name, ast.Attribute)):
            symbol = self.symbols.resolve(module, node)
            if symbol is not None and symbol.kind == "class" and isinstance(symbol.node, ast.ClassDef):
                fields = self._class_param_fields(symbol.node)
                value = extract_literal(fields.get("required"))
                return value if isinstance(value, bool) else None
        return None

    def _from_param_fields(self, fields: Dict[str, ast.AST], module: str) -> ParameterSchema:
        """Build a schema from IParam keys (already snake_cased)."""
        kind = extract_literal(fields.get("type"))
        if not isinstance(kind, str) or kind not in SCHEMA_KINDS:
            kind = "any"
        data: Dict[str, Any] = {"kind": kind}

        for key, target in _PARAM_KEYS.items():
            if key not in fields:
                continue
            value = extract_literal(fields[key])
            if value is not UNDEFINED and value is not None:
                value = _constraint_value(target, value)
            if value is not UNDEFINED and value is not None:
                data[target] = value

        required = extract_literal(fields.get("required"))
        if isinstance(required, bool):
            data["required"] = required

        enum_values = extract_literal(fields.get("enum"))
        if isinstance(enum_values, list) and enum_values:
            data["kind"] = "enum"
            data["values"] = tuple(enum_values)

        if "items" in fields:
            data["items"] = self._lower(fields["items"], module)

        if "properties" in fields:
            props_node = fields["properties"]
            if isinstance(props_node, ast.Dict):
                properties = {
                    key.value: self._lower(value, module)
                    for key, value in zip(props_node.keys, props_node.values)
                    if isinstance(key, ast.Constant) and isinstance(key.value, str)
                }
            else:
                nested = self._lower(props_node, module)
                properties = dict(nested.properties or {})
            declared = extract_literal(fields.get("required_properties"))
            if isinstance(declared, list):
                required_names = [name for name in declared if isinstance(name, str)]
            else:
                required_names = [name for name, prop in properties.items() if prop.required]
            data["properties"] = properties
            data["required_properties"] = tuple(required_names)
            if data["kind"] == "any":
                data["kind"] = "object"

        if "additional_properties" in fields:
            extra = extract_literal(fields["additional_properties"])
            if isinstance(extra, bool):
                data["additional_properties"] = extra
            else:
                data["additional_properties"] = self._lower(fields["additional_properties"], module)

        if data["kind"] == "enum" and "values" not in data:
            data["kind"] = "any"
        return ParameterSchema(**data)

    def _class_param_fields(self, node: ast.ClassDef) -> Dict[str, ast.AST]:
        fields: Dict[str, ast.AST] = {}
        for stmt in node.body:
            if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                # prefer the assigned value; fall back to the annotation (Literal[...] or a type)
                fields[to_snake_case(stmt.target.id)] = stmt.value if stmt.value is not None else stmt.annotation
            elif isinstance(stmt, ast.Assign):
                for target in stmt.targets:
                    if isinstance(target, ast.Name):
                        fields[to_snake_case(target.id)] = stmt.value
        return fields

    def _base_names(self, node: ast.ClassDef, module: str) -> Set[str]:
        names: Set[str] = set()
        for base in node.bases:
            target = base.value if isinstance(base, ast.Subscript) else base
            _, short = self._resolve(target, module)
            names.add(short)
        return names

    def _lower_class(self, symbol: Symbol) -> ParameterSchema:
        node = symbol.node
        if not isinstance(node, ast.ClassDef):
            return ANY_SCHEMA
        key = symbol.qualified_name
        if key in self._expanding:
            logger.debug("recursive type lowered to any", type=key)
            return ANY_SCHEMA
        self._expanding.add(key)
        try:
            bases = self._base_names(node, symbol.module)
            if bases & _ENUM_BASES:
                return self._lower_enum(node)
            if bases & PARAM_INTERFACES or is_param_class(node, symbol.module, self.symbols):
                return self._from_param_fields(self._class_param_fields(node), symbol.module)
            return self._lower_record_class(node, symbol.module)
        finally:
            self._expanding.discard(key)

    @staticmethod
    def _lower_enum(node: ast.ClassDef) -> ParameterSchema:
        values: List[Any] = []
        for stmt in node.body:
            if isinstance(stmt, ast.Assign) and len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
                if stmt.targets[0].id.startswith("_"):
                    continue
                value = extract_literal(stmt.value)
                if value is UNDEFINED or isinstance(value, (list, dict, bool)) or value is None:
                    return ANY_SCHEMA
                values.append(value)
        if not values:
            return ANY_SCHEMA
        return ParameterSchema(kind="enum", values=tuple(values))

    def _typeddict_total(self, node: ast.ClassDef) -> bool:
        for kw in node.keywords:
            if kw.arg == "total":
                value = extract_literal(kw.value)
                if isinstance(value, bool):
                    return value
        return True

    def _record_fields(
        self,
        node: ast.ClassDef,
        module: str,
        seen: Set[str],
    ) -> Dict[str, ParameterSchema]:
        """Properties of a TypedDict/dataclass/model class, base classes first."""
        properties: Dict[str, ParameterSchema] = {}
        for base in node.bases:
            symbol = self.symbols.resolve(module, base) if isinstance(base, (ast.Name, ast.Attribute)) else None
            if symbol is not None and symbol.kind == "class" and isinstance(symbol.node, ast.ClassDef):
                if symbol.qualified_name not in seen:
                    seen.add(symbol.qualified_name)
                    properties.update(self._record_fields(symbol.node, symbol.module, seen))

        is_typeddict = bool(self._base_names(node, module) & _TYPEDDICT_BASES)
        total = self._typeddict_total(node) if is_typeddict else True

        for stmt in node.body:
            if not (isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name)):
                continue
            annotation = stmt.annotation
            if isinstance(annotation, ast.Subscript):
                _, head = self._resolve(annotation.value, module)
                if head == "ClassVar":
                    continue
            schema = self._lower(annotation, module)
            if stmt.value is not None:
                explicit = self._explicit_required(annotation, module)
                schema = self._apply_default(schema, stmt.value, keep_required=explicit is not None)
            if not total and self._explicit_required(annotation, module) is None:
                is_required_wrapper = (
                    isinstance(annotation, ast.Subscript)
                    and self._resolve(annotation.value, module)[1] == "Required"
                )
                if not is_required_wrapper:
                    schema = _optional(schema)
            properties[stmt.target.id] = schema
        return properties

    def _apply_default(self, schema: ParameterSchema, value: ast.AST, keep_required: bool = False) -> ParameterSchema:
        """Class attribute defaults make a field optional; pydantic Field(...) carries constraints.

        ``keep_required`` leaves an explicit IParam ``required`` untouched.
        """
        if isinstance(value, ast.Call) and _short(dotted_name(value.func)) in ("Field", "field"):
            updates: Dict[str, Any] = {}
            has_default = False
            if value.args and not (isinstance(value.args[0], ast.Constant) and value.args[0].value is Ellipsis):
                has_default = True
                default = extract_literal(value.args[0])
                if default is not UNDEFINED and default is not None:
                    updates["default"] = default
            for kw in value.keywords:
                if kw.arg in ("default", "default_factory"):
                    has_default = True
                    default = extract_literal(kw.value) if kw.arg == "default" else UNDEFINED
                    if default is not UNDEFINED and default is not None:
                        updates["default"] = default
                elif kw.arg in _FIELD_KEYWORDS:
                    literal = extract_literal(kw.value)
                    if literal is not UNDEFINED:
                        literal = _constraint_value(_FIELD_KEYWORDS[kw.arg], literal)
                    if literal is not UNDEFINED:
                        updates[_FIELD_KEYWORDS[kw.arg]] = literal
            if has_default and not keep_required:
                updates["required"] = False
            return schema.model_copy(update=updates) if updates else schema

        updates = {} if keep_required else {"required": False}
        default = extract_literal(value)
        if default is not UNDEFINED and default is not None:
            updates["default"] = default
        return schema.model_copy(update=updates)

    def _lower_record_class(self, node: ast.ClassDef, module: str) -> ParameterSchema:
        properties = self._record_fields(node, module, {f"{module}.{node.name}"})
        return _object(properties)
