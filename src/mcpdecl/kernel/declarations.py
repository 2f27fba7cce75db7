"""Pydantic models for the compiled intermediate representation (IR).

Every model is frozen: declarations are immutable once produced, and a new
compile pass builds a new ParseResult rather than updating an old one.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from mcpdecl.contracts import ValidationWarning

SchemaKind = Literal["string", "number", "integer", "boolean", "array", "object", "null", "enum", "any"]
SCHEMA_KINDS = frozenset(get_args(SchemaKind))
DeclarationKind = Literal["tool", "resource", "prompt", "router", "skill", "subscription", "completion"]
Transport = Literal["stdio", "http", "websocket"]
# StrictInt first: an int constraint is never widened to float
Number = Union[StrictInt, float]


class ParameterSchema(BaseModel):
    """Canonical parameter/result schema node.

    Constraints are kind-specific and carried as declared, without rounding or
    coercion. ``kind == "any"`` is the opaque fallback that accepts any value.
    """
    kind: SchemaKind
    description: Optional[str] = None
    required: bool = True
    default: Any = None

    # string
    min_length: Optional[Number] = None
    max_length: Optional[Number] = None
    pattern: Optional[str] = None
    format: Optional[str] = None

    # number / integer
    minimum: Optional[Number] = None
    maximum: Optional[Number] = None
    exclusive_minimum: Optional[Number] = None
    exclusive_maximum: Optional[Number] = None
    multiple_of: Optional[Number] = None

    # array
    items: Optional["ParameterSchema"] = None
    prefix_items: Optional[Tuple["ParameterSchema", ...]] = None  # heterogeneous fixed-length tuples
    min_items: Optional[Number] = None
    max_items: Optional[Number] = None
    unique_items: Optional[bool] = None

    # object
    properties: Optional[Dict[str, "ParameterSchema"]] = None
    required_properties: Optional[Tuple[str, ...]] = None
    additional_properties: Optional[Union[bool, "ParameterSchema"]] = None

    # enum
    values: Optional[Tuple[Union[str, int, float], ...]] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_json_schema(self) -> Dict[str, Any]:
        """Render as a JSON Schema dict for request validation."""
        out: Dict[str, Any] = {}
        if self.kind == "enum":
            values = list(self.values or ())
            if values and all(isinstance(v, str) for v in values):
                out["type"] = "string"
            elif values and all(isinstance(v, (int, float)) for v in values):
                out["type"] = "number"
            out["enum"] = values
        elif self.kind != "any":
            out["type"] = self.kind

        if self.description:
            out["description"] = self.description
        if self.default is not None:
            out["default"] = self.default

        simple = {
            "minLength": self.min_length,
            "maxLength": self.max_length,
            "pattern": self.pattern,
            "format": self.format,
            "minimum": self.minimum,
            "maximum": self.maximum,
            "exclusiveMinimum": self.exclusive_minimum,
            "exclusiveMaximum": self.exclusive_maximum,
            "multipleOf": self.multiple_of,
            "minItems": self.min_items,
            "maxItems": self.max_items,
            "uniqueItems": self.unique_items,
        }
        for key, value in simple.items():
            if value is not None:
                out[key] = value

        if self.items is not None:
            out["items"] = self.items.to_json_schema()
        if self.prefix_items is not None:
            out["prefixItems"] = [item.to_json_schema() for item in self.prefix_items]
        if self.properties is not None:
            out["properties"] = {name: prop.to_json_schema() for name, prop in self.properties.items()}
            out["required"] = list(self.required_properties or ())
        if self.additional_properties is not None:
            if isinstance(self.additional_properties, ParameterSchema):
                out["additionalProperties"] = self.additional_properties.to_json_schema()
            else:
                out["additionalProperties"] = self.additional_properties
        return out


ParameterSchema.model_rebuild()

ANY_SCHEMA = ParameterSchema(kind="any")
EMPTY_OBJECT_SCHEMA = ParameterSchema(kind="object", properties={}, required_properties=())


class SourceLocation(BaseModel):
    """Where a declaration was found."""
    file: str
    line: int

    model_config = ConfigDict(frozen=True)


class HiddenFlag(BaseModel):
    """Visibility of a capability.

    Predicates are recorded by reference and evaluated later by the runtime,
    never by the compiler.
    """
    mode: Literal["absent", "static", "predicate"] = "absent"
    value: Optional[bool] = None
    predicate: Optional[str] = None  # source text of the predicate reference

    model_config = ConfigDict(frozen=True)

    @property
    def is_static_hidden(self) -> bool:
        return self.mode == "static" and self.value is True

    @property
    def is_dynamic(self) -> bool:
        return self.mode == "predicate"


class Declaration(BaseModel):
    """Common attributes of every extracted capability."""
    kind: DeclarationKind
    name: str
    description: str = ""
    interface_name: str
    binding_name: Optional[str] = None  # None when no implementing member was found
    binding_owner: Optional[str] = None  # implementing class, None for module-level bindings
    binding_candidates: Tuple[str, ...] = Field(default_factory=tuple)  # member names tried, in order
    hidden: HiddenFlag = Field(default_factory=HiddenFlag)
    skill_membership: Tuple[str, ...] = Field(default_factory=tuple)
    location: Optional[SourceLocation] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def key(self) -> str:
        """Identifier this declaration is indexed by within its kind."""
        return self.name

    @property
    def requires_implementation(self) -> bool:
        return False


class ToolDeclaration(Declaration):
    kind: Literal["tool"] = "tool"
    params: ParameterSchema = EMPTY_OBJECT_SCHEMA
    result: ParameterSchema = ANY_SCHEMA
    annotations: Optional[Dict[str, Any]] = None

    @property
    def requires_implementation(self) -> bool:
        return True


class ResourceDeclaration(Declaration):
    kind: Literal["resource"] = "resource"
    uri: str
    mime_type: str = "application/json"
    value: Any = None
    has_value: bool = False  # value may legitimately be None
    dynamic: bool = False
    returns: Optional[ParameterSchema] = None

    @model_validator(mode="after")
    def validate_value_xor_dynamic(self):
        """A resource is served from literal data or from a binding, never both."""
        if self.has_value and self.dynamic:
            raise ValueError(f"Resource '{self.uri}' cannot be both static and dynamic")
        return self

    @property
    def key(self) -> str:
        return self.uri

    @property
    def requires_implementation(self) -> bool:
        return self.dynamic


class PromptDeclaration(Declaration):
    kind: Literal["prompt"] = "prompt"
    args: ParameterSchema = EMPTY_OBJECT_SCHEMA
    template: Optional[str] = None

    @property
    def requires_implementation(self) -> bool:
        return self.template is None


class RouterDeclaration(Declaration):
    kind: Literal["router"] = "router"
    tools: Tuple[str, ...] = Field(default_factory=tuple)  # ordered tool or nested router names
    metadata: Optional[Dict[str, Any]] = None


class SkillComponents(BaseModel):
    tools: Tuple[str, ...] = Field(default_factory=tuple)
    resources: Tuple[str, ...] = Field(default_factory=tuple)
    prompts: Tuple[str, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def is_empty(self) -> bool:
        return not (self.tools or self.resources or self.prompts)


class SkillDeclaration(Declaration):
    kind: Literal["skill"] = "skill"
    components: SkillComponents = Field(default_factory=SkillComponents)
    content: Optional[str] = None


class SubscriptionDeclaration(Declaration):
    kind: Literal["subscription"] = "subscription"
    uri: str
    has_handler: bool = False

    @property
    def key(self) -> str:
        return self.uri


class CompletionDeclaration(Declaration):
    kind: Literal["completion"] = "completion"
    ref: Optional[Dict[str, Any]] = None  # {"type": "argument" | "resource", "name": ...}
    arg: ParameterSchema = ANY_SCHEMA
    has_complete_function: bool = False  # inline complete() or a bound member

    @property
    def requires_implementation(self) -> bool:
        return not self.has_complete_function


AnyDeclaration = Union[
    ToolDeclaration,
    ResourceDeclaration,
    PromptDeclaration,
    RouterDeclaration,
    SkillDeclaration,
    SubscriptionDeclaration,
    CompletionDeclaration,
]


class ServerMeta(BaseModel):
    """Server-level metadata and transport defaults."""
    interface_name: str
    name: str
    version: str = "1.0.0"
    description: Optional[str] = None
    transport: Transport = "stdio"
    port: Optional[int] = None
    stateful: Optional[bool] = None
    websocket: Optional[Dict[str, Any]] = None
    flatten_routers: Optional[bool] = None
    class_name: Optional[str] = None
    location: Optional[SourceLocation] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ParseResult(BaseModel):
    """The compiled output for one entry file."""
    source_path: str
    server: Optional[ServerMeta] = None
    class_name: Optional[str] = None  # implementing class, if one was found
    tools: Dict[str, ToolDeclaration] = Field(default_factory=dict)
    resources: Dict[str, ResourceDeclaration] = Field(default_factory=dict)  # keyed by URI
    prompts: Dict[str, PromptDeclaration] = Field(default_factory=dict)
    routers: Dict[str, RouterDeclaration] = Field(default_factory=dict)
    skills: Dict[str, SkillDeclaration] = Field(default_factory=dict)
    subscriptions: Dict[str, SubscriptionDeclaration] = Field(default_factory=dict)  # keyed by URI
    completions: Dict[str, CompletionDeclaration] = Field(default_factory=dict)
    diagnostics: List[ValidationWarning] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def declarations(self) -> List[Declaration]:
        """All declarations, grouped by kind in a stable order."""
        out: List[Declaration] = []
        for group in (
            self.tools,
            self.resources,
            self.prompts,
            self.routers,
            self.skills,
            self.subscriptions,
            self.completions,
        ):
            out.extend(group.values())
        return out

    def unresolved_bindings(self) -> List[Declaration]:
        """Declarations that need an implementation but have none bound."""
        return [d for d in self.declarations() if d.requires_implementation and d.binding_name is None]

    def with_diagnostics(self, diagnostics: List[ValidationWarning]) -> "ParseResult":
        """Return a copy with extra diagnostics appended (the original is untouched)."""
        return self.model_copy(update={"diagnostics": list(self.diagnostics) + list(diagnostics)})
