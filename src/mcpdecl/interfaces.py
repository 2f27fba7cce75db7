"""Marker interfaces for declaring server capabilities.

Subclass one of these and give its fields literal annotations::

    class GetWeatherTool(ITool):
        name: Literal["get_weather"]
        description: Literal["Get current weather"]
        params: {"location": {"type": "string", "description": "City name"}}
        result: {"temperature": float}

The compiler reads these classes statically; at runtime they are plain
classes with no behavior. Field annotations below document the accepted
fields and their meaning.
"""

from typing import Any, Callable, Dict, Generic, List, Literal, TypeVar, Union

HiddenPredicate = Callable[..., bool]
SkillRef = Union[str, List[str]]


class IParam:
    """A parameter schema with validation constraints.

    Keys may be written snake_case or camelCase (``min_length``/``minLength``).
    """
    type: Literal["string", "number", "integer", "boolean", "array", "object", "null"]
    description: str
    required: bool  # default True
    # string
    min_length: int
    max_length: int
    format: str
    pattern: str
    enum: List[str]
    # number / integer
    min: float
    max: float
    exclusive_min: float
    exclusive_max: float
    multiple_of: float
    # array
    items: Any
    min_items: int
    max_items: int
    unique_items: bool
    # object
    properties: Dict[str, Any]
    required_properties: List[str]
    additional_properties: Union[bool, Any]


class IToolAnnotations:
    """Behavior hints for clients."""
    title: str
    read_only_hint: bool
    destructive_hint: bool
    idempotent_hint: bool
    open_world_hint: bool


class ITool:
    name: str  # optional, inferred from the implementing member or class name
    description: str
    params: Any
    result: Any
    annotations: IToolAnnotations
    hidden: Union[bool, HiddenPredicate]
    skill: SkillRef


class IResource:
    """Static resources set ``value``; dynamic ones set ``returns`` and bind an implementation."""
    uri: str
    name: str
    description: str
    mime_type: str
    value: Any
    returns: Any
    hidden: Union[bool, HiddenPredicate]
    skill: SkillRef


class IPrompt:
    name: str
    description: str
    args: Any
    template: str  # static prompts need no implementation
    hidden: Union[bool, HiddenPredicate]
    skill: SkillRef


class IToolRouter:
    """Groups tools (or nested routers) under one discoverable name."""
    name: str
    description: str
    tools: List[str]
    metadata: Dict[str, Any]
    hidden: Union[bool, HiddenPredicate]


class ISkill:
    """A named grouping of hidden capabilities for progressive disclosure."""
    name: str
    description: str
    components: Dict[str, List[str]]  # {"tools": [...], "resources": [...], "prompts": [...]}
    content: str
    hidden: Union[bool, HiddenPredicate]


class ISubscription:
    uri: str
    description: str
    handler: Callable[..., Any]


class ICompletion:
    name: str
    description: str
    ref: Dict[str, str]  # {"type": "argument" | "resource", "name": ...}
    arg: Any
    complete: Callable[..., Any]


class IServer:
    name: str  # kebab-case
    version: str  # default "1.0.0"
    description: str
    transport: Literal["stdio", "http", "websocket"]  # inferred when omitted
    port: int
    stateful: bool
    websocket: Dict[str, int]
    flatten_routers: bool


T = TypeVar("T")


class ToolHelper(Generic[T]):
    """Annotates a tool implementation: ``get_weather: ToolHelper[GetWeatherTool] = ...``."""


class ResourceHelper(Generic[T]):
    pass


class PromptHelper(Generic[T]):
    pass


class CompletionHelper(Generic[T]):
    pass


class SubscriptionHelper(Generic[T]):
    pass


__all__ = [
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
