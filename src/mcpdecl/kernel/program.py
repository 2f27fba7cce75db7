"""Source program builder.

Loads an entry file plus the local modules it imports into a CompiledUnit:
parsed trees, a module graph, and a symbol table that resolves names across
import edges. Files are parsed with ``ast``; nothing is imported or executed.
"""

import ast
import threading
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcpdecl.kernel.errors import ProgramBuildError

logger = structlog.get_logger(__name__)

CONFIG_FILENAME = "mcpdecl.toml"
PYPROJECT_FILENAME = "pyproject.toml"

# Imports under these top-level packages are never followed
_ALWAYS_EXTERNAL = {"mcpdecl", "typing", "typing_extensions", "pydantic", "collections", "enum", "dataclasses"}

SymbolKind = Literal["class", "function", "variable", "alias", "module", "external"]


class ProjectConfig(BaseModel):
    """Compiler settings discovered from pyproject.toml or mcpdecl.toml."""
    source_roots: List[str] = Field(default_factory=lambda: ["."])  # relative to the config file directory
    follow_imports: bool = True
    max_import_depth: int = 8
    validation: Dict[str, Any] = Field(default_factory=dict)  # raw [tool.mcpdecl.validation] table
    config_path: Optional[str] = None  # file the settings came from, None for defaults

    model_config = ConfigDict(frozen=True, extra="ignore")


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ProgramBuildError(path, f"invalid configuration file: {e}") from e


def _load_config(data: Dict[str, Any], path: Path) -> ProjectConfig:
    try:
        return ProjectConfig(**{**data, "config_path": str(path)})
    except ValidationError as e:
        raise ProgramBuildError(path, f"invalid configuration value: {e}") from e


def discover_project_config(start: Union[str, Path]) -> ProjectConfig:
    """Walk upward from ``start`` to the nearest configuration file.

    ``mcpdecl.toml`` wins over ``pyproject.toml`` in the same directory. A
    pyproject without a ``[tool.mcpdecl]`` table still ends the search.
    User values are merged over the defaults; unknown keys are ignored.
    """
    directory = Path(start).resolve()
    if directory.is_file():
        directory = directory.parent

    for candidate in [directory, *directory.parents]:
        dedicated = candidate / CONFIG_FILENAME
        if dedicated.is_file():
            data = _read_toml(dedicated)
            logger.debug("project config found", path=str(dedicated))
            return _load_config(data, dedicated)
        pyproject = candidate / PYPROJECT_FILENAME
        if pyproject.is_file():
            data = _read_toml(pyproject).get("tool", {}).get("mcpdecl", {})
            logger.debug("project config found", path=str(pyproject), has_table=bool(data))
            return _load_config(data, pyproject)

    logger.debug("no project config, using defaults", start=str(directory))
    return ProjectConfig()


@dataclass(frozen=True)
class ImportTarget:
    """What a local import name points at."""
    module: str  # absolute dotted module name
    attr: Optional[str] = None  # None for 'import x' style imports


@dataclass
class ModuleInfo:
    """One parsed module in the program graph."""
    name: str
    path: Path
    tree: ast.Module
    root: Path  # search root the module name is relative to
    is_package: bool = False
    definitions: Dict[str, ast.AST] = field(default_factory=dict)  # top-level name -> defining node
    imports: Dict[str, ImportTarget] = field(default_factory=dict)  # local name -> import target

    @property
    def package(self) -> str:
        if self.is_package:
            return self.name
        return self.name.rpartition(".")[0]


@dataclass(frozen=True)
class Symbol:
    """A resolved name."""
    kind: SymbolKind
    name: str
    module: str  # module that defines it (or the external module path)
    node: Optional[ast.AST] = None

    @property
    def qualified_name(self) -> str:
        if self.kind == "module":
            return self.module
        return f"{self.module}.{self.name}" if self.module else self.name


class SymbolTable:
    """Resolves names in a module scope, following import edges into loaded modules."""

    def __init__(self, modules: Dict[str, ModuleInfo]):
        self.modules = modules

    def module(self, name: str) -> Optional[ModuleInfo]:
        return self.modules.get(name)

    def lookup(self, module_name: str, name: str, _seen: Optional[set] = None) -> Optional[Symbol]:
        """Resolve ``name`` as seen from the top level of ``module_name``."""
        seen = _seen if _seen is not None else set()
        key = (module_name, name)
        if key in seen:
            return None
        seen.add(key)

        info = self.modules.get(module_name)
        if info is None:
            return Symbol(kind="external", name=name, module=module_name)

        node = info.definitions.get(name)
        if node is not None:
            return Symbol(kind=_definition_kind(node), name=name, module=module_name, node=node)

        target = info.imports.get(name)
        if target is None:
            return None
        if target.attr is None:
            if target.module in self.modules:
                return Symbol(kind="module", name=name, module=target.module)
            return Symbol(kind="external", name="", module=target.module)
        if target.module in self.modules:
            resolved = self.lookup(target.module, target.attr, seen)
            if resolved is not None:
                return resolved
        submodule = f"{target.module}.{target.attr}"
        if submodule in self.modules:
            return Symbol(kind="module", name=name, module=submodule)
        return Symbol(kind="external", name=target.attr, module=target.module)

    def resolve(self, module_name: str, node: ast.AST) -> Optional[Symbol]:
        """Resolve a Name or Attribute chain expression."""
        if isinstance(node, ast.Name):
            return self.lookup(module_name, node.id)
        if isinstance(node, ast.Attribute):
            base = self.resolve(module_name, node.value)
            if base is None:
                return None
            if base.kind == "module":
                return self.lookup(base.module, node.attr)
            if base.kind == "external":
                module = base.qualified_name if base.name else base.module
                return Symbol(kind="external", name=node.attr, module=module)
        return None

    def classes(self, module_name: str) -> List[ast.ClassDef]:
        info = self.modules.get(module_name)
        if info is None:
            return []
        return [n for n in info.tree.body if isinstance(n, ast.ClassDef)]


def _definition_kind(node: ast.AST) -> SymbolKind:
    if isinstance(node, ast.ClassDef):
        return "class"
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        return "function"
    if isinstance(node, ast.AnnAssign) and _is_type_alias_annotation(node.annotation):
        return "alias"
    if type(node).__name__ == "TypeAlias":
        return "alias"
    return "variable"


def _is_type_alias_annotation(annotation: ast.AST) -> bool:
    if isinstance(annotation, ast.Name):
        return annotation.id == "TypeAlias"
    if isinstance(annotation, ast.Attribute):
        return annotation.attr == "TypeAlias"
    return False


@dataclass
class CompiledUnit:
    """One loaded program for an absolute entry path."""
    path: Path
    module_name: str
    tree: ast.Module
    modules: Dict[str, ModuleInfo]
    symbols: SymbolTable
    config: ProjectConfig

    @property
    def entry(self) -> ModuleInfo:
        return self.modules[self.module_name]


class ProgramCache:
    """Path-keyed cache of CompiledUnits.

    The lock only guards the dict. Builds run outside it, so two callers
    racing on the same path may both compile; the first ``put`` wins.
    Entries never expire; call ``clear`` when a file changes.
    """

    def __init__(self):
        self._entries: Dict[Path, CompiledUnit] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(path: Union[str, Path]) -> Path:
        return Path(path).resolve()

    def get(self, path: Union[str, Path]) -> Optional[CompiledUnit]:
        with self._lock:
            return self._entries.get(self._key(path))

    def put(self, path: Union[str, Path], unit: CompiledUnit) -> CompiledUnit:
        """Store ``unit`` unless an entry exists; return the stored unit."""
        with self._lock:
            return self._entries.setdefault(self._key(path), unit)

    def clear(self, path: Optional[Union[str, Path]] = None) -> None:
        """Evict one entry, or everything when ``path`` is None."""
        with self._lock:
            if path is None:
                self._entries.clear()
            else:
                self._entries.pop(self._key(path), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return self._key(path) in self._entries


def _parse_file(path: Path) -> ast.Module:
    try:
        source = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ProgramBuildError(path, f"cannot decode file as UTF-8: {e}") from e
    except OSError as e:
        raise ProgramBuildError(path, f"cannot read file: {e}") from e
    try:
        return ast.parse(source, filename=str(path))
    except SyntaxError as e:
        raise ProgramBuildError(path, f"syntax error at line {e.lineno}: {e.msg}") from e


def _top_level_statements(body: List[ast.stmt]) -> List[ast.stmt]:
    """Top-level statements, descending into if/try blocks (TYPE_CHECKING guards etc.)."""
    out: List[ast.stmt] = []
    for stmt in body:
        if isinstance(stmt, ast.If):
            out.extend(_top_level_statements(stmt.body))
            out.extend(_top_level_statements(stmt.orelse))
        elif isinstance(stmt, ast.Try):
            out.extend(_top_level_statements(stmt.body))
            for handler in stmt.handlers:
                out.extend(_top_level_statements(handler.body))
        else:
            out.append(stmt)
    return out


def _resolve_relative(info_package: str, level: int, module: Optional[str]) -> Optional[str]:
    parts = info_package.split(".") if info_package else []
    if level - 1 > len(parts):
        return None
    base = parts[: len(parts) - (level - 1)] if level > 1 else parts
    if module:
        base = base + module.split(".")
    return ".".join(base) if base else None


def _index_module(info: ModuleInfo) -> None:
    for stmt in _top_level_statements(info.tree.body):
        if isinstance(stmt, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
            info.definitions[stmt.name] = stmt
        elif isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                if isinstance(target, ast.Name):
                    info.definitions[target.id] = stmt
        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            info.definitions[stmt.target.id] = stmt
        elif type(stmt).__name__ == "TypeAlias":
            info.definitions[stmt.name.id] = stmt
        elif isinstance(stmt, ast.Import):
            for alias in stmt.names:
                if alias.asname:
                    info.imports[alias.asname] = ImportTarget(module=alias.name)
                else:
                    top = alias.name.split(".")[0]
                    info.imports[top] = ImportTarget(module=top)
        elif isinstance(stmt, ast.ImportFrom):
            if stmt.level:
                module = _resolve_relative(info.package, stmt.level, stmt.module)
            else:
                module = stmt.module
            if module is None:
                continue
            for alias in stmt.names:
                if alias.name == "*":
                    continue
                info.imports[alias.asname or alias.name] = ImportTarget(module=module, attr=alias.name)


def _module_file(root: Path, module: str) -> Optional[Tuple[Path, bool]]:
    base = root.joinpath(*module.split("."))
    package_init = base / "__init__.py"
    if package_init.is_file():
        return package_init, True
    module_file = base.with_suffix(".py")
    if module_file.is_file():
        return module_file, False
    return None


def _module_name_for(path: Path, roots: List[Path]) -> Tuple[str, Path, bool]:
    """Dotted module name of ``path`` relative to the first root containing it."""
    is_package = path.name == "__init__.py"
    for root in roots:
        try:
            rel = path.relative_to(root)
        except ValueError:
            continue
        parts = list(rel.with_suffix("").parts)
        if is_package:
            parts = parts[:-1]
        if parts and all(p.isidentifier() for p in parts):
            return ".".join(parts), root, is_package
    return path.stem, path.parent, False


def _search_roots(entry: Path, config: ProjectConfig) -> List[Path]:
    base = Path(config.config_path).parent if config.config_path else entry.parent
    roots: List[Path] = []
    for root in config.source_roots:
        resolved = (base / root).resolve()
        if resolved not in roots:
            roots.append(resolved)
    if entry.parent not in roots:
        roots.append(entry.parent)
    return roots


def _import_candidates(info: ModuleInfo) -> List[str]:
    """Module names an indexed module may pull in, including 'from pkg import submodule' forms."""
    names: List[str] = []
    for target in info.imports.values():
        names.append(target.module)
        if target.attr is not None:
            names.append(f"{target.module}.{target.attr}")
    return names


def _load_graph(entry: Path, config: ProjectConfig) -> Tuple[str, Dict[str, ModuleInfo]]:
    roots = _search_roots(entry, config)
    entry_name, entry_root, entry_is_package = _module_name_for(entry, roots)
    entry_info = ModuleInfo(
        name=entry_name,
        path=entry,
        tree=_parse_file(entry),
        root=entry_root,
        is_package=entry_is_package,
    )
    _index_module(entry_info)
    modules: Dict[str, ModuleInfo] = {entry_name: entry_info}
    if not config.follow_imports:
        return entry_name, modules

    frontier: List[Tuple[ModuleInfo, int]] = [(entry_info, 0)]
    external: set = set()
    while frontier:
        info, depth = frontier.pop(0)
        if depth >= config.max_import_depth:
            continue
        for name in _import_candidates(info):
            if name in modules or name in external:
                continue
            if name.split(".")[0] in _ALWAYS_EXTERNAL:
                external.add(name)
                continue
            found = None
            for root in [info.root, *roots]:
                found = _module_file(root, name)
                if found is not None:
                    break
            if found is None:
                external.add(name)
                continue
            path, is_package = found
            child = ModuleInfo(
                name=name,
                path=path.resolve(),
                tree=_parse_file(path),
                root=root,
                is_package=is_package,
            )
            _index_module(child)
            modules[name] = child
            frontier.append((child, depth + 1))
            logger.debug("loaded local module", module=name, path=str(path), depth=depth + 1)

    return entry_name, modules


def build(
    path: Union[str, Path],
    cache: Optional[ProgramCache] = None,
    config: Optional[ProjectConfig] = None,
) -> CompiledUnit:
    """Load ``path`` and its local imports into a CompiledUnit.

    Raises:
        ProgramBuildError: the file is missing, is not a file, cannot be
            decoded, or a loaded module fails to parse.
    """
    entry = Path(path).resolve()
    if cache is not None:
        cached = cache.get(entry)
        if cached is not None:
            logger.debug("program cache hit", path=str(entry))
            return cached

    if not entry.exists():
        raise ProgramBuildError(entry, "file not found")
    if not entry.is_file():
        raise ProgramBuildError(entry, "not a file")

    if config is None:
        config = discover_project_config(entry.parent)

    module_name, modules = _load_graph(entry, config)
    unit = CompiledUnit(
        path=entry,
        module_name=module_name,
        tree=modules[module_name].tree,
        modules=modules,
        symbols=SymbolTable(modules),
        config=config,
    )
    logger.debug("program built", path=str(entry), modules=len(modules))

    if cache is not None:
        return cache.put(entry, unit)
    return unit
