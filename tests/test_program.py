"""Tests for the program builder, symbol table and program cache."""

import threading

import pytest

from mcpdecl.kernel.errors import CompilerError, ProgramBuildError
from mcpdecl.kernel.program import ProgramCache, ProjectConfig, build, discover_project_config


def test_build_missing_file(tmp_path):
    with pytest.raises(ProgramBuildError) as excinfo:
        build(tmp_path / "nope.py", config=ProjectConfig())
    assert "file not found" in str(excinfo.value)
    assert isinstance(excinfo.value, CompilerError)


def test_build_directory_is_not_a_file(tmp_path):
    with pytest.raises(ProgramBuildError) as excinfo:
        build(tmp_path, config=ProjectConfig())
    assert "not a file" in str(excinfo.value)


def test_build_syntax_error_names_line(write_source):
    path = write_source("class Broken(:\n    pass\n")
    with pytest.raises(ProgramBuildError) as excinfo:
        build(path, config=ProjectConfig())
    assert "syntax error at line 1" in str(excinfo.value)
    assert excinfo.value.path == str(path.resolve())


def test_build_undecodable_file(tmp_path):
    path = tmp_path / "latin.py"
    path.write_bytes(b"name = '\xff\xfe'\n")
    with pytest.raises(ProgramBuildError) as excinfo:
        build(path, config=ProjectConfig())
    assert "UTF-8" in str(excinfo.value)


def test_local_imports_are_followed(write_source):
    write_source("from typing import TypedDict\n\nclass Point(TypedDict):\n    x: float\n", name="geometry.py")
    write_source("", name="pkg/__init__.py")
    write_source("from ..geometry import Point\nLIMIT = 3\n", name="pkg/shapes.py")
    path = write_source("from geometry import Point\nfrom pkg import shapes\nimport json\n")

    unit = build(path, config=ProjectConfig())

    assert unit.module_name == "server"
    assert {"server", "geometry", "pkg", "pkg.shapes"} <= set(unit.modules)
    assert "json" not in unit.modules
    point = unit.symbols.lookup("server", "Point")
    assert point.kind == "class"
    assert point.module == "geometry"
    shapes = unit.symbols.lookup("server", "shapes")
    assert shapes.kind == "module"
    assert unit.symbols.lookup("pkg.shapes", "LIMIT").kind == "variable"


def test_follow_imports_disabled(write_source):
    write_source("X = 1\n", name="helpers.py")
    path = write_source("from helpers import X\n")
    unit = build(path, config=ProjectConfig(follow_imports=False))
    assert set(unit.modules) == {"server"}
    assert unit.symbols.lookup("server", "X").kind == "external"


def test_mcpdecl_imports_are_external(write_source):
    path = write_source("from mcpdecl import ITool\n")
    unit = build(path, config=ProjectConfig())
    symbol = unit.symbols.lookup("server", "ITool")
    assert symbol.kind == "external"
    assert symbol.qualified_name == "mcpdecl.ITool"


def test_unknown_name_resolves_to_none(write_source):
    unit = build(write_source("x = 1\n"), config=ProjectConfig())
    assert unit.symbols.lookup("server", "missing") is None


def test_type_checking_imports_are_indexed(write_source):
    write_source("class Thing:\n    pass\n", name="things.py")
    path = write_source(
        "from typing import TYPE_CHECKING\n"
        "if TYPE_CHECKING:\n"
        "    from things import Thing\n"
    )
    unit = build(path, config=ProjectConfig())
    assert unit.symbols.lookup("server", "Thing").kind == "class"


def test_cache_returns_same_unit(write_source):
    path = write_source("x = 1\n")
    cache = ProgramCache()
    first = build(path, cache=cache, config=ProjectConfig())
    second = build(str(path), cache=cache, config=ProjectConfig())
    assert first is second
    assert path in cache
    assert len(cache) == 1


def test_cache_clear(write_source):
    a = write_source("x = 1\n", name="a.py")
    b = write_source("y = 2\n", name="b.py")
    cache = ProgramCache()
    build(a, cache=cache, config=ProjectConfig())
    build(b, cache=cache, config=ProjectConfig())
    cache.clear(a)
    assert a not in cache and b in cache
    cache.clear()
    assert len(cache) == 0


def test_cache_first_put_wins(write_source):
    path = write_source("x = 1\n")
    cache = ProgramCache()
    first = build(path, config=ProjectConfig())
    second = build(path, config=ProjectConfig())
    assert cache.put(path, first) is first
    assert cache.put(path, second) is first


def test_cache_concurrent_builds(write_source):
    path = write_source("x = 1\n")
    cache = ProgramCache()
    results = []

    def worker():
        results.append(build(path, cache=cache, config=ProjectConfig()))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 1
    stored = cache.get(path)
    assert all(unit is stored for unit in results)


def test_discover_defaults(tmp_path):
    config = discover_project_config(tmp_path)
    assert config.follow_imports is True
    assert config.source_roots == ["."]


def test_discover_pyproject_table(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        '[tool.mcpdecl]\n'
        'source_roots = ["src"]\n'
        'max_import_depth = 2\n'
        '[tool.mcpdecl.validation]\n'
        'strict = true\n',
        encoding="utf-8",
    )
    nested = tmp_path / "src" / "app"
    nested.mkdir(parents=True)
    config = discover_project_config(nested)
    assert config.source_roots == ["src"]
    assert config.max_import_depth == 2
    assert config.validation == {"strict": True}
    assert config.config_path == str((tmp_path / "pyproject.toml").resolve())


def test_dedicated_config_wins(tmp_path):
    (tmp_path / "pyproject.toml").write_text("[tool.mcpdecl]\nfollow_imports = true\n", encoding="utf-8")
    (tmp_path / "mcpdecl.toml").write_text("follow_imports = false\n", encoding="utf-8")
    config = discover_project_config(tmp_path)
    assert config.follow_imports is False
    assert config.config_path.endswith("mcpdecl.toml")


def test_invalid_config_file(tmp_path):
    (tmp_path / "mcpdecl.toml").write_text("this is = = not toml", encoding="utf-8")
    with pytest.raises(ProgramBuildError) as excinfo:
        discover_project_config(tmp_path)
    assert "invalid configuration file" in str(excinfo.value)


def test_wrongly_typed_config_value(tmp_path):
    (tmp_path / "mcpdecl.toml").write_text('max_import_depth = "deep"\n', encoding="utf-8")
    with pytest.raises(ProgramBuildError) as excinfo:
        discover_project_config(tmp_path)
    assert "invalid configuration value" in str(excinfo.value)
    assert excinfo.value.path == str((tmp_path / "mcpdecl.toml").resolve())


def test_source_roots_resolve_imports(tmp_path):
    (tmp_path / "mcpdecl.toml").write_text('source_roots = ["lib"]\n', encoding="utf-8")
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "shared.py").write_text("class Shared:\n    pass\n", encoding="utf-8")
    (tmp_path / "app").mkdir()
    entry = tmp_path / "app" / "server.py"
    entry.write_text("from shared import Shared\n", encoding="utf-8")

    unit = build(entry)
    assert "shared" in unit.modules
    assert unit.symbols.lookup(unit.module_name, "Shared").kind == "class"
