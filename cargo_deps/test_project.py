import os
from pathlib import Path

import pytest

from cargo_deps import get_dep_graph, render_dep_graph
from cargo_deps.config import Config
from cargo_deps.dep import DepKind
from cargo_deps.error import (
    CargoDepsError,
    CycleDetected,
    MalformedDocument,
    StructuralInconsistency,
)
from cargo_deps.graph import DepGraph
from cargo_deps.project import (
    RootCrate,
    build_graph,
    declared_dependencies,
    populate_graph,
    root_crate,
)
from cargo_deps.util import find_manifest_file

_MANIFEST = """
[package]
name = "app"
version = "1.0.0"

[dependencies]
serde = "1.0"
rand = { version = "0.8", optional = true }

[build-dependencies]
cc = "1.0"

[dev-dependencies]
tempfile = "3"
"""

_LOCK = """
version = 3

[[package]]
name = "app"
version = "1.0.0"
dependencies = [
 "cc",
 "rand",
 "serde",
 "tempfile",
]

[[package]]
name = "cc"
version = "1.0.83"

[[package]]
name = "rand"
version = "0.8.5"

[[package]]
name = "serde"
version = "1.0.193"

[[package]]
name = "tempfile"
version = "3.8.1"
dependencies = [
 "rand",
]
"""


def test_declared_dependencies() -> None:
    manifest = {
        "dependencies": {
            "serde": "1.0",
            "json": {"package": "serde_json", "version": "1.0"},
            "rand": {"version": "0.8", "optional": True},
        },
        "build-dependencies": {"cc": "1.0"},
        "dev-dependencies": {"cc": "1.0", "tempfile": "3"},
        "target": {"cfg(unix)": {"dependencies": {"libc": "0.2"}}},
    }
    assert declared_dependencies(manifest) == {
        "serde": {DepKind.REGULAR},
        "serde_json": {DepKind.REGULAR},
        "rand": {DepKind.OPTIONAL},
        "cc": {DepKind.BUILD, DepKind.DEV},
        "tempfile": {DepKind.DEV},
        "libc": {DepKind.REGULAR},
    }


def test_workspace_dependency_renames() -> None:
    workspace = {"dependencies": {"json": {"package": "serde_json", "version": "1"}}}
    manifest = {"dependencies": {"json": {"workspace": True, "optional": True}}}
    assert declared_dependencies(manifest, workspace) == {
        "serde_json": {DepKind.OPTIONAL}
    }


def test_root_crate_versions() -> None:
    assert root_crate({"package": {"name": "a"}}).version == "0.0.0"
    inherited = root_crate(
        {"package": {"name": "a", "version": {"workspace": True}}},
        {"package": {"version": "2.1.0"}},
    )
    assert inherited.version == "2.1.0"
    with pytest.raises(MalformedDocument):
        root_crate({"package": {"name": "a", "version": {"workspace": True}}})
    with pytest.raises(MalformedDocument, match="name"):
        root_crate({"package": {"version": "1.0.0"}})
    with pytest.raises(MalformedDocument, match="package"):
        root_crate({"dependencies": {}})


def test_populate_graph_reference_formats() -> None:
    graph = DepGraph(Config())
    populate_graph(
        graph,
        {
            "root": {"name": "app", "version": "1.0.0", "dependencies": ["log"]},
            "package": [
                {
                    "name": "log",
                    "version": "0.4.20",
                    "dependencies": [
                        "cfg-if 1.0.0 (registry+https://github.com/rust-lang/crates.io-index)",
                        "value-bag 1.4.0",
                    ],
                },
                {"name": "cfg-if", "version": "1.0.0"},
                {"name": "value-bag", "version": "1.4.0"},
            ],
        },
    )
    assert [(node.name, node.version) for node in graph.nodes] == [
        ("app", "1.0.0"),
        ("log", "0.4.20"),
        ("cfg-if", "1.0.0"),
        ("value-bag", "1.4.0"),
    ]
    assert graph.nodes[0].children == [1]
    assert graph.nodes[1].children == [2, 3]


def test_ambiguous_bare_reference() -> None:
    lock = {
        "package": [
            {"name": "app", "version": "1.0.0", "dependencies": ["rand"]},
            {"name": "rand", "version": "0.7.3"},
            {"name": "rand", "version": "0.8.5"},
        ]
    }
    with pytest.raises(MalformedDocument, match="rand"):
        populate_graph(DepGraph(Config()), lock)


def test_lock_record_without_version() -> None:
    with pytest.raises(MalformedDocument, match="version"):
        populate_graph(DepGraph(Config()), {"package": [{"name": "app"}]})


def test_build_graph_errors() -> None:
    root = RootCrate(name="app", version="1.0.0", declared={"a": {DepKind.REGULAR}})
    with pytest.raises(StructuralInconsistency):
        build_graph(Config(), [root], {"package": [{"name": "other", "version": "1"}]})
    with pytest.raises(StructuralInconsistency):
        build_graph(Config(), [root], {"package": [{"name": "app", "version": "2.0.0"}]})
    undeclared = {
        "package": [
            {"name": "app", "version": "1.0.0", "dependencies": ["b 1.0.0"]},
            {"name": "b", "version": "1.0.0"},
        ]
    }
    with pytest.raises(StructuralInconsistency, match="b isn't declared"):
        build_graph(Config(), [root], undeclared)
    cyclic = {
        "package": [
            {"name": "app", "version": "1.0.0", "dependencies": ["a 1.0.0"]},
            {"name": "a", "version": "1.0.0", "dependencies": ["b 1.0.0"]},
            {"name": "b", "version": "1.0.0", "dependencies": ["a 1.0.0"]},
        ]
    }
    with pytest.raises(CycleDetected):
        build_graph(Config(), [root], cyclic)


def test_get_dep_graph_from_files(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(_MANIFEST)
    (tmp_path / "Cargo.lock").write_text(_LOCK)
    cfg = Config(manifest_path=tmp_path / "Cargo.toml", build_deps=True)
    graph = get_dep_graph(cfg)
    kinds = {node.name: node.kind() for node in graph.nodes}
    assert kinds == {
        "app": DepKind.REGULAR,
        "cc": DepKind.BUILD,
        "rand": DepKind.UNKNOWN,
        "serde": DepKind.REGULAR,
        "tempfile": DepKind.UNKNOWN,
    }
    assert render_dep_graph(graph) == (
        "digraph dependencies {\n"
        '\tn0 [label="app", shape=box];\n'
        '\tn1 [label="cc", color=purple];\n'
        '\tn2 [label="serde"];\n'
        "\n"
        "\tn0 -> n1 [color=purple];\n"
        "\tn0 -> n2;\n"
        "}\n"
    )


def test_all_kinds_from_files(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(_MANIFEST)
    (tmp_path / "Cargo.lock").write_text(_LOCK)
    cfg = Config(
        manifest_path=tmp_path / "Cargo.toml",
        build_deps=True,
        dev_deps=True,
        optional_deps=True,
    )
    graph = get_dep_graph(cfg)
    # rand is an optional dependency of app, and a regular dependency of the dev dependency
    # tempfile.
    rand = graph.nodes[graph.find("rand", "0.8.5") or 0]
    assert rand.is_optional and rand.is_dev
    assert rand.kind() == DepKind.DEV


def test_manifest_is_found_in_parent_directories(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(_MANIFEST)
    (tmp_path / "Cargo.lock").write_text(_LOCK)
    nested = tmp_path / "src" / "bin"
    nested.mkdir(parents=True)
    assert find_manifest_file(nested / "Cargo.toml") == tmp_path / "Cargo.toml"
    graph = get_dep_graph(Config(manifest_path=nested / "Cargo.toml"))
    assert graph.nodes[graph.roots[0]].name == "app"


def test_relative_manifest_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "Cargo.toml").write_text(_MANIFEST)
    (tmp_path / "Cargo.lock").write_text(_LOCK)
    monkeypatch.chdir(tmp_path)
    graph = get_dep_graph(Config())
    assert graph.nodes[graph.roots[0]].name == "app"


def test_explicit_lock_file(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(_MANIFEST)
    (tmp_path / "elsewhere.lock").write_text(_LOCK)
    cfg = Config(
        manifest_path=tmp_path / "Cargo.toml", lock_file=tmp_path / "elsewhere.lock"
    )
    assert len(get_dep_graph(cfg).nodes) == 5


def test_missing_lock_file(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(_MANIFEST)
    lock = tmp_path / "Cargo.lock"
    if any((parent / "Cargo.lock").is_file() for parent in tmp_path.parents):
        pytest.skip("a parent of the temporary directory has a Cargo.lock")
    assert not lock.exists()
    with pytest.raises(CargoDepsError, match="Could not find"):
        get_dep_graph(Config(manifest_path=tmp_path / "Cargo.toml"))


def test_manifest_must_be_cargo_toml(tmp_path: Path) -> None:
    with pytest.raises(CargoDepsError, match="Cargo.toml"):
        get_dep_graph(Config(manifest_path=tmp_path / "Manifest.toml"))


def test_invalid_toml(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text("[package\nname = ")
    (tmp_path / "Cargo.lock").write_text(_LOCK)
    with pytest.raises(MalformedDocument, match="TOML"):
        get_dep_graph(Config(manifest_path=tmp_path / "Cargo.toml"))


def test_workspace_members_are_roots(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(
        """
[workspace]
members = ["crates/*"]
exclude = ["crates/scratch"]

[workspace.package]
version = "0.3.0"
"""
    )
    for name, deps in [("a", 'b = { path = "../b" }'), ("b", 'itoa = "1"')]:
        crate = tmp_path / "crates" / name
        crate.mkdir(parents=True)
        (crate / "Cargo.toml").write_text(
            f'[package]\nname = "{name}"\nversion.workspace = true\n\n'
            + f"[dependencies]\n{deps}\n"
        )
    scratch = tmp_path / "crates" / "scratch"
    scratch.mkdir()
    (scratch / "Cargo.toml").write_text('[package]\nname = "scratch"\n')
    (tmp_path / "crates" / "not-a-crate").mkdir()
    (tmp_path / "Cargo.lock").write_text(
        """
version = 3

[[package]]
name = "a"
version = "0.3.0"
dependencies = ["b"]

[[package]]
name = "b"
version = "0.3.0"
dependencies = ["itoa"]

[[package]]
name = "itoa"
version = "1.0.9"
"""
    )
    graph = get_dep_graph(Config(manifest_path=tmp_path / "Cargo.toml"))
    assert sorted(graph.root_deps_map.keys()) == ["a", "b"]
    assert render_dep_graph(graph) == (
        "digraph dependencies {\n"
        '\tn0 [label="a", shape=box];\n'
        '\tn1 [label="b", shape=box];\n'
        '\tn2 [label="itoa"];\n'
        "\n"
        "\tn0 -> n1;\n"
        "\tn1 -> n2;\n"
        "}\n"
    )


def test_member_inherits_version_from_parent_workspace(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(
        '[workspace]\nmembers = ["app"]\n\n[workspace.package]\nversion = "4.0.0"\n'
    )
    crate = tmp_path / "app"
    crate.mkdir()
    (crate / "Cargo.toml").write_text('[package]\nname = "app"\nversion.workspace = true\n')
    (tmp_path / "Cargo.lock").write_text(
        '[[package]]\nname = "app"\nversion = "4.0.0"\n'
    )
    graph = get_dep_graph(Config(manifest_path=crate / "Cargo.toml"))
    assert [(node.name, node.version) for node in graph.nodes] == [("app", "4.0.0")]
    assert os.path.samefile(
        find_manifest_file(crate / "Cargo.lock"), tmp_path / "Cargo.lock"
    )
