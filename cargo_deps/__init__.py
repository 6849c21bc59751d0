"""
Graph the dependencies of a Rust crate, from its Cargo.toml and Cargo.lock.

get_dep_graph() builds the classified graph, and render_dep_graph() turns it into the DOT language.
"""

import io
from pathlib import Path

from cargo_deps.config import Config
from cargo_deps.error import (
    CargoDepsError,
    CycleDetected,
    MalformedDocument,
    StructuralInconsistency,
)
from cargo_deps.graph import DepGraph
from cargo_deps.project import Project
from cargo_deps.render import render_to
from cargo_deps.util import find_manifest_file

MANIFEST_NAME = "Cargo.toml"
LOCK_NAME = "Cargo.lock"


def get_dep_graph(cfg: Config) -> DepGraph:
    """
    Build the dependency graph described by cfg, without rendering it.

    The manifest is searched for in the parent directories of cfg.manifest_path. Unless
    cfg.lock_file is set, Cargo.lock is searched for the same way, starting next to the manifest.
    """
    manifest_path = Path(cfg.manifest_path)
    if manifest_path.name != MANIFEST_NAME:
        raise CargoDepsError(
            f"The manifest-path must be a path to a {MANIFEST_NAME} file"
        )
    manifest_path = find_manifest_file(manifest_path)
    if cfg.lock_file is not None:
        lock_path = find_manifest_file(Path(cfg.lock_file))
    else:
        lock_path = find_manifest_file(manifest_path.with_name(LOCK_NAME))
    return Project(cfg).graph(manifest_path, lock_path)


def render_dep_graph(graph: DepGraph) -> str:
    """Render graph in the DOT language. The graph is consumed."""
    out = io.StringIO()
    render_to(graph, out)
    return out.getvalue()


__all__ = [
    "CargoDepsError",
    "Config",
    "CycleDetected",
    "DepGraph",
    "MalformedDocument",
    "StructuralInconsistency",
    "get_dep_graph",
    "render_dep_graph",
]
