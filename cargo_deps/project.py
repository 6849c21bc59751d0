import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from cargo_deps.config import Config
from cargo_deps.dep import DepKind
from cargo_deps.error import MalformedDocument
from cargo_deps.graph import DepGraph
from cargo_deps.kinds import remove_unclassified, set_resolved_kind
from cargo_deps.toposort import elide_transitive_edges, topological_sort
from cargo_deps.util import find_workspace_manifest, toml_from_file

_logger = logging.getLogger(__name__)

# Cargo accepts the underscore spellings too.
_SECTIONS: List[Tuple[str, DepKind]] = [
    ("dependencies", DepKind.REGULAR),
    ("build-dependencies", DepKind.BUILD),
    ("build_dependencies", DepKind.BUILD),
    ("dev-dependencies", DepKind.DEV),
    ("dev_dependencies", DepKind.DEV),
]

_DEFAULT_VERSION = "0.0.0"


@dataclass(frozen=True)
class RootCrate:
    """A crate whose manifest is being graphed."""

    name: str
    version: str
    declared: Dict[str, Set[DepKind]]
    """Package name -> the kinds it's declared as in this crate's manifest."""


def _string_field(table: Mapping[str, Any], key: str, where: str) -> str:
    value = table.get(key)
    if value is None:
        raise MalformedDocument(f"No '{key}' field in {where}")
    if not isinstance(value, str):
        raise MalformedDocument(f"The '{key}' field of {where} is not a string")
    return value


def _package_version(
    package: Mapping[str, Any], workspace: Optional[Mapping[str, Any]], where: str
) -> str:
    version = package.get("version")
    if version is None:
        return _DEFAULT_VERSION
    if isinstance(version, dict) and version.get("workspace") == True:
        if workspace is None:
            raise MalformedDocument(
                f"{where} inherits its version, but isn't part of a workspace"
            )
        return _string_field(
            workspace.get("package", dict()), "version", "[workspace.package]"
        )
    if not isinstance(version, str):
        raise MalformedDocument(f"The 'version' field of {where} is not a string")
    return version


def _dependency_package(
    key: str, spec: Any, workspace: Optional[Mapping[str, Any]]
) -> Tuple[str, bool]:
    """
    Return the real package name of a dependency table entry, and whether it's optional.

    `foo = { package = "bar" }` depends on the package bar. With `foo.workspace = true`, the
    rename (if any) lives in [workspace.dependencies].
    """
    if not isinstance(spec, dict):
        return key, False
    package = spec.get("package")
    if package is None and spec.get("workspace") == True and workspace is not None:
        inherited = workspace.get("dependencies", dict()).get(key)
        if isinstance(inherited, dict):
            package = inherited.get("package")
    if package is not None and not isinstance(package, str):
        raise MalformedDocument(f"The 'package' field of dependency {key} is not a string")
    return (package or key), spec.get("optional") == True


def declared_dependencies(
    manifest: Mapping[str, Any], workspace: Optional[Mapping[str, Any]] = None
) -> Dict[str, Set[DepKind]]:
    """
    Collect the dependencies declared by a manifest, including target-specific ones.

    A missing section just means there are no dependencies of that kind.
    """
    declared: Dict[str, Set[DepKind]] = defaultdict(set)
    tables = [manifest] + [
        target
        for target in manifest.get("target", dict()).values()
        if isinstance(target, dict)
    ]
    for table in tables:
        for section, kind in _SECTIONS:
            for key, spec in table.get(section, dict()).items():
                name, optional = _dependency_package(key, spec, workspace)
                declared[name].add(DepKind.OPTIONAL if optional else kind)
    return dict(declared)


def root_crate(
    manifest: Mapping[str, Any],
    workspace: Optional[Mapping[str, Any]] = None,
    where: str = "Cargo.toml",
) -> RootCrate:
    package = manifest.get("package")
    if not isinstance(package, dict):
        raise MalformedDocument(f"No 'package' table found in {where}")
    name = _string_field(package, "name", f"[package] of {where}")
    return RootCrate(
        name=name,
        version=_package_version(package, workspace, f"[package] of {where}"),
        declared=declared_dependencies(manifest, workspace),
    )


def workspace_members(workspace_dir: Path, workspace: Mapping[str, Any]) -> List[Path]:
    """Return the directories of the workspace's member crates."""
    excluded = set(
        (workspace_dir / pattern).resolve()
        for pattern in workspace.get("exclude", [])
    )
    members: List[Path] = []
    for member in itertools.chain.from_iterable(
        sorted(workspace_dir.glob(pattern)) for pattern in workspace.get("members", [])
    ):
        member = member.resolve()
        if member in excluded or member in members:
            continue
        if (member / "Cargo.toml").is_file():
            members.append(member)
    return members


def populate_graph(graph: DepGraph, lock: Mapping[str, Any]) -> None:
    """
    Add a node for every package in a lock document, and an edge for each of its dependencies.

    Dependencies are written as "name", "name version" or "name version (source)". A bare name
    refers to the only locked package with that name.
    """
    records: List[Any] = []
    if "root" in lock:
        records.append(lock["root"])
    packages = lock.get("package", [])
    if not isinstance(packages, list):
        raise MalformedDocument("The 'package' entry of the lock file is not an array")
    records.extend(packages)

    identities: List[Tuple[str, str]] = []
    locked_versions: Dict[str, List[str]] = defaultdict(list)
    for record in records:
        if not isinstance(record, dict):
            raise MalformedDocument("A [[package]] entry of the lock file is not a table")
        name = _string_field(record, "name", "a [[package]] entry of the lock file")
        version = _string_field(record, "version", f"the lock file entry for {name}")
        identities.append((name, version))
        locked_versions[name].append(version)

    for record, (name, version) in zip(records, identities):
        id = graph.find_or_add(name, version)
        for reference in record.get("dependencies", []):
            parts = reference.split() if isinstance(reference, str) else []
            if len(parts) >= 2:
                graph.add_child(id, parts[0], parts[1])
            elif len(parts) == 1 and len(locked_versions.get(parts[0], [])) == 1:
                graph.add_child(id, parts[0], locked_versions[parts[0]][0])
            else:
                raise MalformedDocument(
                    f"Could not resolve the dependency {reference!r} of {name} v{version}"
                )
    _logger.debug(
        f"Read {len(graph.nodes)} packages and {len(graph.edges)} dependencies"
    )


def build_graph(
    cfg: Config, roots: List[RootCrate], lock: Mapping[str, Any]
) -> DepGraph:
    """
    Build the classified dependency graph of roots from a parsed lock document.

    The passes run in a fixed order: populate, find the roots, sort (which also detects cycles),
    resolve kinds, drop nodes of disabled kinds, elide transitive edges, then mark ambiguous
    versions. Kinds are resolved over every edge, and duplicates are only looked for among the
    nodes that are left.
    """
    graph = DepGraph(cfg)
    for root in roots:
        graph.root_deps_map[root.name] = root.declared
    populate_graph(graph, lock)
    graph.set_roots([(root.name, root.version) for root in roots])
    topological_sort(graph)
    set_resolved_kind(graph)
    if not cfg.include_orphans:
        remove_unclassified(graph)
    if not cfg.transitive_deps:
        elide_transitive_edges(graph)
    if not cfg.include_versions:
        graph.show_version_on_duplicates()
    return graph


class Project:
    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg

    def root_crates(self, manifest_path: Path) -> List[RootCrate]:
        """
        Parse the root crates out of a manifest.

        A [package] manifest is a root crate. A [workspace] manifest makes each of its members a
        root crate too.
        """
        manifest = toml_from_file(manifest_path)
        workspace = manifest.get("workspace")
        if not isinstance(workspace, dict):
            workspace = None
            found = find_workspace_manifest(manifest_path.parent)
            if found is not None:
                workspace = found[1]["workspace"]
        roots: List[RootCrate] = []
        if "package" in manifest:
            roots.append(root_crate(manifest, workspace, str(manifest_path)))
        if "workspace" in manifest and isinstance(workspace, dict):
            for member in workspace_members(manifest_path.parent, workspace):
                member_path = member / "Cargo.toml"
                crate = root_crate(toml_from_file(member_path), workspace, str(member_path))
                if all((r.name, r.version) != (crate.name, crate.version) for r in roots):
                    roots.append(crate)
        if len(roots) == 0:
            raise MalformedDocument(
                f"No 'package' or 'workspace' table found in {manifest_path}"
            )
        _logger.debug(f"Root crates: {', '.join(root.name for root in roots)}")
        return roots

    def graph(self, manifest_path: Path, lock_path: Path) -> DepGraph:
        roots = self.root_crates(manifest_path)
        return build_graph(self.cfg, roots, toml_from_file(lock_path))
