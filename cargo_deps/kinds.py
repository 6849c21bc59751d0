"""
Working out why each dependency is in the graph.

The root crates' manifests say how each direct dependency is declared. Those kinds are then
pushed down the (topologically sorted) edges: a dependency of a build dependency is also a build
dependency, and so on. A node can end up with several kinds; DepKind's priority picks the one
that's displayed.
"""

from typing import Set

from cargo_deps.config import Config
from cargo_deps.dep import DepKind, Edge
from cargo_deps.error import StructuralInconsistency
from cargo_deps.graph import DepGraph


def enabled_kinds(cfg: Config) -> Set[DepKind]:
    """The kinds of dependencies the user asked to see."""
    enabled: Set[DepKind] = set()
    if cfg.regular_deps:
        enabled.add(DepKind.REGULAR)
    if cfg.build_deps:
        enabled.add(DepKind.BUILD)
    if cfg.dev_deps:
        enabled.add(DepKind.DEV)
    if cfg.optional_deps:
        enabled.add(DepKind.OPTIONAL)
    return enabled


def declared_kinds(graph: DepGraph, edge: Edge) -> Set[DepKind]:
    """
    How the root crate at edge.source declares the dependency at edge.target.

    The lock file says the root depends on the target, so the root's manifest has to declare it.
    If it doesn't, the two documents disagree and we can't classify the dependency.
    """
    root = graph.nodes[edge.source]
    dep = graph.nodes[edge.target]
    declared = graph.root_deps_map.get(root.name, {})
    if dep.name not in declared:
        raise StructuralInconsistency(
            f"The lock file says {root.name} depends on {dep.name}, "
            + f"but {dep.name} isn't declared in the manifest of {root.name}"
        )
    return declared[dep.name]


def set_resolved_kind(graph: DepGraph) -> None:
    """
    Set the kind flags of every node, based on how the root crates declare their dependencies.

    The graph must already be topologically sorted: edges are visited once, in order, so a node's
    flags are final before they're copied to its children. Flags are only ever set, never cleared.
    """
    assert len(graph.order) == len(
        graph.nodes
    ), "the graph must be sorted before kinds can be resolved"
    enabled = enabled_kinds(graph.cfg)
    roots = set(graph.roots)
    for root in roots:
        graph.nodes[root].is_regular = True
    for edge in graph.edges:
        target = graph.nodes[edge.target]
        if edge.source in roots:
            for kind in declared_kinds(graph, edge) & enabled:
                target.set_kind(kind)
        else:
            target.inherit_kinds(graph.nodes[edge.source])


def edge_kind(graph: DepGraph, edge: Edge) -> DepKind:
    """
    The kind an edge is drawn as.

    An edge from a root crate uses the kind the root declares, even if the target is also reachable
    some other way. Any other edge is drawn as the kind of its source, since that's why the target
    is pulled in.
    """
    if graph.is_root(edge.source):
        return DepKind.strongest(declared_kinds(graph, edge) & enabled_kinds(graph.cfg))
    return graph.nodes[edge.source].kind()


def remove_unclassified(graph: DepGraph) -> None:
    """
    Remove what's only in the graph because of disabled kinds, and whatever that leaves orphaned.

    That's edges from a root crate whose declared kinds are all disabled, and every non-root node
    whose kind is still Unknown after set_resolved_kind.
    """
    graph.replace_edges(
        edge
        for edge in graph.edges
        if not (graph.is_root(edge.source) and edge_kind(graph, edge) == DepKind.UNKNOWN)
    )
    graph.remove_many(
        [
            id
            for id, node in enumerate(graph.nodes)
            if node.kind() == DepKind.UNKNOWN and not graph.is_root(id)
        ]
    )
    graph.remove_orphans()
