import logging
from typing import Dict, TextIO

from cargo_deps.dep import DepKind
from cargo_deps.graph import DepGraph
from cargo_deps.kinds import edge_kind, remove_unclassified

_logger = logging.getLogger(__name__)

_NODE_STYLES: Dict[DepKind, str] = {
    DepKind.BUILD: ", color=purple",
    DepKind.DEV: ", color=blue",
    DepKind.OPTIONAL: ", color=red",
}

_EDGE_STYLES: Dict[DepKind, str] = {
    DepKind.BUILD: " [color=purple]",
    DepKind.DEV: " [color=blue, style=dashed]",
    DepKind.OPTIONAL: " [color=red, style=dotted]",
}


def _quote(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def prune(graph: DepGraph) -> None:
    """
    Remove everything that shouldn't be rendered.

    This drops self-pointing edges, orphans (unless cfg.include_orphans), nodes further than
    cfg.depth from a root, and nodes not named in cfg.filter. Root crates are never removed.
    """
    cfg = graph.cfg
    graph.sort_edges()
    graph.remove_self_pointing()
    if not cfg.include_orphans:
        remove_unclassified(graph)
    if cfg.depth is not None:
        depth = cfg.depth
        distances = graph.root_distances()
        graph.remove_many(
            [
                id
                for id in range(len(graph.nodes))
                if distances.get(id, depth + 1) > depth
            ]
        )
    if cfg.filter is not None:
        allowed = set(cfg.filter)
        graph.remove_many(
            [
                id
                for id, node in enumerate(graph.nodes)
                if node.name not in allowed and not graph.is_root(id)
            ]
        )
    _logger.debug(f"Rendering {len(graph.nodes)} nodes and {len(graph.edges)} edges")


def _node_line(graph: DepGraph, id: int) -> str:
    node = graph.nodes[id]
    shape = ", shape=box" if graph.is_root(id) else ""
    style = _NODE_STYLES.get(node.kind(), "")
    label = _quote(node.label(graph.cfg.include_versions))
    return f"n{id} [label={label}{shape}{style}];\n"


def render_to(graph: DepGraph, output: TextIO) -> None:
    """
    Write graph to output in the DOT language.

    The graph is pruned first, so it shouldn't be used afterwards.
    """
    prune(graph)
    cfg = graph.cfg
    clustered = set(cfg.subgraph or [])
    output.write("digraph dependencies {\n")
    for id, node in enumerate(graph.nodes):
        if node.name not in clustered:
            output.write("\t" + _node_line(graph, id))
    output.write("\n")

    cluster = [id for id, node in enumerate(graph.nodes) if node.name in clustered]
    if len(cluster) > 0:
        output.write("\tsubgraph cluster_subgraph {\n")
        if cfg.subgraph_name is not None:
            output.write(f"\t\tlabel={_quote(cfg.subgraph_name)};\n")
        output.write("\t\tcolor=brown;\n")
        output.write("\t\tfontcolor=brown;\n")
        output.write("\t\tstyle=dashed;\n")
        output.write("\n")
        for id in cluster:
            output.write("\t\t" + _node_line(graph, id))
        output.write("\t}\n\n")

    for edge in graph.edges:
        output.write(f"\t{edge}{_EDGE_STYLES.get(edge_kind(graph, edge), '')};\n")
    output.write("}\n")
