import logging
from collections import deque
from typing import Deque, List, Set

from cargo_deps.dep import Edge
from cargo_deps.error import CycleDetected
from cargo_deps.graph import DepGraph

_logger = logging.getLogger(__name__)


def topological_sort(graph: DepGraph) -> List[int]:
    """
    Order the nodes of graph so that every edge points from an earlier node to a later one.

    Nodes with no remaining parents are taken from a FIFO queue, which starts out in index order,
    so the same graph always sorts the same way.

    On success, graph.edges is rebuilt in that order (sources in topological order, each source's
    children in declaration order) and graph.order is set.

    Raises CycleDetected, without modifying the graph, if there's a cycle.
    """
    remaining_parents = [len(node.parents) for node in graph.nodes]
    ready: Deque[int] = deque(
        id for id, count in enumerate(remaining_parents) if count == 0
    )
    order: List[int] = []
    while len(ready) > 0:
        current = ready.popleft()
        order.append(current)
        for child in graph.nodes[current].children:
            remaining_parents[child] -= 1
            if remaining_parents[child] == 0:
                ready.append(child)
    if len(order) != len(graph.nodes):
        stuck = {id for id, count in enumerate(remaining_parents) if count > 0}
        raise CycleDetected(
            "The dependency graph contains a cycle involving: "
            + ", ".join(
                f"{graph.nodes[id].name} v{graph.nodes[id].version}"
                for id in _on_cycles(graph, stuck)
            )
        )

    graph.replace_edges(
        Edge(source, target) for source in order for target in graph.nodes[source].children
    )
    graph.order = order
    _logger.debug(f"Sorted {len(order)} nodes and {len(graph.edges)} edges")
    return order


def _on_cycles(graph: DepGraph, stuck: Set[int]) -> List[int]:
    """
    The nodes of stuck that can reach themselves, in index order.

    Everything downstream of a cycle is stuck too, but isn't part of it.
    """
    cyclic: List[int] = []
    for start in sorted(stuck):
        seen: Set[int] = set()
        pending = [c for c in graph.nodes[start].children if c in stuck]
        while len(pending) > 0 and start not in seen:
            id = pending.pop()
            if id not in seen:
                seen.add(id)
                pending.extend(c for c in graph.nodes[id].children if c in stuck)
        if start in seen:
            cyclic.append(start)
    return cyclic


def elide_transitive_edges(graph: DepGraph) -> None:
    """
    Drop every edge (u, v) where v can also be reached through another child of u.

    The graph must already be sorted. The remaining edges keep their topological order.
    """
    assert len(graph.order) == len(
        graph.nodes
    ), "the graph must be sorted before transitive edges can be elided"
    children = _transitive_reduction(graph, graph.order)
    graph.replace_edges(
        Edge(source, target) for source in graph.order for target in children[source]
    )


def _transitive_reduction(graph: DepGraph, order: List[int]) -> List[List[int]]:
    """
    Return the children of each node, leaving out children reachable through a sibling.

    Nodes are visited in reverse topological order so that every child's reachable set is already
    known. These sets are built from the reduced child lists, which reach the same nodes as the
    full ones.
    """
    reduced: List[List[int]] = [[] for _ in graph.nodes]
    reachable: List[Set[int]] = [set() for _ in graph.nodes]
    elided = 0
    for node in reversed(order):
        children = graph.nodes[node].children
        for child in children:
            if any(
                child in reachable[sibling] for sibling in children if sibling != child
            ):
                elided += 1
            else:
                reduced[node].append(child)
        for child in reduced[node]:
            reachable[node].add(child)
            reachable[node] |= reachable[child]
    _logger.debug(f"Elided {elided} transitive edges")
    return reduced
