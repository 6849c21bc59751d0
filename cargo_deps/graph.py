import itertools
import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from cargo_deps.config import Config
from cargo_deps.dep import Edge, ResolvedDep, RootDepsMap
from cargo_deps.error import StructuralInconsistency

_logger = logging.getLogger(__name__)


class DepGraph:
    """
    An index-addressed graph of resolved dependencies.

    nodes[i] is the node with index i. Indices are stable until a node is removed, at which point
    every index is renumbered in one step (see _compact). Edges are kept consistent with the
    children/parents lists of the nodes.
    """

    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg
        self.nodes: List[ResolvedDep] = []
        self.edges: List[Edge] = []
        self.roots: List[int] = []
        "Indices of the root crates, in the order they were declared."
        self.root_deps_map: RootDepsMap = {}
        self.order: List[int] = []
        "A topological order of the nodes, once the graph has been sorted."
        self._index: Dict[Tuple[str, str], int] = {}

    def get(self, id: int) -> Optional[ResolvedDep]:
        if 0 <= id < len(self.nodes):
            return self.nodes[id]
        return None

    def find(self, name: str, version: str) -> Optional[int]:
        return self._index.get((name, version))

    def find_or_add(self, name: str, version: str) -> int:
        id = self.find(name, version)
        if id is not None:
            return id
        self.nodes.append(ResolvedDep(name, version))
        id = len(self.nodes) - 1
        self._index[(name, version)] = id
        return id

    def add_child(self, parent: int, name: str, version: str) -> int:
        """
        Record that the node parent depends on (name, version), and return the child's index.

        A node depending on itself is ignored.
        """
        child = self.find_or_add(name, version)
        if child == parent:
            return child
        if child not in self.nodes[parent].children:
            self.nodes[parent].children.append(child)
            self.nodes[child].parents.append(parent)
            self.edges.append(Edge(parent, child))
        return child

    def replace_edges(self, edges: Iterable[Edge]) -> None:
        """Replace the edge set, rebuilding the adjacency lists to match it."""
        self.edges = list(edges)
        for node in self.nodes:
            node.children = []
            node.parents = []
        for edge in self.edges:
            self.nodes[edge.source].children.append(edge.target)
            self.nodes[edge.target].parents.append(edge.source)

    def sort_edges(self) -> None:
        """Sort edges by (source, target), dropping duplicates."""
        self.edges = sorted(set(self.edges))

    def remove_self_pointing(self) -> None:
        if any(edge.source == edge.target for edge in self.edges):
            self.replace_edges(
                edge for edge in self.edges if edge.source != edge.target
            )

    def remove(self, id: int) -> None:
        self.remove_many([id])

    def remove_many(self, ids: Iterable[int]) -> None:
        """Remove nodes and every edge that touches them."""
        removed = set(ids)
        if len(removed) > 0:
            self._compact(removed)

    def _compact(self, removed: Set[int]) -> None:
        """
        Drop the nodes in removed, and renumber every remaining index.

        Everything that holds an index (edges, adjacency lists, roots, order) is rewritten from a
        single old -> new mapping, so no stale index survives.
        """
        renumber: Dict[int, int] = {}
        kept: List[ResolvedDep] = []
        for old, node in enumerate(self.nodes):
            if old not in removed:
                renumber[old] = len(kept)
                kept.append(node)
        for node in kept:
            node.children = [renumber[c] for c in node.children if c in renumber]
            node.parents = [renumber[p] for p in node.parents if p in renumber]
        self.nodes = kept
        self.edges = [
            Edge(renumber[edge.source], renumber[edge.target])
            for edge in self.edges
            if edge.source in renumber and edge.target in renumber
        ]
        self.roots = [renumber[r] for r in self.roots if r in renumber]
        self.order = [renumber[i] for i in self.order if i in renumber]
        self._index = {
            (node.name, node.version): id for id, node in enumerate(self.nodes)
        }

    def root_distances(self) -> Dict[int, int]:
        """Map every node reachable from a root to its distance (in edges) from the nearest root."""
        successors: Dict[int, List[int]] = {}
        for edge in self.edges:
            successors.setdefault(edge.source, []).append(edge.target)
        distances = {root: 0 for root in self.roots}
        queue = deque(self.roots)
        while len(queue) > 0:
            current = queue.popleft()
            for child in successors.get(current, []):
                if child not in distances:
                    distances[child] = distances[current] + 1
                    queue.append(child)
        return distances

    def remove_orphans(self) -> None:
        """Remove nodes that can't be reached from a root. The roots themselves are always kept."""
        while True:
            reachable = self.root_distances()
            orphans = [id for id in range(len(self.nodes)) if id not in reachable]
            if len(orphans) == 0:
                break
            _logger.debug(f"Removing {len(orphans)} orphaned nodes")
            self.remove_many(orphans)

    def set_roots(self, roots: Sequence[Tuple[str, str]]) -> None:
        """
        Record which nodes are the root crates.

        roots are the (name, version) pairs declared by the manifests. Each one must be present in
        the lock file, at the same version.
        """
        for name, version in roots:
            id = self.find(name, version)
            if id is None:
                locked = sorted(node.version for node in self.nodes if node.name == name)
                if len(locked) > 0:
                    raise StructuralInconsistency(
                        f"The manifest declares {name} v{version}, but the lock file has "
                        + ", ".join(f"v{v}" for v in locked)
                    )
                raise StructuralInconsistency(
                    f"The root crate {name} v{version} is missing from the lock file"
                )
            if id not in self.roots:
                self.roots.append(id)

    def is_root(self, id: int) -> bool:
        return id in self.roots

    def show_version_on_duplicates(self) -> None:
        """
        Force the version to be displayed on nodes which share their name with another node.
        """
        by_name = sorted(range(len(self.nodes)), key=lambda id: self.nodes[id].name)
        for name, group in itertools.groupby(by_name, key=lambda id: self.nodes[id].name):
            ids = list(group)
            if len(ids) >= 2:
                _logger.debug(f"{name} is locked at {len(ids)} versions")
                for id in ids:
                    self.nodes[id].force_write_version = True
