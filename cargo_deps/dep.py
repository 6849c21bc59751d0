import enum
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set


@enum.unique
class DepKind(enum.Enum):
    """
    How a dependency is pulled into the graph.

    The declaration order is the display priority: a node that is reachable as several kinds is
    shown as the first one that applies.
    """

    REGULAR = enum.auto()
    BUILD = enum.auto()
    DEV = enum.auto()
    OPTIONAL = enum.auto()
    UNKNOWN = enum.auto()

    @staticmethod
    def strongest(kinds: Iterable["DepKind"]) -> "DepKind":
        """Pick the highest priority kind out of kinds, or UNKNOWN if kinds is empty."""
        present = set(kinds)
        for kind in DepKind:
            if kind in present:
                return kind
        return DepKind.UNKNOWN


@dataclass
class ResolvedDep:
    """A (name, version) pair from the lock file, and what we learned about it."""

    name: str
    version: str
    force_write_version: bool = False
    """Always show the version, because another node has the same name."""

    is_regular: bool = False
    is_build: bool = False
    is_dev: bool = False
    is_optional: bool = False

    children: List[int] = field(default_factory=list)
    """Indices of the nodes this node depends on, in declaration order."""
    parents: List[int] = field(default_factory=list)
    """Indices of the nodes that depend on this node."""

    def kind(self) -> DepKind:
        if self.is_regular:
            return DepKind.REGULAR
        elif self.is_build:
            return DepKind.BUILD
        elif self.is_dev:
            return DepKind.DEV
        elif self.is_optional:
            return DepKind.OPTIONAL
        else:
            return DepKind.UNKNOWN

    def set_kind(self, kind: DepKind) -> None:
        """Mark this node as reachable as kind. Flags are never cleared."""
        if kind == DepKind.REGULAR:
            self.is_regular = True
        elif kind == DepKind.BUILD:
            self.is_build = True
        elif kind == DepKind.DEV:
            self.is_dev = True
        elif kind == DepKind.OPTIONAL:
            self.is_optional = True

    def inherit_kinds(self, other: "ResolvedDep") -> None:
        """OR the kind flags of other into this node."""
        self.is_regular |= other.is_regular
        self.is_build |= other.is_build
        self.is_dev |= other.is_dev
        self.is_optional |= other.is_optional

    def label(self, include_versions: bool) -> str:
        if self.force_write_version or include_versions:
            return f"{self.name} v{self.version}"
        return self.name


@dataclass(frozen=True, order=True)
class Edge:
    """`source` depends on `target`. Both are node indices."""

    source: int
    target: int

    def __str__(self) -> str:
        return f"n{self.source} -> n{self.target}"


RootDepsMap = Dict[str, Dict[str, Set[DepKind]]]
"Root crate name -> dependency package name -> the kinds it's declared as."
