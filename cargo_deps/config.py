from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass
class Config:
    """Options controlling which dependencies are graphed, and how."""

    manifest_path: Path = Path("Cargo.toml")
    """The Cargo.toml to graph. Parent directories are searched if it's not found."""
    lock_file: Optional[Path] = None
    """The Cargo.lock to use. If None, it's searched for starting next to the manifest."""
    dot_file: Optional[Path] = None
    """Where the command line writes its output. If None, stdout is used."""

    include_versions: bool = False
    """Show the version on every node, not just on ambiguous ones."""
    include_orphans: bool = False
    """Keep nodes which aren't reachable as any of the enabled kinds."""

    regular_deps: bool = True
    build_deps: bool = False
    dev_deps: bool = False
    optional_deps: bool = False
    transitive_deps: bool = True
    """If False, edges which are implied by a longer path are left out."""

    filter: Optional[List[str]] = None
    """Only show these dependencies (plus the root crates)."""
    subgraph: Optional[List[str]] = None
    """Dependencies to group together in a cluster."""
    subgraph_name: Optional[str] = None
    depth: Optional[int] = None
    """Maximum number of edges between a root crate and any shown node."""
