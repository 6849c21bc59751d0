import logging
from pathlib import Path
from typing import List, Optional, Tuple

import click
import rich.console
from rich.logging import RichHandler

from cargo_deps import get_dep_graph, render_dep_graph
from cargo_deps.config import Config
from cargo_deps.error import CargoDepsError
from cargo_deps.render import render_to


def _names(
    ctx: click.Context, param: click.Parameter, values: Tuple[str, ...]
) -> Optional[List[str]]:
    """Flatten repeated and comma-separated names. No names at all means no list."""
    if len(values) == 0:
        return None
    return [name.strip() for value in values for name in value.split(",") if name.strip()]


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "subcommand", required=False, type=click.Choice(["deps"]), metavar="[deps]"
)
@click.option(
    "--manifest-path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=Path("Cargo.toml"),
    show_default=True,
    help="Path to the Cargo.toml to graph. Parent directories are searched.",
)
@click.option(
    "--lock-file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to Cargo.lock. By default it's searched for next to the manifest.",
)
@click.option(
    "--dot-file",
    type=click.Path(path_type=Path, dir_okay=False, writable=True),
    default=None,
    help="Output file. (Default: stdout)",
)
@click.option(
    "-I",
    "--include-versions",
    is_flag=True,
    help="Include the dependency version on every node",
)
@click.option(
    "--include-orphans",
    is_flag=True,
    help="Don't remove dependencies that no enabled kind reaches",
)
@click.option(
    "--all-deps", is_flag=True, help="Include build, dev and optional dependencies"
)
@click.option("--no-regular-deps", is_flag=True, help="Exclude regular dependencies")
@click.option("--build-deps", is_flag=True, help="Include build dependencies")
@click.option("--dev-deps", is_flag=True, help="Include dev dependencies")
@click.option("--optional-deps", is_flag=True, help="Include optional dependencies")
@click.option(
    "--no-transitive-deps",
    is_flag=True,
    help="Leave out edges to dependencies that are reachable through another path",
)
@click.option(
    "--filter",
    "filter_",
    multiple=True,
    callback=_names,
    metavar="DEPS",
    help="Only display these dependencies (repeatable, or comma-separated)",
)
@click.option(
    "--subgraph",
    multiple=True,
    callback=_names,
    metavar="DEPS",
    help="Group these dependencies in a subgraph (repeatable, or comma-separated)",
)
@click.option("--subgraph-name", default=None, help="Label for the subgraph")
@click.option(
    "--depth",
    type=click.IntRange(min=0),
    default=None,
    help="Maximum distance from the root crate(s) of a displayed dependency",
)
@click.option("--no-color", is_flag=True, help="Don't color error messages")
@click.option("-v", "--verbose", is_flag=True, help="Log what's going on to stderr")
def cargo_deps(
    subcommand: Optional[str],
    manifest_path: Path,
    lock_file: Optional[Path],
    dot_file: Optional[Path],
    include_versions: bool,
    include_orphans: bool,
    all_deps: bool,
    no_regular_deps: bool,
    build_deps: bool,
    dev_deps: bool,
    optional_deps: bool,
    no_transitive_deps: bool,
    filter_: Optional[List[str]],
    subgraph: Optional[List[str]],
    subgraph_name: Optional[str],
    depth: Optional[int],
    no_color: bool,
    verbose: bool,
) -> None:
    """
    Graph the dependencies of a Rust crate in the DOT language.

    Run it as `cargo deps` in a crate or workspace, and pipe the output to graphviz, for example
    `cargo deps | dot -Tpng > graph.png`.
    """
    logging.basicConfig(
        level="DEBUG" if verbose else "WARNING",
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(console=rich.console.Console(stderr=True, no_color=no_color))
        ],
    )
    if subgraph_name is not None and subgraph is None:
        raise click.UsageError("--subgraph-name requires --subgraph")
    cfg = Config(
        manifest_path=manifest_path,
        lock_file=lock_file,
        dot_file=dot_file,
        include_versions=include_versions,
        include_orphans=include_orphans,
        regular_deps=not no_regular_deps,
        build_deps=all_deps or build_deps,
        dev_deps=all_deps or dev_deps,
        optional_deps=all_deps or optional_deps,
        transitive_deps=not no_transitive_deps,
        filter=filter_,
        subgraph=subgraph,
        subgraph_name=subgraph_name,
        depth=depth,
    )
    try:
        graph = get_dep_graph(cfg)
        if cfg.dot_file is None:
            click.echo(render_dep_graph(graph), nl=False)
        else:
            try:
                with cfg.dot_file.open("w", encoding="utf-8") as f:
                    render_to(graph, f)
            except OSError as e:
                raise CargoDepsError(f"Could not write {cfg.dot_file}: {e}") from e
    except CargoDepsError as e:
        e.exit(no_color)


def main() -> None:
    cargo_deps()


if __name__ == "__main__":
    main()
