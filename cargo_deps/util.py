from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import toml

from cargo_deps.error import CargoDepsError, MalformedDocument


def toml_from_file(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CargoDepsError(f"Could not read {path}: {e}") from e
    try:
        return toml.loads(text)
    except toml.TomlDecodeError as e:
        raise MalformedDocument(f"Could not parse {path} as TOML: {e}") from e


def find_manifest_file(file: Path) -> Path:
    """
    Find file, looking in its directory and then in each parent directory.

    Relative paths are resolved against the current directory.
    """
    pwd = Path.cwd()
    manifest = pwd / file
    directory = manifest.parent
    while True:
        candidate = directory / manifest.name
        if candidate.is_file():
            return candidate
        if directory.parent == directory:
            raise CargoDepsError(
                f"Could not find `{file}` in `{pwd}` or any parent directory"
            )
        directory = directory.parent


def find_workspace_manifest(crate_dir: Path) -> Optional[Tuple[Path, Dict[str, Any]]]:
    """
    Find the workspace a crate belongs to, by looking for a Cargo.toml with a [workspace] table in
    the parent directories of crate_dir.
    """
    for directory in crate_dir.resolve().parents:
        candidate = directory / "Cargo.toml"
        if candidate.is_file():
            doc = toml_from_file(candidate)
            if isinstance(doc.get("workspace"), dict):
                return candidate, doc
    return None
