"""
Hierarchical discovery and loading of configuration documents.

Starting at a working directory, every ancestor directory may contribute one
document, `<dir>/.cargo/config` or `<dir>/.cargo/config.toml` (the
extensionless name wins when both exist). The global document in the cargo
home directory is loaded first, then the ancestors from the topmost down to
the working directory, so the innermost document is merged last and wins.

A document containing a top-level `root = true` stops the upward walk: no
directory above it contributes. Missing documents are skipped. Directories
that cannot be inspected are skipped and recorded as LoadDiagnostic entries.
A document that exists but cannot be read or parsed raises LoadError.
"""

import logging
import os
import stat
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

from cargokit.config.value import (
    ConfigValue,
    Definition,
    Kind,
    MergePolicy,
    from_python,
    merge_all,
    remove_key,
)
from cargokit.core.exceptions import ConfigValueError, LoadError

logger = logging.getLogger(__name__)

CONFIG_NAMES = ("config", "config.toml")
STOP_MARKER = "root"


@dataclass(frozen=True)
class Document:
    """
    One loaded configuration document.

    Attributes:
        path: File the document was read from
        depth: Layer position; 0 is the global document and larger values
            are closer to the working directory
        value: Document contents (a table)
        stops_ascent: Document carried `root = true`
    """

    path: Path
    depth: int
    value: ConfigValue
    stops_ascent: bool = False


@dataclass(frozen=True)
class LoadDiagnostic:
    """A recoverable problem met while discovering documents."""

    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def _find_config_file(cargo_dir: Path) -> Optional[Path]:
    """Return the document in a `.cargo` directory; OSError if it cannot be inspected."""
    for name in CONFIG_NAMES:
        candidate = cargo_dir / name
        try:
            mode = candidate.stat().st_mode
        except (FileNotFoundError, NotADirectoryError):
            continue
        if stat.S_ISREG(mode):
            return candidate
    return None


def _real_dir(path: Path) -> Path:
    return Path(os.path.realpath(path))


def _walk_ancestors(
    cwd: Path,
    root: Optional[Path],
    diagnostics: List[LoadDiagnostic],
    seen: Set[Path],
) -> Iterator[Path]:
    """Yield config files from the working directory upward (innermost first)."""
    stop_at = _real_dir(root) if root is not None else None
    for directory in [cwd, *cwd.parents]:
        cargo_dir = directory / ".cargo"
        try:
            real = _real_dir(cargo_dir)
            if real in seen:
                if cargo_dir.exists():
                    diagnostics.append(
                        LoadDiagnostic(cargo_dir, f"already loaded as {real}, skipped")
                    )
            else:
                config_file = _find_config_file(cargo_dir)
                if config_file is not None:
                    seen.add(real)
                    yield config_file
        except (OSError, RuntimeError) as e:
            logger.debug(f"Skipping {cargo_dir}: {e}")
            diagnostics.append(LoadDiagnostic(cargo_dir, f"skipped: {e}"))

        if stop_at is not None and _real_dir(directory) == stop_at:
            break


def _global_config_file(
    cargo_home: Optional[Path], diagnostics: List[LoadDiagnostic]
) -> Optional[Path]:
    if cargo_home is None:
        return None
    try:
        return _find_config_file(cargo_home)
    except OSError as e:
        logger.debug(f"Skipping global config in {cargo_home}: {e}")
        diagnostics.append(LoadDiagnostic(cargo_home, f"skipped: {e}"))
        return None


def discover_config_paths(
    cwd: Path,
    cargo_home: Optional[Path] = None,
    root: Optional[Path] = None,
) -> List[Path]:
    """
    List candidate configuration files, least specific first.

    The `root = true` marker is not honoured here since it requires reading
    the documents; use load_documents() for that.

    Args:
        cwd: Directory to start from
        cargo_home: Directory holding the global document
        root: Last directory to consider while walking upward

    Returns:
        Existing configuration files in merge order
    """
    diagnostics: List[LoadDiagnostic] = []
    seen: Set[Path] = set()
    ancestors = list(_walk_ancestors(cwd, root, diagnostics, seen))
    paths: List[Path] = []
    if cargo_home is not None and _real_dir(cargo_home) not in seen:
        global_file = _global_config_file(cargo_home, diagnostics)
        if global_file is not None:
            paths.append(global_file)
    paths.extend(reversed(ancestors))
    return paths


def read_document(path: Path, depth: int = 0) -> Document:
    """
    Read and parse one configuration document.

    Args:
        path: Document to read
        depth: Layer position recorded on the Document

    Returns:
        Loaded document with the `root` marker removed

    Raises:
        LoadError: If the file cannot be read, is not UTF-8, is not valid
            TOML, or holds unsupported value types
    """
    try:
        text = path.read_bytes().decode("utf-8")
    except OSError as e:
        raise LoadError(path, str(e)) from e
    except UnicodeDecodeError as e:
        raise LoadError(path, f"invalid UTF-8: {e}") from e

    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise LoadError(path, str(e)) from e

    try:
        value = from_python(data, Definition.path(path))
    except ConfigValueError as e:
        raise LoadError(path, str(e)) from e

    marker = value.get(STOP_MARKER)
    stops_ascent = False
    if marker is not None and marker.kind is Kind.BOOLEAN:
        stops_ascent = marker.data
        value = remove_key(value, STOP_MARKER)
    return Document(path=path, depth=depth, value=value, stops_ascent=stops_ascent)


def load_documents(
    cwd: Path,
    cargo_home: Optional[Path] = None,
    root: Optional[Path] = None,
) -> Tuple[List[Document], List[LoadDiagnostic]]:
    """
    Discover and read every configuration document for a working directory.

    Args:
        cwd: Directory to start from
        cargo_home: Directory holding the global document
        root: Last directory to consider while walking upward

    Returns:
        (documents least specific first, diagnostics)

    Raises:
        LoadError: If a discovered document cannot be read or parsed
    """
    diagnostics: List[LoadDiagnostic] = []
    seen: Set[Path] = set()
    ancestors: List[Document] = []
    for path in _walk_ancestors(cwd, root, diagnostics, seen):
        document = read_document(path)
        logger.debug(f"Loaded config document {path}")
        ancestors.append(document)
        if document.stops_ascent:
            logger.debug(f"{path} sets `{STOP_MARKER} = true`, stopping discovery")
            break

    documents: List[Document] = []
    if cargo_home is not None and _real_dir(cargo_home) not in seen:
        global_file = _global_config_file(cargo_home, diagnostics)
        if global_file is not None:
            documents.append(read_document(global_file, depth=0))
            logger.debug(f"Loaded global config document {global_file}")

    for depth, document in enumerate(reversed(ancestors), start=1):
        documents.append(
            Document(document.path, depth, document.value, document.stops_ascent)
        )
    return documents, diagnostics


def merge_documents(
    documents: List[Document], policy: MergePolicy = MergePolicy.OVERRIDE
) -> ConfigValue:
    """Merge documents in order; later documents are more specific."""
    return merge_all((d.value for d in documents), policy)


__all__ = [
    "CONFIG_NAMES",
    "STOP_MARKER",
    "Document",
    "LoadDiagnostic",
    "discover_config_paths",
    "read_document",
    "load_documents",
    "merge_documents",
]
