"""
Compilation-unit loading for C# source trees.

This module discovers ``.cs`` files, parses them with tree-sitter and hands
each one over as an immutable ``CompilationUnit`` snapshot.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from source_loading.config import CSHARP_EXTENSIONS, SKIPPED_DIRECTORIES
from source_loading.parser import count_error_nodes, parse_bytes, parse_file
from source_loading.scanner import CallSiteScanner
from usage_extraction.candidates import CompilationUnit

logger = logging.getLogger(__name__)


@dataclass
class LoadStats:
    """Statistics for a loading pass."""

    files_loaded: int = 0
    files_failed: int = 0
    candidates_found: int = 0
    parse_errors: int = 0
    failed_files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        """Convert stats to dictionary."""
        return {
            "files_loaded": self.files_loaded,
            "files_failed": self.files_failed,
            "candidates_found": self.candidates_found,
            "parse_errors": self.parse_errors,
            "failed_files": list(self.failed_files),
        }

    def __str__(self) -> str:
        return (
            f"LoadStats(loaded={self.files_loaded}, failed={self.files_failed}, "
            f"candidates={self.candidates_found}, parse_errors={self.parse_errors})"
        )


def discover_csharp_files(directory: str) -> List[str]:
    """Recursively discover all C# source files in a directory.

    Args:
        directory: Root directory to search.

    Returns:
        Sorted list of absolute paths to ``.cs`` files.

    Example:
        >>> files = discover_csharp_files("/path/to/solution")
        >>> len(files)
        42
    """
    csharp_files = []
    directory = os.path.abspath(directory)

    logger.info("Discovering C# files in %s", directory)

    for root, dirs, files in os.walk(directory):
        # Skip hidden directories and build output
        dirs[:] = [d for d in dirs if not d.startswith(".") and d not in SKIPPED_DIRECTORIES]

        for file in files:
            if os.path.splitext(file)[1] in CSHARP_EXTENSIONS:
                csharp_files.append(os.path.join(root, file))

    logger.info("Found %d C# files", len(csharp_files))
    return sorted(csharp_files)


def _relative_path(file_path: str, root: Optional[str]) -> str:
    if root is None:
        return os.path.basename(file_path)
    try:
        return os.path.relpath(file_path, root).replace(os.sep, "/")
    except ValueError:
        logger.warning("Cannot compute relative path for %s from %s. Using absolute path.", file_path, root)
        return file_path


def load_source(source: str, path: str = "Snippet.cs") -> CompilationUnit:
    """Build a compilation unit from in-memory C# source text."""
    source_bytes = source.encode("utf-8")
    tree = parse_bytes(source_bytes)
    candidates = CallSiteScanner(tree, source_bytes, path).scan()
    return CompilationUnit(
        path=path,
        candidates=tuple(candidates),
        parse_error_count=count_error_nodes(tree),
    )


def load_compilation_unit(file_path: str, root: Optional[str] = None) -> CompilationUnit:
    """Parse one C# file into a compilation unit.

    Args:
        file_path: Path to the ``.cs`` file.
        root: Directory locations are reported relative to; defaults to the
            file's own directory.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a C# source file.
    """
    file_path = os.path.abspath(file_path)
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")
    if os.path.splitext(file_path)[1] not in CSHARP_EXTENSIONS:
        raise ValueError(
            f"File {file_path} is not a C# source file. Expected one of: {CSHARP_EXTENSIONS}"
        )

    relative_path = _relative_path(file_path, os.path.abspath(root) if root else os.path.dirname(file_path))
    tree, source_bytes = parse_file(file_path)
    parse_error_count = count_error_nodes(tree)
    if tree.root_node.has_error:
        logger.warning(
            "File %s contains syntax errors (%d error nodes)",
            relative_path,
            parse_error_count,
        )

    candidates = CallSiteScanner(tree, source_bytes, relative_path).scan()
    logger.debug("Loaded %s with %d candidate(s)", relative_path, len(candidates))
    return CompilationUnit(
        path=relative_path,
        candidates=tuple(candidates),
        parse_error_count=parse_error_count,
    )


def iter_compilation_units(
    directory: str,
    continue_on_error: bool = True,
    stats: Optional[LoadStats] = None,
) -> Iterator[CompilationUnit]:
    """Yield a compilation unit for every C# file under ``directory``.

    Args:
        directory: Root directory to process.
        continue_on_error: If True, log and skip files that fail to load.
            If False, raise on the first failing file.
        stats: Optional ``LoadStats`` updated while iterating.

    Raises:
        FileNotFoundError: If directory does not exist.
    """
    directory = os.path.abspath(directory)
    if not os.path.isdir(directory):
        raise FileNotFoundError(f"Directory not found: {directory}")

    stats = stats if stats is not None else LoadStats()
    files = discover_csharp_files(directory)
    if not files:
        logger.warning("No C# files found in %s", directory)
        return

    for file_path in files:
        try:
            unit = load_compilation_unit(file_path, root=directory)
        except Exception as e:
            logger.error("Unexpected error loading %s: %s", file_path, e, exc_info=True)
            stats.files_failed += 1
            stats.failed_files.append(file_path)
            if not continue_on_error:
                raise
            continue

        stats.files_loaded += 1
        stats.candidates_found += len(unit.candidates)
        stats.parse_errors += unit.parse_error_count
        yield unit

    logger.info("Loading complete: %s", stats)
