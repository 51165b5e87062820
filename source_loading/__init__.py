"""C# source loading: tree-sitter parsing, local typing and call-site scanning."""

from source_loading.parser import count_error_nodes, parse_bytes, parse_file
from source_loading.scanner import CallSiteScanner, scan_tree
from source_loading.symbols import TypeResolver, unescape_string_literal
from source_loading.workspace import (
    LoadStats,
    discover_csharp_files,
    iter_compilation_units,
    load_compilation_unit,
    load_source,
)

__all__ = [
    "parse_bytes",
    "parse_file",
    "count_error_nodes",
    "CallSiteScanner",
    "scan_tree",
    "TypeResolver",
    "unescape_string_literal",
    "LoadStats",
    "discover_csharp_files",
    "iter_compilation_units",
    "load_compilation_unit",
    "load_source",
]
