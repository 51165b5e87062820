"""
tree-sitter front end for C# sources.

A new ``Parser`` is built per call: the loader may run on a worker thread
and parsers must not be shared between threads.
"""

import logging
from typing import Tuple

import tree_sitter_c_sharp
from tree_sitter import Language, Node, Parser, Tree

logger = logging.getLogger(__name__)

CSHARP = Language(tree_sitter_c_sharp.language())


def parse_bytes(source: bytes) -> Tree:
    """Parse C# source bytes.

    Raises:
        TypeError: If ``source`` is text rather than bytes.
    """
    if not isinstance(source, bytes):
        raise TypeError(f"C# source must be bytes, not {type(source).__name__}")
    tree = Parser(CSHARP).parse(source)
    logger.debug("Parsed %d byte(s) of C#", len(source))
    return tree


def parse_file(file_path: str) -> Tuple[Tree, bytes]:
    """Read ``file_path`` and return its tree with the bytes it was parsed from.

    I/O errors propagate; the loader decides whether a file failure is fatal.
    """
    with open(file_path, "rb") as handle:
        source = handle.read()
    return parse_bytes(source), source


def count_error_nodes(tree: Tree) -> int:
    """ERROR and MISSING nodes in ``tree``; subtrees without errors are skipped."""
    count = 0
    pending = [tree.root_node]
    while pending:
        node: Node = pending.pop()
        count += node.is_error or node.is_missing
        if node.has_error:
            pending.extend(node.children)
    return count


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")
