"""
Tree-sitter based chunking strategy.

Parses source with the grammar of a SupportedLanguage, extracts top-level
declarations as semantic units, and turns each unit into one chunk (or several
overlapping chunks when the unit is longer than max_chunk_lines).
"""

import logging
from dataclasses import dataclass
from typing import Optional

from tree_sitter import Node, Parser, Tree

from ..config import IndexerConfig
from ..models import CodeChunk, SemanticUnit
from .base import ChunkStrategy, split_lines, window_ranges
from .languages import SupportedLanguage

logger = logging.getLogger(__name__)

NAME_FIELDS = ("name", "identifier")
NAME_KINDS = ("identifier", "name")


@dataclass
class ParsedSource:
    """A syntax tree together with the bytes it was parsed from."""
    tree: Tree
    source: bytes
    language: SupportedLanguage


def parse_source(source: str, language: SupportedLanguage) -> Optional[ParsedSource]:
    """
    Parse source code with tree-sitter.

    Returns None when the grammar cannot be loaded or parsing fails; callers
    fall back to line-based chunking.
    """
    try:
        parser = Parser(language.grammar())
        encoded = source.encode("utf-8")
        tree = parser.parse(encoded)
    except Exception as e:
        logger.debug(f"tree-sitter could not parse {language.tag} source: {e}")
        return None

    if tree is None:
        return None
    if tree.root_node.has_error:
        logger.debug(f"Parse warnings in {language.tag} source, extracting declarations anyway")

    return ParsedSource(tree=tree, source=encoded, language=language)


def _node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def extract_name(node: Node, source: bytes) -> Optional[str]:
    """
    Extract the declared name of a node.

    Prefers a child bound to a "name"/"identifier" field, then the first child
    whose kind is "identifier" or "name".
    """
    for field_name in NAME_FIELDS:
        name_node = node.child_by_field_name(field_name)
        if name_node is not None:
            return _node_text(name_node, source)

    for child in node.children:
        if child.type in NAME_KINDS:
            return _node_text(child, source)

    return None


def extract_semantic_units(parsed: ParsedSource) -> list[SemanticUnit]:
    """
    Collect top-level declarations in document order.

    A node whose kind is listed for the language becomes a unit and its
    subtree is skipped; any other node is descended into, which finds
    declarations wrapped by modules, exports or decorators.
    """
    kinds = set(parsed.language.top_level_kinds)
    units: list[SemanticUnit] = []

    # Children are pushed in reverse so they pop in source order
    stack: list[Node] = list(reversed(parsed.tree.root_node.children))
    while stack:
        node = stack.pop()
        if node.type in kinds:
            units.append(SemanticUnit(
                kind=node.type,
                start_byte=node.start_byte,
                end_byte=node.end_byte,
                start_line=node.start_point[0],
                end_line=node.end_point[0],
                content=_node_text(node, parsed.source),
                name=extract_name(node, parsed.source),
            ))
            continue
        stack.extend(reversed(node.children))

    return units


class TreeSitterChunker(ChunkStrategy):
    """
    Declaration-based chunking for one SupportedLanguage.

    Returns an empty list when parsing fails or no declarations are found,
    signalling the caller to use line-based chunking instead.
    """

    def __init__(self, language: SupportedLanguage, config: IndexerConfig):
        super().__init__(config)
        self.language = language

    def chunk(self, filesystem_hex_id: str, file_path: str, content: str) -> list[CodeChunk]:
        if not content:
            return []

        parsed = parse_source(content, self.language)
        if parsed is None:
            logger.debug(f"Parse failed for {file_path}, falling back to line-based chunking")
            return []

        units = extract_semantic_units(parsed)
        if not units:
            logger.debug(f"No declarations found in {file_path}")
            return []

        chunks: list[CodeChunk] = []
        for unit in units:
            if unit.line_count <= self.config.max_chunk_lines:
                chunks.append(self._make_chunk(
                    filesystem_hex_id,
                    file_path,
                    len(chunks),
                    unit.start_line + 1,
                    unit.end_line + 1,
                    unit.content,
                    self.language.tag,
                ))
                continue

            # Large declarations are windowed like plain lines, offset by the unit start
            unit_lines = split_lines(unit.content)
            for start, end in window_ranges(len(unit_lines), self.config, bool(chunks)):
                chunks.append(self._make_chunk(
                    filesystem_hex_id,
                    file_path,
                    len(chunks),
                    unit.start_line + start + 1,
                    unit.start_line + end,
                    "\n".join(unit_lines[start:end]),
                    self.language.tag,
                ))

        logger.debug(
            f"Extracted {len(chunks)} chunks from {file_path} "
            f"using tree-sitter ({self.language.tag})"
        )
        return chunks
