"""
Chunking strategies for hexindex.

- TreeSitterChunker: declaration-based chunking for the supported grammars
- FallbackChunker: sliding-window line chunking for everything else

chunk_file() picks the strategy for a file and never raises on bad input.
"""

import logging

from ..config import IndexerConfig
from ..models import CodeChunk
from .base import ChunkStrategy, split_lines, window_ranges
from .fallback import FallbackChunker
from .languages import SupportedLanguage, detect_language, detect_supported_language
from .treesitter import TreeSitterChunker, extract_semantic_units, parse_source

logger = logging.getLogger(__name__)


def chunk_file(
    filesystem_hex_id: str,
    file_path: str,
    content: str,
    config: IndexerConfig,
) -> list[CodeChunk]:
    """
    Chunk a file's content for embedding.

    Uses tree-sitter when the language is supported and the file yields
    declarations, otherwise line-based windows.

    Args:
        filesystem_hex_id: Collection the file belongs to
        file_path: File path relative to the collection root
        content: File text
        config: Chunk size bounds and overlap

    Returns:
        Ordered list of CodeChunks (empty for empty content)
    """
    if not content:
        return []

    language = detect_supported_language(file_path)
    if language is not None:
        chunks = TreeSitterChunker(language, config).chunk(filesystem_hex_id, file_path, content)
        if chunks:
            return chunks

    return FallbackChunker(config).chunk(filesystem_hex_id, file_path, content)


__all__ = [
    "ChunkStrategy",
    "TreeSitterChunker",
    "FallbackChunker",
    "SupportedLanguage",
    "chunk_file",
    "detect_language",
    "detect_supported_language",
    "extract_semantic_units",
    "parse_source",
    "split_lines",
    "window_ranges",
]
