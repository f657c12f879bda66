"""
Line-based chunking strategy.

Used for languages without a tree-sitter grammar, for files that fail to
parse, and for parseable files without any top-level declarations.
"""

import logging

from ..models import CodeChunk
from .base import ChunkStrategy, split_lines, window_ranges
from .languages import detect_language

logger = logging.getLogger(__name__)


class FallbackChunker(ChunkStrategy):
    """
    Sliding-window chunking over raw lines.

    Files of at most max_chunk_lines lines become a single chunk holding the
    original text; longer files are cut into overlapping windows.
    """

    def chunk(self, filesystem_hex_id: str, file_path: str, content: str) -> list[CodeChunk]:
        lines = split_lines(content)
        if not lines:
            return []

        language = detect_language(file_path)

        if len(lines) <= self.config.max_chunk_lines:
            return [self._make_chunk(
                filesystem_hex_id, file_path, 0, 1, len(lines), content, language
            )]

        chunks = []
        for ordinal, (start, end) in enumerate(window_ranges(len(lines), self.config)):
            chunks.append(self._make_chunk(
                filesystem_hex_id,
                file_path,
                ordinal,
                start + 1,  # 1-indexed
                end,        # 1-indexed, inclusive
                "\n".join(lines[start:end]),
                language,
            ))

        logger.debug(f"Chunked {file_path} into {len(chunks)} line-based chunks")
        return chunks
