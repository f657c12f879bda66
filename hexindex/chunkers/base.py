"""
Base chunking strategy interface for hexindex.

Defines the abstract base class for chunking strategies and the sliding-window
arithmetic shared by the syntax-aware and line-based paths.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Optional

from ..config import IndexerConfig
from ..models import CodeChunk

# Namespace for deterministic chunk ids
CHUNK_NAMESPACE = uuid.UUID("6f1c2a4e-8d3b-5c7a-9e0f-1b2c3d4e5f60")


def split_lines(content: str) -> list[str]:
    """
    Split text into lines on "\\n", dropping a trailing "\\r" from each line.

    A trailing newline does not produce an empty final line.
    """
    if not content:
        return []
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def window_ranges(
    total_lines: int,
    config: IndexerConfig,
    already_emitted: bool = False,
) -> list[tuple[int, int]]:
    """
    Compute sliding-window line ranges over a sequence of lines.

    Args:
        total_lines: Number of lines to cover
        config: Chunk size bounds and overlap
        already_emitted: Whether the caller has emitted chunks before this
            sequence; a short window is only kept when nothing was emitted yet

    Returns:
        List of half-open (start, end) 0-indexed ranges
    """
    if total_lines <= 0:
        return []
    if total_lines <= config.max_chunk_lines:
        return [(0, total_lines)]

    step = max(1, config.max_chunk_lines - config.overlap_lines)
    ranges: list[tuple[int, int]] = []
    start = 0

    while start < total_lines:
        end = min(start + config.max_chunk_lines, total_lines)

        # Drop a tiny trailing fragment once something has been emitted
        if end - start < config.min_chunk_lines and (ranges or already_emitted):
            break

        ranges.append((start, end))

        if end >= total_lines:
            break
        start += step

    return ranges


def make_chunk_id(
    filesystem_hex_id: str,
    file_path: str,
    ordinal: int,
    start_line: int,
    end_line: int,
) -> str:
    """Derive a stable chunk id from its collection, file and position."""
    key = f"{filesystem_hex_id}\x00{file_path}\x00{ordinal}\x00{start_line}\x00{end_line}"
    return str(uuid.uuid5(CHUNK_NAMESPACE, key))


class ChunkStrategy(ABC):
    """
    Abstract base class for chunking strategies.

    Strategies turn a file's text into CodeChunks. They never raise on bad
    input; an empty list tells the caller to try the next strategy.
    """

    def __init__(self, config: IndexerConfig):
        self.config = config

    @abstractmethod
    def chunk(self, filesystem_hex_id: str, file_path: str, content: str) -> list[CodeChunk]:
        """
        Split content into chunks.

        Args:
            filesystem_hex_id: Collection the file belongs to
            file_path: File path relative to the collection root
            content: The file content to chunk

        Returns:
            Ordered list of CodeChunks (empty if the strategy does not apply)
        """

    def _make_chunk(
        self,
        filesystem_hex_id: str,
        file_path: str,
        ordinal: int,
        start_line: int,
        end_line: int,
        content: str,
        language: Optional[str],
    ) -> CodeChunk:
        return CodeChunk(
            id=make_chunk_id(filesystem_hex_id, file_path, ordinal, start_line, end_line),
            filesystem_hex_id=filesystem_hex_id,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            content=content,
            language=language,
        )
