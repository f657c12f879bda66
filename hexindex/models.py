"""
Data models for hexindex.

Defines the Pydantic value types passed between components and the LanceDB
schemas for the two persisted tables (chunk metadata and chunk embeddings).
"""

import time
from dataclasses import dataclass
from typing import Optional

from lancedb.pydantic import LanceModel, Vector
from pydantic import BaseModel, ConfigDict, Field, model_validator


class CodeChunk(BaseModel):
    """
    An immutable, retrieval-sized excerpt of a source file.

    Line numbers are 1-indexed and inclusive.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique chunk identifier")
    filesystem_hex_id: str = Field(description="Collection the chunk belongs to")
    file_path: str = Field(description="File path relative to the collection root")
    start_line: int = Field(description="First line of the chunk", ge=1)
    end_line: int = Field(description="Last line of the chunk", ge=1)
    content: str = Field(description="Literal text of the chunk")
    language: Optional[str] = Field(default=None, description="Language tag, if known")

    @model_validator(mode="after")
    def _check_line_range(self) -> "CodeChunk":
        if self.start_line > self.end_line:
            raise ValueError(
                f"start_line ({self.start_line}) must not exceed end_line ({self.end_line})"
            )
        return self

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass(frozen=True)
class SemanticUnit:
    """
    A top-level declaration extracted from a syntax tree.

    Attributes:
        kind: Grammar node kind (e.g. "function_item", "class_definition")
        start_byte: Start byte offset in the source
        end_byte: End byte offset in the source
        start_line: Start line (0-indexed)
        end_line: End line (0-indexed)
        content: Source text of the declaration
        name: Declared name, if one could be found
    """
    kind: str
    start_byte: int
    end_byte: int
    start_line: int
    end_line: int
    content: str
    name: Optional[str] = None

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


class SearchResult(BaseModel):
    """A code chunk paired with its vector distance to the query (lower is closer)."""
    chunk: CodeChunk
    distance: float = Field(description="Vector distance to the query", ge=0)

    def __str__(self) -> str:
        """Format search result for display."""
        return (
            f"{self.chunk.file_path}:{self.chunk.start_line}-{self.chunk.end_line} "
            f"({self.distance:.3f})\n{self.chunk.content[:100]}..."
        )


class IndexResult(BaseModel):
    """Outcome of indexing a directory."""
    files_processed: int = 0
    chunks_indexed: int = 0
    files_failed: int = 0

    def __str__(self) -> str:
        lines = [
            f"Files processed: {self.files_processed}",
            f"Chunks indexed: {self.chunks_indexed}",
        ]
        if self.files_failed:
            lines.append(f"Files failed: {self.files_failed}")
        return "\n".join(lines)


class IndexStats(BaseModel):
    """Statistics about one indexed collection."""
    filesystem_hex_id: str
    chunk_count: int = 0
    file_count: int = 0
    files: list[str] = Field(default_factory=list)

    def __str__(self) -> str:
        """Format stats for display."""
        return "\n".join([
            f"Collection: {self.filesystem_hex_id}",
            f"Total files: {self.file_count}",
            f"Total chunks: {self.chunk_count}",
        ])


class ChunkRecord(LanceModel):
    """LanceDB row for chunk metadata, keyed by chunk id."""
    id: str
    filesystem_hex_id: str
    file_path: str
    start_line: int
    end_line: int
    content: str
    language: Optional[str] = None
    created_at: float = Field(default_factory=time.time)

    @classmethod
    def from_chunk(cls, chunk: CodeChunk) -> "ChunkRecord":
        return cls(**chunk.model_dump())

    def to_chunk(self) -> CodeChunk:
        return CodeChunk(**self.model_dump(exclude={"created_at"}))


def embedding_schema(dimension: int) -> type[LanceModel]:
    """
    Build the LanceDB schema for the embeddings side table.

    The collection id is repeated here so that KNN queries can be prefiltered
    without joining against the metadata table.

    Args:
        dimension: Width of the vector column

    Returns:
        LanceModel subclass with a fixed-size vector column
    """

    class ChunkEmbedding(LanceModel):
        chunk_id: str
        filesystem_hex_id: str
        vector: Vector(dimension)

    return ChunkEmbedding
