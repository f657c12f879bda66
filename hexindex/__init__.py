"""
hexindex - Local semantic code index with syntax-aware chunking.

This package provides:
- Syntax-aware chunking with tree-sitter (Rust, TypeScript, JavaScript, Python, Go)
  and a line-based sliding window for everything else
- Local embeddings with sentence-transformers
- Collection-scoped vector storage and nearest-neighbour search on LanceDB
- A CLI and an MCP server over the same indexing service
"""

__version__ = "0.1.0"

from .models import CodeChunk, SearchResult, IndexResult, IndexStats
from .config import Config, IndexerConfig
from .errors import IndexerError
from .embeddings import Embedder
from .store import VectorStore
from .indexer import Indexer
from .chunkers import chunk_file, ChunkStrategy, TreeSitterChunker, FallbackChunker

__all__ = [
    # Models
    "CodeChunk",
    "SearchResult",
    "IndexResult",
    "IndexStats",
    # Configuration
    "Config",
    "IndexerConfig",
    "IndexerError",
    # Core components
    "Embedder",
    "VectorStore",
    "Indexer",
    # Chunking
    "chunk_file",
    "ChunkStrategy",
    "TreeSitterChunker",
    "FallbackChunker",
]
