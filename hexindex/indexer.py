"""
Indexing service for hexindex.

Orchestrates file reading, chunking, embedding generation and storage, and
exposes the operations offered to the CLI and MCP surfaces.
"""

import hashlib
import logging
import os
from pathlib import Path, PurePath
from typing import Callable, Iterable, Optional

import pathspec

from .chunkers import chunk_file
from .config import Config, IndexerConfig
from .embeddings import Embedder
from .errors import (
    BinaryFileError,
    EmbeddingError,
    IndexerError,
    NotFoundError,
    NotInitializedError,
    StorageError,
)
from .models import IndexResult, IndexStats, SearchResult
from .progress import ProgressEvent, ProgressReporter
from .store import VectorStore

logger = logging.getLogger(__name__)

# Bytes inspected for NUL characters when sniffing binary files
BINARY_SNIFF_BYTES = 8192


def collection_id_for(path: Path) -> str:
    """Derive a stable collection id from a directory's absolute path."""
    resolved = str(Path(path).expanduser().resolve())
    return hashlib.sha256(resolved.encode("utf-8")).hexdigest()[:16]


def read_text_file(path: Path) -> str:
    """
    Read a file as UTF-8 text.

    Raises:
        BinaryFileError: If the file contains NUL bytes or is not valid UTF-8
        OSError: For any other read failure
    """
    data = Path(path).read_bytes()
    if b"\x00" in data[:BINARY_SNIFF_BYTES]:
        raise BinaryFileError(str(path))
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise BinaryFileError(str(path)) from e


def discover_files(root: Path, config: IndexerConfig) -> list[Path]:
    """
    Find indexable files under a directory.

    Directories matching `ignore_dirs` (gitwildmatch patterns, matched at any
    depth) are not descended into; files must pass the extension allow-list
    and the size limit.

    Args:
        root: Directory to walk
        config: Supplies ignore_dirs, extensions and max_file_size

    Returns:
        Sorted list of file paths
    """
    ignore_spec = pathspec.PathSpec.from_lines(
        "gitwildmatch", [f"{name.rstrip('/')}/" for name in config.ignore_dirs]
    )

    files = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        current = Path(dirpath)
        rel_dir = current.relative_to(root)

        dirnames[:] = sorted(
            d for d in dirnames
            if not ignore_spec.match_file(f"{(rel_dir / d).as_posix()}/")
        )

        for filename in sorted(filenames):
            file_path = current / filename
            if not config.allows_extension(file_path.suffix.lstrip(".")):
                continue
            try:
                size = file_path.stat().st_size
            except OSError as e:
                logger.debug(f"Cannot stat file {file_path}: {e}")
                continue
            if size > config.max_file_size:
                logger.warning(
                    f"Skipping large file: {file_path} "
                    f"({size / 1024 / 1024:.1f}MB > {config.max_file_size / 1024 / 1024:.1f}MB limit)"
                )
                continue
            files.append(file_path)

    return sorted(files)


def _normalize_path(file_path: str) -> str:
    return PurePath(file_path).as_posix()


class Indexer:
    """
    Indexing and search service over one Embedder and one VectorStore.

    Both components are owned resources injected at construction; callers
    never touch the model handle or database connection directly.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: Embedder,
        config: IndexerConfig,
        batch_size: int = 32,
        default_limit: int = 10,
    ):
        """
        Args:
            store: Vector store for persisting chunks
            embedder: Embedding model adapter
            config: Chunking and traversal settings
            batch_size: Texts per embedding batch when indexing a file
            default_limit: Result count when search() is given no limit
        """
        self.store = store
        self.embedder = embedder
        self.config = config
        self.batch_size = batch_size
        self.default_limit = default_limit

    @classmethod
    def from_config(cls, config: Config) -> "Indexer":
        """Build an indexer and its components from a loaded Config."""
        dimension = config.get("embeddings", "dimension", default=384)
        embedder = Embedder(
            model_name=config.get("embeddings", "model", default="all-MiniLM-L6-v2"),
            dimension=dimension,
            cache_dir=config.model_cache_dir,
            device=config.get("embeddings", "device"),
            batch_size=config.get("embeddings", "batch_size", default=32),
        )
        store = VectorStore(
            config.db_path,
            dimension=dimension,
            max_filter_ids=config.get("store", "max_filter_ids", default=256),
        )
        return cls(
            store,
            embedder,
            config.indexer_config,
            batch_size=config.get("embeddings", "batch_size", default=32),
            default_limit=config.get("search", "default_limit", default=10),
        )

    # ===== Lifecycle =====

    def initialize(self) -> bool:
        """
        Initialize the embedding model and the vector store.

        The first call may download the model and takes a while.

        Raises:
            InitializationError: If either component fails to initialize
        """
        self.embedder.initialize()
        self.store.initialize()
        return True

    def is_ready(self) -> bool:
        """True when both the embedder and the store are initialized."""
        return self.embedder.is_initialized() and self.store.is_initialized()

    def _require_ready(self) -> None:
        if not self.embedder.is_initialized():
            raise NotInitializedError("Embedding model")
        if not self.store.is_initialized():
            raise NotInitializedError("Vector store")

    # ===== Indexing =====

    def _index_content(self, filesystem_hex_id: str, file_path: str, content: str) -> int:
        """
        Replace the stored chunks of one file with chunks of `content`.

        Embeddings are computed before anything is removed, so an embedding
        failure leaves the previous chunks in place.
        """
        chunks = chunk_file(filesystem_hex_id, file_path, content, self.config)

        if not chunks:
            removed = self.store.remove_file(filesystem_hex_id, file_path)
            if removed:
                logger.debug(f"{file_path} is now empty, removed {removed} stale chunks")
            return 0

        embeddings = self.embedder.embed_with_progress(
            [chunk.content for chunk in chunks], self.batch_size
        )

        # Removal must complete before the new set is inserted
        self.store.remove_file(filesystem_hex_id, file_path)
        self.store.insert_batch(chunks, embeddings)

        logger.debug(f"Indexed {file_path}: {len(chunks)} chunks")
        return len(chunks)

    def index_file(self, filesystem_hex_id: str, base_path: str, file_path: str) -> int:
        """
        Index a single file.

        Args:
            filesystem_hex_id: Collection the file belongs to
            base_path: Collection root directory
            file_path: File path relative to base_path

        Returns:
            Number of chunks stored (0 if the file is unreadable or empty)

        Raises:
            NotInitializedError: Before initialize()
            EmbeddingError: If embedding fails
            StorageError: If the store fails
        """
        self._require_ready()
        rel_path = _normalize_path(file_path)
        full_path = Path(base_path) / file_path

        try:
            content = read_text_file(full_path)
        except BinaryFileError:
            logger.debug(f"Skipping non-text file: {full_path}")
            return 0
        except OSError as e:
            logger.warning(f"Failed to read file {full_path}: {e}")
            return 0

        return self._index_content(filesystem_hex_id, rel_path, content)

    def index_directory(
        self,
        filesystem_hex_id: str,
        directory_path: str,
        progress_callback: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> IndexResult:
        """
        Index every eligible file under a directory.

        A file that fails to embed or store is logged and skipped; the pass
        continues with the remaining files.

        Args:
            filesystem_hex_id: Collection to index into
            directory_path: Collection root directory
            progress_callback: Optional callback(ProgressEvent) after each file

        Returns:
            IndexResult with processed/indexed/failed counts

        Raises:
            NotFoundError: If the directory does not exist
            IndexerError: If the path is not a directory
        """
        base_path = Path(directory_path)
        if not base_path.exists():
            raise NotFoundError("Directory", directory_path)
        if not base_path.is_dir():
            raise IndexerError(f"Path is not a directory: {directory_path}")
        self._require_ready()

        files = discover_files(base_path, self.config)
        logger.info(f"Found {len(files)} files to index in {base_path}")

        reporter = ProgressReporter(len(files), callback=progress_callback)
        result = IndexResult()

        for path in files:
            rel_path = path.relative_to(base_path).as_posix()
            chunks_added = 0

            try:
                content = read_text_file(path)
            except BinaryFileError:
                logger.debug(f"Skipping non-text file: {rel_path}")
                reporter.update(rel_path)
                continue
            except OSError as e:
                logger.error(f"Failed to read file {rel_path}: {e}")
                result.files_failed += 1
                reporter.update(rel_path)
                continue

            try:
                chunks_added = self._index_content(filesystem_hex_id, rel_path, content)
            except (EmbeddingError, StorageError) as e:
                logger.error(f"Failed to index {rel_path}: {e}")
                result.files_failed += 1
            else:
                if chunks_added > 0:
                    result.files_processed += 1
                    result.chunks_indexed += chunks_added

            reporter.update(rel_path, chunks_added)

        logger.info(
            f"Indexing complete: {result.files_processed} files, "
            f"{result.chunks_indexed} chunks, {result.files_failed} failed "
            f"({reporter.get_summary()})"
        )
        return result

    # ===== Queries and maintenance =====

    def search(
        self,
        query: str,
        filesystem_hex_ids: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> list[SearchResult]:
        """
        Search indexed code semantically.

        Args:
            query: Natural language or code query
            filesystem_hex_ids: Collections to search; empty or None searches all
            limit: Maximum number of results (default from configuration)

        Returns:
            SearchResults ordered by ascending distance
        """
        query_embedding = self.embedder.embed_one(query)
        return self.store.search(
            query_embedding,
            list(filesystem_hex_ids or ()),
            self.default_limit if limit is None else limit,
        )

    def remove_file(self, filesystem_hex_id: str, file_path: str) -> int:
        """Remove one file's chunks from the index. Returns the number removed."""
        return self.store.remove_file(filesystem_hex_id, _normalize_path(file_path))

    def clear_filesystem(self, filesystem_hex_id: str) -> int:
        """Remove a whole collection from the index. Returns the number removed."""
        return self.store.clear_filesystem(filesystem_hex_id)

    def get_stats(self, filesystem_hex_id: str) -> IndexStats:
        """Chunk count, file count and file list of a collection."""
        files = self.store.get_indexed_files(filesystem_hex_id)
        return IndexStats(
            filesystem_hex_id=filesystem_hex_id,
            chunk_count=self.store.get_chunk_count(filesystem_hex_id),
            file_count=len(files),
            files=sorted(files),
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"Indexer(store={self.store}, embedder={self.embedder})"
