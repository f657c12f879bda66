"""
Vector store for hexindex.

Persists chunk metadata and chunk embeddings in two LanceDB tables keyed by
chunk id, and answers nearest-neighbour queries filtered by collection.
"""

import logging
import math
import threading
from pathlib import Path
from typing import Iterable, Optional, Sequence

import lancedb
from lancedb.table import Table

from .errors import (
    InitializationError,
    NotFoundError,
    NotInitializedError,
    SerializationError,
    StorageError,
)
from .models import ChunkRecord, CodeChunk, SearchResult, embedding_schema
from .utils import batched, sql_literal

logger = logging.getLogger(__name__)


def _in_clause(column: str, values: Iterable[str]) -> str:
    return f"{column} IN ({', '.join(sql_literal(v) for v in values)})"


def _collection_filter(filesystem_hex_id: str) -> str:
    return f"filesystem_hex_id = {sql_literal(filesystem_hex_id)}"


class VectorStore:
    """
    LanceDB-backed storage for code chunks and their embeddings.

    Two tables are kept in step:
    - code_chunks: chunk metadata keyed by id
    - chunk_embeddings: one fixed-width vector per chunk id

    All operations except initialize() and is_initialized() raise
    NotInitializedError until initialize() has succeeded. A single lock
    serialises access to the connection.
    """

    CHUNKS_TABLE = "code_chunks"
    EMBEDDINGS_TABLE = "chunk_embeddings"

    def __init__(self, db_path: Path, dimension: int = 384, max_filter_ids: int = 256):
        """
        Create an uninitialized store.

        Args:
            db_path: Path to the LanceDB database directory
            dimension: Width of the embedding vectors
            max_filter_ids: Largest number of collection ids put in one query filter
        """
        if dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {dimension}")
        if max_filter_ids < 1:
            raise ValueError(f"max_filter_ids must be >= 1, got {max_filter_ids}")

        self.db_path = Path(db_path)
        self.dimension = dimension
        self.max_filter_ids = max_filter_ids
        self.rebuilt = False
        self._db: Optional[lancedb.DBConnection] = None
        self._chunks: Optional[Table] = None
        self._embeddings: Optional[Table] = None
        self._lock = threading.Lock()

    # ===== Lifecycle =====

    def initialize(self) -> None:
        """
        Open the database and create both tables if needed. A no-op if ready.

        If the stored vectors have a different width than `dimension`, both
        tables are dropped and recreated empty; every collection then has to
        be re-indexed.

        Raises:
            InitializationError: If the database cannot be opened or created
        """
        with self._lock:
            if self._db is not None:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                db = lancedb.connect(str(self.db_path))
                table_names = set(db.table_names())

                if self.EMBEDDINGS_TABLE in table_names:
                    stored_dimension = self._vector_width(db.open_table(self.EMBEDDINGS_TABLE))
                    if stored_dimension != self.dimension:
                        logger.warning(
                            f"Stored embeddings are {stored_dimension}-dimensional but "
                            f"{self.dimension} is configured; rebuilding the index"
                        )
                        self._drop_all(db, table_names)
                        table_names = set()
                        self.rebuilt = True
                elif self.CHUNKS_TABLE in table_names:
                    logger.warning("Chunk metadata found without embeddings; rebuilding the index")
                    self._drop_all(db, table_names)
                    table_names = set()
                    self.rebuilt = True

                if self.CHUNKS_TABLE in table_names:
                    chunks = db.open_table(self.CHUNKS_TABLE)
                else:
                    chunks = db.create_table(self.CHUNKS_TABLE, schema=ChunkRecord)
                    logger.info(f"Created table: {self.CHUNKS_TABLE}")

                if self.EMBEDDINGS_TABLE in table_names:
                    embeddings = db.open_table(self.EMBEDDINGS_TABLE)
                else:
                    embeddings = db.create_table(
                        self.EMBEDDINGS_TABLE, schema=embedding_schema(self.dimension)
                    )
                    logger.info(
                        f"Created table: {self.EMBEDDINGS_TABLE} (dimension={self.dimension})"
                    )
            except Exception as e:
                logger.error(f"Failed to initialize vector store at {self.db_path}: {e}")
                raise InitializationError(str(e)) from e

            self._db = db
            self._chunks = chunks
            self._embeddings = embeddings
            logger.info(f"Connected to LanceDB at {self.db_path}")

    def is_initialized(self) -> bool:
        """Check whether initialize() has succeeded."""
        with self._lock:
            return self._db is not None

    def _drop_all(self, db: lancedb.DBConnection, table_names: set[str]) -> None:
        for name in (self.EMBEDDINGS_TABLE, self.CHUNKS_TABLE):
            if name in table_names:
                db.drop_table(name)

    @staticmethod
    def _vector_width(table: Table) -> Optional[int]:
        vector_type = table.schema.field("vector").type
        return getattr(vector_type, "list_size", None)

    def _require_ready(self) -> tuple[Table, Table]:
        if self._chunks is None or self._embeddings is None:
            raise NotInitializedError("Vector store")
        return self._chunks, self._embeddings

    # ===== Encoding =====

    def _encode_vector(self, embedding: Sequence[float]) -> list[float]:
        """Validate an embedding and convert it to a plain list of floats."""
        try:
            vector = [float(x) for x in embedding]
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e

        if len(vector) != self.dimension:
            raise SerializationError(
                f"expected {self.dimension} values, got {len(vector)}"
            )
        if not all(math.isfinite(x) for x in vector):
            raise SerializationError("embedding contains NaN or infinite values")
        return vector

    # ===== Writes =====

    def insert(self, chunk: CodeChunk, embedding: Sequence[float]) -> None:
        """
        Upsert one chunk and its embedding. An existing row with the same id
        is replaced in both tables.

        Raises:
            NotInitializedError: Before initialize()
            SerializationError: If the embedding has the wrong width or bad values
            StorageError: If the write fails
        """
        self.insert_batch([chunk], [embedding])

    def insert_batch(
        self,
        chunks: Sequence[CodeChunk],
        embeddings: Sequence[Sequence[float]],
    ) -> None:
        """
        Upsert several chunks with their embeddings.

        Metadata is written first; if writing the vectors fails, the metadata
        rows just written are removed again before the error is raised.

        Args:
            chunks: Chunks to store
            embeddings: One embedding per chunk, in the same order
        """
        with self._lock:
            chunk_table, embedding_table = self._require_ready()
            if len(chunks) != len(embeddings):
                raise ValueError(
                    f"Got {len(chunks)} chunks but {len(embeddings)} embeddings"
                )
            if not chunks:
                return

            vector_rows = [
                {
                    "chunk_id": chunk.id,
                    "filesystem_hex_id": chunk.filesystem_hex_id,
                    "vector": self._encode_vector(embedding),
                }
                for chunk, embedding in zip(chunks, embeddings)
            ]
            metadata_rows = [ChunkRecord.from_chunk(chunk).model_dump() for chunk in chunks]

            try:
                (
                    chunk_table.merge_insert("id")
                    .when_matched_update_all()
                    .when_not_matched_insert_all()
                    .execute(metadata_rows)
                )
            except Exception as e:
                logger.error(f"Failed to write {len(chunks)} chunk rows: {e}")
                raise StorageError(str(e)) from e

            try:
                (
                    embedding_table.merge_insert("chunk_id")
                    .when_matched_update_all()
                    .when_not_matched_insert_all()
                    .execute(vector_rows)
                )
            except Exception as e:
                logger.error(f"Failed to write {len(chunks)} embeddings, rolling back metadata: {e}")
                try:
                    self._delete_chunk_ids(chunk_table, [chunk.id for chunk in chunks])
                except Exception as rollback_error:
                    logger.error(f"Metadata rollback failed: {rollback_error}")
                raise StorageError(str(e)) from e

            logger.debug(f"Stored {len(chunks)} chunks")

    def _delete_chunk_ids(self, table: Table, chunk_ids: list[str], column: str = "id") -> None:
        for group in batched(chunk_ids, self.max_filter_ids):
            table.delete(_in_clause(column, group))

    def remove_file(self, filesystem_hex_id: str, file_path: str) -> int:
        """
        Delete every chunk and embedding of one file.

        Args:
            filesystem_hex_id: Collection the file belongs to
            file_path: File path relative to the collection root

        Returns:
            Number of chunks removed
        """
        where = f"{_collection_filter(filesystem_hex_id)} AND file_path = {sql_literal(file_path)}"

        with self._lock:
            chunk_table, embedding_table = self._require_ready()
            try:
                chunk_ids = [row["id"] for row in self._select(chunk_table, where, ["id"])]
                if not chunk_ids:
                    return 0

                self._delete_chunk_ids(embedding_table, chunk_ids, column="chunk_id")
                chunk_table.delete(where)
            except Exception as e:
                logger.error(f"Failed to remove chunks for {file_path}: {e}")
                raise StorageError(str(e)) from e

        logger.debug(f"Removed {len(chunk_ids)} chunks for {file_path}")
        return len(chunk_ids)

    def clear_filesystem(self, filesystem_hex_id: str) -> int:
        """
        Delete every chunk and embedding of a collection.

        Returns:
            Number of chunks removed
        """
        where = _collection_filter(filesystem_hex_id)

        with self._lock:
            chunk_table, embedding_table = self._require_ready()
            try:
                removed = chunk_table.count_rows(where)
                embedding_table.delete(where)
                chunk_table.delete(where)
            except Exception as e:
                logger.error(f"Failed to clear collection {filesystem_hex_id}: {e}")
                raise StorageError(str(e)) from e

        if removed > 0:
            logger.info(f"Cleared {removed} chunks from collection {filesystem_hex_id}")
        return removed

    # ===== Reads =====

    @staticmethod
    def _select(table: Table, where: str, columns: list[str]) -> list[dict]:
        """Return every row matching `where`, restricted to `columns`."""
        count = table.count_rows(where)
        if count == 0:
            return []
        return table.search().where(where).select(columns).limit(count).to_list()

    def search(
        self,
        query_embedding: Sequence[float],
        filesystem_hex_ids: Optional[Iterable[str]] = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        """
        Find the chunks nearest to a query vector.

        Args:
            query_embedding: Query vector
            filesystem_hex_ids: Collections to search; empty or None searches all
            limit: Maximum number of results

        Returns:
            SearchResults ordered by ascending distance
        """
        collection_ids = sorted(set(filesystem_hex_ids or ()))
        # Large id sets are queried in groups and merged by distance
        groups: list[Optional[list[str]]] = (
            batched(collection_ids, self.max_filter_ids) if collection_ids else [None]
        )

        with self._lock:
            chunk_table, embedding_table = self._require_ready()
            if limit <= 0:
                return []
            query_vector = self._encode_vector(query_embedding)
            try:
                if embedding_table.count_rows() == 0:
                    return []

                hits: list[dict] = []
                for group in groups:
                    query = (
                        embedding_table.search(query_vector)
                        .select(["chunk_id", "_distance"])
                        .limit(limit)
                    )
                    if group is not None:
                        query = query.where(
                            _in_clause("filesystem_hex_id", group), prefilter=True
                        )
                    hits.extend(query.to_list())

                hits.sort(key=lambda hit: hit["_distance"])
                nearest: dict[str, float] = {}
                for hit in hits:
                    if len(nearest) == limit:
                        break
                    nearest.setdefault(hit["chunk_id"], float(hit["_distance"]))

                chunks = self._fetch_chunks(chunk_table, list(nearest))
            except Exception as e:
                logger.error(f"Search failed: {e}")
                raise StorageError(str(e)) from e

        results = []
        for chunk_id, distance in nearest.items():
            chunk = chunks.get(chunk_id)
            if chunk is None:
                logger.debug(f"Embedding {chunk_id} has no chunk metadata, skipping")
                continue
            results.append(SearchResult(chunk=chunk, distance=max(0.0, distance)))

        logger.debug(f"Search returned {len(results)} results")
        return results

    def _fetch_chunks(self, table: Table, chunk_ids: list[str]) -> dict[str, CodeChunk]:
        found: dict[str, CodeChunk] = {}
        for group in batched(chunk_ids, self.max_filter_ids):
            rows = table.search().where(_in_clause("id", group)).limit(len(group)).to_list()
            for row in rows:
                found[row["id"]] = ChunkRecord.model_validate(row).to_chunk()
        return found

    def get_chunk(self, chunk_id: str) -> CodeChunk:
        """
        Look up a chunk by id.

        Raises:
            NotFoundError: If no chunk has this id
        """
        with self._lock:
            chunk_table, _ = self._require_ready()
            try:
                found = self._fetch_chunks(chunk_table, [chunk_id])
            except Exception as e:
                raise StorageError(str(e)) from e

        if chunk_id not in found:
            raise NotFoundError("Chunk", chunk_id)
        return found[chunk_id]

    def get_chunk_count(self, filesystem_hex_id: str) -> int:
        """Count the chunks stored for a collection."""
        with self._lock:
            chunk_table, _ = self._require_ready()
            try:
                return chunk_table.count_rows(_collection_filter(filesystem_hex_id))
            except Exception as e:
                logger.error(f"Failed to count chunks for {filesystem_hex_id}: {e}")
                raise StorageError(str(e)) from e

    def get_indexed_files(self, filesystem_hex_id: str) -> set[str]:
        """Return the distinct file paths indexed for a collection."""
        with self._lock:
            chunk_table, _ = self._require_ready()
            try:
                rows = self._select(
                    chunk_table, _collection_filter(filesystem_hex_id), ["file_path"]
                )
            except Exception as e:
                logger.error(f"Failed to list indexed files for {filesystem_hex_id}: {e}")
                raise StorageError(str(e)) from e

        return {row["file_path"] for row in rows}

    def __repr__(self) -> str:
        """String representation."""
        state = "ready" if self._db is not None else "not initialized"
        return f"VectorStore(db_path={self.db_path}, dimension={self.dimension}, {state})"
