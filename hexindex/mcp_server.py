"""
MCP server for hexindex.

Exposes the indexing service to MCP clients. Tools are async and run the
blocking service calls in worker threads so the event loop stays responsive
while a model loads or a directory is indexed.
"""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .config import Config
from .errors import IndexerError
from .indexer import Indexer
from .logging_config import setup_logging_from_config

logger = logging.getLogger(__name__)

# Global instances (set in initialize)
config: Optional[Config] = None
_indexer: Optional[Indexer] = None

mcp = FastMCP("hexindex")


def get_indexer() -> Indexer:
    """
    Build the indexer on first use.

    Constructing the indexer is cheap; the model is only loaded by the
    `initialize` tool.
    """
    global _indexer, config
    if _indexer is None:
        if config is None:
            config = Config()
        logger.info(f"Creating indexer from {config.config_path}")
        _indexer = Indexer.from_config(config)
    return _indexer


def _error(e: Exception, **extra) -> dict:
    return {"error": str(e), **extra}


@mcp.tool()
async def initialize() -> dict:
    """
    Load the embedding model and open the vector store.

    The first call may download the model (~80MB) and take a while.
    """
    try:
        ready = await asyncio.to_thread(get_indexer().initialize)
        return {"initialized": ready}
    except IndexerError as e:
        logger.error(f"Initialization failed: {e}", exc_info=True)
        return _error(e, initialized=False)


@mcp.tool()
async def is_ready() -> dict:
    """Report whether the model and the store are both initialized."""
    return {"ready": get_indexer().is_ready()}


@mcp.tool()
async def index_file(filesystem_hex_id: str, base_path: str, file_path: str) -> dict:
    """
    Index (or re-index) a single file.

    Args:
        filesystem_hex_id: Collection the file belongs to
        base_path: Collection root directory
        file_path: File path relative to base_path

    Returns:
        Dictionary with the number of chunks stored
    """
    try:
        count = await asyncio.to_thread(
            get_indexer().index_file, filesystem_hex_id, base_path, file_path
        )
        return {"file_path": file_path, "chunks_indexed": count}
    except IndexerError as e:
        logger.error(f"Indexing {file_path} failed: {e}", exc_info=True)
        return _error(e, chunks_indexed=0)


@mcp.tool()
async def index_directory(filesystem_hex_id: str, directory_path: str) -> dict:
    """
    Index every eligible file under a directory.

    Args:
        filesystem_hex_id: Collection to index into
        directory_path: Collection root directory

    Returns:
        Dictionary with files_processed, chunks_indexed and files_failed
    """
    try:
        result = await asyncio.to_thread(
            get_indexer().index_directory, filesystem_hex_id, directory_path
        )
        return result.model_dump()
    except IndexerError as e:
        logger.error(f"Indexing {directory_path} failed: {e}", exc_info=True)
        return _error(e, files_processed=0, chunks_indexed=0, files_failed=0)


@mcp.tool()
async def search(
    query: str,
    filesystem_hex_ids: Optional[list[str]] = None,
    limit: Optional[int] = None,
) -> dict:
    """
    Search indexed code for snippets semantically similar to the query.

    Args:
        query: Natural language or code query
        filesystem_hex_ids: Collections to search (default: all)
        limit: Maximum number of results (default from config)

    Returns:
        Dictionary with results ordered by ascending distance
    """
    try:
        results = await asyncio.to_thread(
            get_indexer().search, query, filesystem_hex_ids, limit
        )
    except IndexerError as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        return _error(e, results=[])

    formatted = [
        {
            "id": r.chunk.id,
            "filesystem_hex_id": r.chunk.filesystem_hex_id,
            "file_path": r.chunk.file_path,
            "start_line": r.chunk.start_line,
            "end_line": r.chunk.end_line,
            "language": r.chunk.language,
            "content": r.chunk.content,
            "distance": round(r.distance, 4),
        }
        for r in results
    ]
    logger.info(f"Search for '{query}' returned {len(formatted)} results")
    return {"query": query, "count": len(formatted), "results": formatted}


@mcp.tool()
async def remove_file(filesystem_hex_id: str, file_path: str) -> dict:
    """Remove one file's chunks from a collection."""
    try:
        removed = await asyncio.to_thread(get_indexer().remove_file, filesystem_hex_id, file_path)
        return {"file_path": file_path, "removed": removed}
    except IndexerError as e:
        logger.error(f"Removing {file_path} failed: {e}", exc_info=True)
        return _error(e, removed=0)


@mcp.tool()
async def clear_filesystem(filesystem_hex_id: str) -> dict:
    """Remove every chunk of a collection."""
    try:
        removed = await asyncio.to_thread(get_indexer().clear_filesystem, filesystem_hex_id)
        return {"filesystem_hex_id": filesystem_hex_id, "removed": removed}
    except IndexerError as e:
        logger.error(f"Clearing {filesystem_hex_id} failed: {e}", exc_info=True)
        return _error(e, removed=0)


@mcp.tool()
async def stats(filesystem_hex_id: str) -> dict:
    """Chunk count, file count and indexed files of a collection."""
    try:
        result = await asyncio.to_thread(get_indexer().get_stats, filesystem_hex_id)
        return result.model_dump()
    except IndexerError as e:
        logger.error(f"Failed to get stats: {e}", exc_info=True)
        return _error(e, stats=None)


def main():
    """Entry point for the MCP server."""
    global config

    parser = argparse.ArgumentParser(
        description="hexindex MCP server for semantic code search"
    )
    parser.add_argument(
        "--home",
        type=Path,
        default=None,
        help="hexindex home directory (default: $HEXINDEX_HOME or ~/.hexindex)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    config = Config(args.home)
    setup_logging_from_config(config, debug=args.debug)

    logger.info("Starting hexindex MCP server...")
    mcp.run()


if __name__ == "__main__":
    main()
