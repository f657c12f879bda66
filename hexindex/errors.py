"""
Exception types for hexindex.

Every component raises a subclass of IndexerError so the service layer and the
MCP/CLI surfaces can present failures verbatim.
"""


class IndexerError(Exception):
    """Base class for all hexindex errors."""


class NotInitializedError(IndexerError):
    """An operation was attempted before the component was initialized."""

    def __init__(self, component: str):
        self.component = component
        super().__init__(f"{component} not initialized")


class InitializationError(IndexerError):
    """Model or schema setup failed."""

    def __init__(self, message: str):
        super().__init__(f"Failed to initialize: {message}")


class EmbeddingError(IndexerError):
    """The embedding provider failed while generating vectors."""

    def __init__(self, message: str):
        super().__init__(f"Failed to generate embeddings: {message}")


class StorageError(IndexerError):
    """Persistence failure in the vector store."""

    def __init__(self, message: str):
        super().__init__(f"Database error: {message}")


class SerializationError(StorageError):
    """An embedding could not be encoded for storage."""

    def __init__(self, message: str):
        IndexerError.__init__(self, f"Failed to serialize embedding: {message}")


class NotFoundError(IndexerError):
    """A lookup by identifier yielded nothing."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class BinaryFileError(IndexerError):
    """A file could not be read as text."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not a text file: {path}")
