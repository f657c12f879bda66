"""
Pytest fixtures for hexindex tests.

Provides temporary directories, sample source trees, a real LanceDB store,
and a deterministic embedder so indexing tests never download a model.
"""

import hashlib
import math
import shutil
import tempfile
from pathlib import Path

import pytest

from hexindex.config import Config, IndexerConfig
from hexindex.errors import EmbeddingError, NotInitializedError
from hexindex.indexer import Indexer
from hexindex.store import VectorStore

DIMENSION = 384


def fake_vector(text: str, dimension: int = DIMENSION) -> list[float]:
    """Deterministic unit vector derived from a hash of the text."""
    seed = hashlib.sha256(text.encode("utf-8")).digest()
    raw = [((seed[i % len(seed)] + i * 31) % 251) / 251.0 - 0.5 for i in range(dimension)]
    norm = math.sqrt(sum(x * x for x in raw)) or 1.0
    return [x / norm for x in raw]


def axis_vector(index: int, dimension: int = DIMENSION) -> list[float]:
    """Unit vector along one axis."""
    vector = [0.0] * dimension
    vector[index] = 1.0
    return vector


class FakeEmbedder:
    """Stand-in for Embedder with the same lifecycle and hash-based vectors."""

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self.calls: list[list[str]] = []
        self.fail_on: set[str] = set()
        self._ready = False

    def initialize(self) -> None:
        self._ready = True

    def is_initialized(self) -> bool:
        return self._ready

    def embed(self, texts):
        if not self._ready:
            raise NotInitializedError("Embedding model")
        texts = list(texts)
        self.calls.append(texts)
        for text in texts:
            if any(marker in text for marker in self.fail_on):
                raise EmbeddingError(f"refusing to embed {text[:20]!r}")
        return [fake_vector(text, self.dimension) for text in texts]

    def embed_one(self, text):
        return self.embed([text])[0]

    def embed_with_progress(self, texts, batch_size, callback=None):
        texts = list(texts)
        vectors = []
        for offset in range(0, len(texts), batch_size):
            vectors.extend(self.embed(texts[offset:offset + batch_size]))
            if callback:
                callback(min(offset + batch_size, len(texts)), len(texts))
        return vectors


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    # Cleanup
    if temp_path.exists():
        shutil.rmtree(temp_path)


@pytest.fixture
def indexer_config():
    """Default chunking settings."""
    return IndexerConfig()


@pytest.fixture
def config(temp_dir):
    """Configuration rooted in a temporary home directory."""
    return Config(home=temp_dir / "home")


@pytest.fixture
def vector_store(temp_dir):
    """An initialized vector store in a temporary directory."""
    store = VectorStore(temp_dir / "db" / "index.lance", dimension=DIMENSION)
    store.initialize()
    return store


@pytest.fixture
def fake_embedder():
    """An initialized deterministic embedder."""
    embedder = FakeEmbedder()
    embedder.initialize()
    return embedder


@pytest.fixture
def indexer(vector_store, fake_embedder, indexer_config):
    """An indexer over a real store and the fake embedder."""
    return Indexer(vector_store, fake_embedder, indexer_config, batch_size=8)


@pytest.fixture
def sample_codebase(temp_dir):
    """Create a small multi-language source tree."""
    root = temp_dir / "project"
    (root / "src").mkdir(parents=True)

    (root / "src" / "lib.rs").write_text(
        "fn parse_header(input: &str) -> Option<&str> {\n"
        "    input.split(':').next()\n"
        "}\n"
        "\n"
        "struct Header {\n"
        "    name: String,\n"
        "}\n"
    )
    (root / "src" / "utils.py").write_text(
        "def retry(times):\n"
        "    return times * 2\n"
        "\n"
        "\n"
        "class Cache:\n"
        "    def get(self, key):\n"
        "        return None\n"
    )
    (root / "notes.md").write_text("remember to rotate the keys\nand the logs\n")
    (root / "empty.py").write_text("")

    # Ignored directories
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "node_modules" / "dep" / "index.js").write_text("function dep() {}\n")
    (root / ".git").mkdir()
    (root / ".git" / "config.toml").write_text("[core]\n")

    # Binary file with an allowed extension
    (root / "src" / "blob.py").write_bytes(b"\x00\x01\x02binary")

    return root
