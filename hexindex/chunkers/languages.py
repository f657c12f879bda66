"""
Language detection for hexindex.

SupportedLanguage is the closed set of languages with a tree-sitter grammar.
Each member carries its grammar loader and its top-level declaration kinds;
adding a language means adding a member here, nothing else.
"""

import enum
import importlib
import logging
from pathlib import PurePath
from typing import Optional

from tree_sitter import Language

logger = logging.getLogger(__name__)


class SupportedLanguage(enum.Enum):
    """
    Languages parsed with tree-sitter.

    Value tuple: (tag, grammar module, grammar function, declaration kinds).
    """

    RUST = (
        "rust",
        "tree_sitter_rust",
        "language",
        (
            "function_item",
            "impl_item",
            "struct_item",
            "enum_item",
            "trait_item",
            "mod_item",
            "const_item",
            "static_item",
            "type_item",
            "macro_definition",
        ),
    )
    TYPESCRIPT = (
        "typescript",
        "tree_sitter_typescript",
        "language_typescript",
        (
            "function_declaration",
            "class_declaration",
            "interface_declaration",
            "type_alias_declaration",
            "enum_declaration",
            "export_statement",
            "lexical_declaration",
            "variable_declaration",
        ),
    )
    TSX = (
        "tsx",
        "tree_sitter_typescript",
        "language_tsx",
        (
            "function_declaration",
            "class_declaration",
            "interface_declaration",
            "type_alias_declaration",
            "enum_declaration",
            "export_statement",
            "lexical_declaration",
            "variable_declaration",
        ),
    )
    JAVASCRIPT = (
        "javascript",
        "tree_sitter_javascript",
        "language",
        (
            "function_declaration",
            "class_declaration",
            "export_statement",
            "lexical_declaration",
            "variable_declaration",
        ),
    )
    PYTHON = (
        "python",
        "tree_sitter_python",
        "language",
        (
            "function_definition",
            "class_definition",
            "decorated_definition",
        ),
    )
    GO = (
        "go",
        "tree_sitter_go",
        "language",
        (
            "function_declaration",
            "method_declaration",
            "type_declaration",
            "const_declaration",
            "var_declaration",
        ),
    )

    @property
    def tag(self) -> str:
        """Language name stored on chunks (e.g. "rust", "tsx")."""
        return self.value[0]

    @property
    def top_level_kinds(self) -> tuple[str, ...]:
        """Node kinds treated as top-level declarations."""
        return self.value[3]

    def grammar(self) -> Language:
        """Load (once) and return the tree-sitter grammar for this language."""
        cached = _GRAMMARS.get(self)
        if cached is None:
            logger.debug(f"Lazy-loading tree-sitter language: {self.tag}")
            module = importlib.import_module(self.value[1])
            cached = Language(getattr(module, self.value[2])())
            _GRAMMARS[self] = cached
        return cached

    @classmethod
    def from_extension(cls, extension: str) -> Optional["SupportedLanguage"]:
        """Map a file extension (with or without the dot) to a supported language."""
        return _EXTENSION_MAP.get(extension.lower().lstrip("."))


_GRAMMARS: dict[SupportedLanguage, Language] = {}

_EXTENSION_MAP = {
    "rs": SupportedLanguage.RUST,
    "ts": SupportedLanguage.TYPESCRIPT,
    "tsx": SupportedLanguage.TSX,
    "js": SupportedLanguage.JAVASCRIPT,
    "mjs": SupportedLanguage.JAVASCRIPT,
    "cjs": SupportedLanguage.JAVASCRIPT,
    "jsx": SupportedLanguage.JAVASCRIPT,  # JSX uses the JS grammar
    "py": SupportedLanguage.PYTHON,
    "go": SupportedLanguage.GO,
}

# Generic language names for line-based chunks
_LANGUAGE_NAMES = {
    "rs": "rust",
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "go": "go",
    "java": "java",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "hpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "cs": "csharp",
    "rb": "ruby",
    "php": "php",
    "swift": "swift",
    "kt": "kotlin",
    "scala": "scala",
    "sql": "sql",
    "sh": "shell",
    "bash": "shell",
    "zsh": "shell",
    "yaml": "yaml",
    "yml": "yaml",
    "json": "json",
    "toml": "toml",
    "xml": "xml",
    "html": "html",
    "css": "css",
    "scss": "css",
    "md": "markdown",
}


def _extension(file_path: str) -> str:
    return PurePath(file_path).suffix.lstrip(".")


def detect_supported_language(file_path: str) -> Optional[SupportedLanguage]:
    """Return the tree-sitter language for a file, or None if unsupported."""
    extension = _extension(file_path)
    if not extension:
        return None
    return SupportedLanguage.from_extension(extension)


def detect_language(file_path: str) -> Optional[str]:
    """
    Detect a language name from the file extension.

    Unknown extensions map to themselves; files without an extension
    have no language.
    """
    extension = _extension(file_path)
    if not extension:
        return None
    lowered = extension.lower()
    return _LANGUAGE_NAMES.get(lowered, lowered)
