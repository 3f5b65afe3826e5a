from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

CONFIG_FILENAME = "sheafy.toml"
CONFIG_TABLE = "sheafy"
DEFAULT_BUNDLE_NAME = "project_bundle.md"

# Per-directory ignore files, in increasing precedence.
IGNORE_FILENAMES: tuple[str, ...] = (".gitignore", ".ignore")

# Written by `sheafy init`.
DEFAULT_FILTERS: tuple[str, ...] = ("py", "rs", "md", "toml", "txt")

FENCE = "```"


class FileType(StrEnum):
    """Categorization of bundled files, used only to pick a code fence hint."""

    TEXT = auto()
    PYTHON = auto()
    TOML = auto()
    JSON = auto()
    MARKDOWN = auto()
    YAML = auto()
    HTML = auto()
    CSS = auto()
    JAVASCRIPT = auto()
    TYPESCRIPT = auto()
    BASH = auto()
    RUST = auto()
    GO = auto()
    PHP = auto()
    SQL = auto()
    JAVA = auto()
    C = auto()
    CPP = auto()
    RUBY = auto()
    SWIFT = auto()
    KOTLIN = auto()
    SCALA = auto()
    XML = auto()
    INI = auto()
    OTHER = auto()


EXT2LANG: dict[str, FileType] = {
    "bash": FileType.BASH,
    "c": FileType.C,
    "cc": FileType.CPP,
    "cfg": FileType.INI,
    "conf": FileType.INI,
    "cpp": FileType.CPP,
    "css": FileType.CSS,
    "cxx": FileType.CPP,
    "go": FileType.GO,
    "h": FileType.C,
    "hpp": FileType.CPP,
    "htm": FileType.HTML,
    "html": FileType.HTML,
    "ini": FileType.INI,
    "java": FileType.JAVA,
    "js": FileType.JAVASCRIPT,
    "json": FileType.JSON,
    "kt": FileType.KOTLIN,
    "markdown": FileType.MARKDOWN,
    "md": FileType.MARKDOWN,
    "mjs": FileType.JAVASCRIPT,
    "php": FileType.PHP,
    "py": FileType.PYTHON,
    "rb": FileType.RUBY,
    "rs": FileType.RUST,
    "scala": FileType.SCALA,
    "sh": FileType.BASH,
    "sql": FileType.SQL,
    "swift": FileType.SWIFT,
    "toml": FileType.TOML,
    "ts": FileType.TYPESCRIPT,
    "tsx": FileType.TYPESCRIPT,
    "txt": FileType.TEXT,
    "xml": FileType.XML,
    "yaml": FileType.YAML,
    "yml": FileType.YAML,
    "zsh": FileType.BASH,
}

_FENCE_LANGUAGE: dict[FileType, str] = {
    FileType.PYTHON: "python",
    FileType.TOML: "toml",
    FileType.JSON: "json",
    FileType.MARKDOWN: "markdown",
    FileType.YAML: "yaml",
    FileType.HTML: "html",
    FileType.CSS: "css",
    FileType.JAVASCRIPT: "javascript",
    FileType.TYPESCRIPT: "typescript",
    FileType.BASH: "bash",
    FileType.RUST: "rust",
    FileType.GO: "go",
    FileType.PHP: "php",
    FileType.SQL: "sql",
    FileType.JAVA: "java",
    FileType.C: "c",
    FileType.CPP: "cpp",
    FileType.RUBY: "ruby",
    FileType.SWIFT: "swift",
    FileType.KOTLIN: "kotlin",
    FileType.SCALA: "scala",
    FileType.XML: "xml",
    FileType.INI: "ini",
    FileType.TEXT: "",
    FileType.OTHER: "",
}


def file_extension(path: Path | str) -> str:
    """Return the lower-cased extension of `path` without its leading dot.

    Args:
        path (Path | str): the file path (native or forward-slash form)

    Returns:
        str: the extension, or "" when the file name has none
    """
    return Path(path).suffix.lower().lstrip(".")


def guess_file_type(extension: str) -> FileType:
    """Heuristic guess of file type based on extension.

    Args:
        extension (str): the extension, with or without a leading dot, any case.

    Returns:
        FileType: The guessed file type, or FileType.OTHER if unknown.
    """
    return EXT2LANG.get(extension.lower().lstrip("."), FileType.OTHER)


def guess_language(extension: str) -> str:
    """Get the code fence language hint for an extension.

    Args:
        extension (str): the extension, with or without a leading dot, any case.

    Returns:
        str: The language token for code fences, or empty string if none.
    """
    return _FENCE_LANGUAGE.get(guess_file_type(extension), "")


class SelectedFile(BaseModel):
    """A file picked by the walker for bundling.

    Attributes:
        path: Absolute path to the file on disk.
        rel: Path relative to the working root, with forward slashes.
        extension: Lower-cased extension without the leading dot.
        language: Suggested code fence language (may be empty).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the working root")

    @computed_field
    @property
    def extension(self) -> str:
        """Lower-cased extension, used for filtering and the fence hint."""
        return file_extension(self.rel)

    @computed_field
    @property
    def language(self) -> str:
        """Get the suggested code fence language based on the extension."""
        return guess_language(self.extension)
