from __future__ import annotations

from typing import TYPE_CHECKING

from sheafy.config import FENCE
from sheafy.exceptions import BundleWriteError
from sheafy.file_manipulation import read_text
from sheafy.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from sheafy.config import SelectedFile

    ContentLoader = Callable[[Path], str]


def ensure_newline(text: str) -> str:
    """Return `text` with a trailing newline, adding one only if it is missing."""
    return text if text.endswith("\n") else text + "\n"


def render_block(rel: str, content: str, language: str = "") -> str:
    """Render one file block of a bundle.

    The block is preceded by a blank line, and the content always ends with
    exactly the newlines it had plus one when it had none, so the closing fence
    sits on its own line.

    Args:
        rel (str): forward-slash path written in the header
        content (str): raw file content
        language (str): code fence hint, may be empty

    Returns:
        str: the rendered block
    """
    return f"\n## {rel}\n{FENCE}{language}\n{ensure_newline(content)}{FENCE}\n"


def write_bundle(
    destination: Path,
    files: Sequence[SelectedFile],
    *,
    prologue: str | None = None,
    epilogue: str | None = None,
    loader: ContentLoader = read_text,
) -> int:
    """Write the bundle for `files` to `destination`, overwriting it.

    Files are written in the given order. A file that cannot be loaded (I/O
    error or invalid UTF-8) is reported and left out.

    Args:
        destination (Path): the bundle file to create
        files (Sequence[SelectedFile]): the files to bundle, already sorted
        prologue (str | None): text written verbatim before the first block
        epilogue (str | None): text written verbatim after the last block
        loader (ContentLoader): reads a file's content

    Raises:
        BundleWriteError: if the bundle file cannot be created or written.

    Returns:
        int: the number of file blocks written
    """
    written = 0
    try:
        with destination.open("w", encoding="utf-8", newline="") as out:
            if prologue:
                out.write(ensure_newline(prologue))
            for rec in files:
                try:
                    content = loader(rec.path)
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning("Could not read file %s: %s. Skipping.", rec.rel, e)
                    continue
                logger.info("Adding %s", rec.rel)
                out.write(render_block(rec.rel, content, rec.language))
                written += 1
            if epilogue:
                if written or prologue:
                    out.write("\n")
                out.write(epilogue)
            out.flush()
    except OSError as e:
        raise BundleWriteError(path=destination, reason=str(e)) from e
    return written
