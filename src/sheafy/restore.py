"""Parse a Markdown bundle back into files.

A block is a `## <path>` header line, an opening fence line (three backticks
and an optional language token) and everything up to the first closing fence
line. Fences inside file content are not supported: the first closing fence
always ends the block.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from sheafy.config import FENCE
from sheafy.logging import logger
from sheafy.output_construction import ensure_newline

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class BundleBlock:
    """One file block found in a bundle.

    Attributes:
        path: header path, trimmed, forward slashes.
        body: block content; every body line keeps its newline.
        language: language token of the opening fence (may be empty).
        line: 1-based line number of the header, for diagnostics.
    """

    path: str
    body: str
    language: str = ""
    line: int = 0


def header_path(line: str) -> str | None:
    """Return the trimmed path of a `## ` header line, or None if `line` is not a header."""
    if not line.startswith("##"):
        return None
    rest = line[2:]
    if rest and not rest[0].isspace():
        return None
    return rest.strip()


def opening_fence(line: str) -> str | None:
    """Return the language token of an opening fence line, or None if `line` is not one."""
    if not line.startswith(FENCE):
        return None
    return line[len(FENCE) :].strip()


def is_closing_fence(line: str) -> bool:
    return line.rstrip() == FENCE


def parse_bundle(text: str) -> Iterator[BundleBlock]:
    """Scan a bundle document for file blocks, in document order.

    A header not directly followed by an opening fence is ordinary text. A
    block whose fence is never closed ends the scan with a warning.

    Args:
        text (str): the bundle document

    Yields:
        Iterator[BundleBlock]: the blocks found
    """
    lines = text.split("\n")
    i = 0
    while i < len(lines) - 1:
        path = header_path(lines[i])
        language = opening_fence(lines[i + 1]) if path is not None else None
        if path is None or language is None:
            i += 1
            continue
        start = i + 2
        end = start
        while end < len(lines) and not is_closing_fence(lines[end]):
            end += 1
        if end >= len(lines):
            logger.warning("Unterminated code fence for block %r at line %d. Stopping.", path, i + 1)
            return
        body = "".join(f"{ln}\n" for ln in lines[start:end])
        yield BundleBlock(path=path, body=body, language=language, line=i + 1)
        i = end + 1


def target_for(destination: Path, rel: str) -> Path | None:
    """Map a header path onto `destination`, or None if it would escape it.

    Args:
        destination (Path): resolved directory files are restored into
        rel (str): forward-slash header path

    Returns:
        Path | None: the native target path
    """
    if PurePosixPath(rel).is_absolute() or Path(rel).is_absolute():
        return None
    # Only "/" separates; "a/../b" stays inside, "a/../../b" does not.
    parts = PurePosixPath(posixpath.normpath(rel)).parts
    if not parts or parts[0] == "..":
        return None
    return destination.joinpath(*parts)


def write_restored_file(target: Path, body: str) -> None:
    """Create or overwrite `target` with `body`, creating missing parent directories.

    Raises:
        OSError: if a directory or the file cannot be created or written.
        ValueError: if the path holds characters the OS rejects, such as NUL.
    """
    if not target.parent.exists():
        logger.info("Creating directory %s", target.parent)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8", newline="") as f:
        f.write(ensure_newline(body))
        f.flush()


def restore_bundle(text: str, destination: Path) -> int:
    """Restore every block of a bundle document under `destination`.

    Existing files are overwritten. Blocks with an empty path or a path leaving
    `destination` are skipped, as is any single file that fails to be written.

    Args:
        text (str): the bundle document
        destination (Path): the directory to restore into

    Returns:
        int: the number of files written
    """
    destination = destination.resolve()
    found = 0
    restored = 0
    for block in parse_bundle(text):
        found += 1
        if not block.path:
            logger.warning("Found block with empty filepath at line %d. Skipping.", block.line)
            continue
        target = target_for(destination, block.path)
        if target is None:
            logger.warning("Refusing to restore %r outside of %s. Skipping.", block.path, destination)
            continue
        logger.info("Restoring %s", block.path)
        try:
            write_restored_file(target, block.body)
        except (OSError, ValueError) as e:
            logger.warning("Could not write file %s: %s. Skipping.", target, e)
            continue
        restored += 1

    if found == 0:
        logger.info("No blocks found, nothing restored.")
    return restored
