from __future__ import annotations

import os
import stat
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from sheafy.config import SelectedFile, file_extension
from sheafy.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from contextvars import Token

    from sheafy.ignore_rules import IgnoreRuleSet


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def canonical(path: Path) -> Path | None:
    """Resolve a path to its absolute, symlink-free form, or None if that fails."""
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return None


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular, following symlinks.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.

    Raises:
        OSError: if the path cannot be stat'ed (broken symlink, permission denied...).
    """
    return stat.S_ISREG(path.stat().st_mode)


def normalize_extensions(values: Iterable[str] | None) -> frozenset[str]:
    """Normalize extension filters coming from the CLI or the config file.

    Entries may themselves be comma separated, carry a leading dot or any case.

    Args:
        values (Iterable[str] | None): raw filter values

    Returns:
        frozenset[str]: lower-cased extensions without leading dot
    """
    out: set[str] = set()
    for value in values or ():
        for part in value.split(","):
            ext = part.strip().lstrip(".").lower()
            if ext:
                out.add(ext)
    return frozenset(out)


def always_excluded_paths(*paths: Path | None) -> frozenset[Path]:
    """Build the set of canonical paths that are never bundled.

    The running program (its script and interpreter) is always part of the set;
    callers pass the config file and the output bundle. Paths that do not exist
    yet are kept in their absolute form so they still match once created.

    Args:
        *paths (Path | None): additional paths to exclude; None entries are ignored.

    Returns:
        frozenset[Path]: canonical absolute paths
    """
    candidates: list[Path] = [p for p in paths if p is not None]
    if sys.argv and sys.argv[0]:
        candidates.append(Path(sys.argv[0]))
    if sys.executable:
        candidates.append(Path(sys.executable))
    out: set[Path] = set()
    for p in candidates:
        resolved = canonical(p)
        out.add(resolved if resolved is not None else p.absolute())
    return frozenset(out)


def read_text(path: Path) -> str:
    """Load a file as UTF-8 text without translating line endings.

    Args:
        path (Path): the file to read

    Returns:
        str: the file content

    Raises:
        OSError: if the file cannot be opened or read.
        UnicodeDecodeError: if the content is not valid UTF-8.
    """
    with path.open(encoding="utf-8", newline="") as f:
        return f.read()


class rooted_at:  # noqa: N801
    """Scope a run to `root`.

    The resolved root is bound to the structured logging context until the block
    exits, whichever way it exits. The process working directory is never changed.
    Exceptions raised in the block pass through untouched.

    Args:
        root (Path): the directory to work in
    """

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()
        self._tokens: Mapping[str, Token[Any]] = {}

    def __enter__(self) -> Path:
        self._tokens = structlog.contextvars.bind_contextvars(root=str(self.root))
        return self.root

    def __exit__(self, *exc_info: object) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)


def _on_walk_error(error: OSError) -> None:
    logger.warning("Skipping path due to error: %s", error)


def walk_files(
    root: Path,
    rules: IgnoreRuleSet,
    extensions: Iterable[str] = (),
    always_exclude: Iterable[Path] = (),
) -> list[SelectedFile]:
    """Walk the directory tree rooted at `root` and select the files to bundle.

    Directories excluded by `rules` are pruned; nested ignore files extend the
    rules for their subtree. A file is kept when it is a regular file (symlinks
    to files are followed), is not one of `always_exclude`, has an extension in
    `extensions` (when non-empty) and is not excluded by `rules`.

    Errors on single entries are logged and the entry is skipped.

    Args:
        root (Path): the root directory to walk
        rules (IgnoreRuleSet): compiled ignore rules for `root`
        extensions (Iterable[str]): allowed extensions, already normalized
        always_exclude (Iterable[Path]): canonical paths that are never selected

    Returns:
        list[SelectedFile]: the selected files, sorted by forward-slash relative path
    """
    root = root.resolve()
    allowed = frozenset(extensions)
    excluded = frozenset(always_exclude)
    dir_rules: dict[str, IgnoreRuleSet] = {"": rules}
    results: list[SelectedFile] = []

    for current, dirs, files in os.walk(root, onerror=_on_walk_error):
        here = Path(current)
        rel_dir = relpath(here, root) if here != root else ""
        current_rules = dir_rules.pop(rel_dir, rules).for_directory(rel_dir)

        kept: list[str] = []
        for d in sorted(dirs):
            rel = f"{rel_dir}/{d}" if rel_dir else d
            if current_rules.verdict(rel, is_dir=True):
                logger.debug("Pruning ignored directory %s", rel)
                continue
            kept.append(d)
            dir_rules[rel] = current_rules
        dirs[:] = kept

        for f in files:
            rel = f"{rel_dir}/{f}" if rel_dir else f
            path = here / f
            try:
                if not is_regular_file(path):
                    continue
            except OSError as e:
                logger.warning("Skipping %s: %s", rel, e)
                continue
            if canonical(path) in excluded:
                logger.info("Skipping always-excluded file %s", rel)
                continue
            if allowed and file_extension(f) not in allowed:
                continue
            if current_rules.verdict(rel):
                continue
            results.append(SelectedFile(path=path, rel=rel))

    return sorted(results, key=lambda rec: rec.rel)
