"""Layered gitignore-style rules deciding which paths a bundle skips.

Rules are compiled into an ordered list of layers. A layer is a block of
gitwildmatch patterns (via `pathspec`) anchored at a directory. Evaluation walks
every layer in order and keeps the verdict of the last matching pattern, so a
later `!pattern` re-includes what an earlier, broader one excluded.
"""

from __future__ import annotations

import os
import subprocess  # noqa: S404
from dataclasses import dataclass
from enum import StrEnum, auto
from pathlib import Path
from typing import TYPE_CHECKING

from pathspec.patterns import GitWildMatchPattern

from sheafy.config import IGNORE_FILENAMES
from sheafy.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class IgnoreOrigin(StrEnum):
    """Where a layer of ignore patterns comes from."""

    HIDDEN = auto()
    VCS_GLOBAL = auto()
    VCS_EXCLUDE = auto()
    VCS_IGNORE = auto()
    USER_PATTERNS = auto()


HIDDEN_PATTERNS: tuple[str, ...] = (".*",)


def _directory_only(pattern: GitWildMatchPattern) -> bool:
    return str(pattern.pattern).rstrip().endswith("/")


@dataclass(frozen=True)
class IgnoreLayer:
    """One source of ignore patterns.

    Attributes:
        origin: the kind of source.
        patterns: compiled patterns, in file order.
        scope: root-relative directory (forward slashes, "" for the root) the
            layer applies to. Paths outside it are never matched.
        prefix: path of `scope` relative to the directory the patterns are
            anchored at, used when that directory lies above the root.
        source: file the patterns were read from, for diagnostics.
    """

    origin: IgnoreOrigin
    patterns: tuple[GitWildMatchPattern, ...]
    scope: str = ""
    prefix: str = ""
    source: Path | None = None

    def anchored(self, rel: str) -> str | None:
        """Express a root-relative path relative to the layer's anchor directory."""
        if self.scope:
            if not rel.startswith(self.scope + "/"):
                return None
            rel = rel[len(self.scope) + 1 :]
        return f"{self.prefix}/{rel}" if self.prefix else rel

    def verdict(self, rel: str, *, is_dir: bool) -> bool | None:
        """Return the last matching verdict of this layer, or None when nothing matches."""
        local = self.anchored(rel)
        if local is None:
            return None
        result: bool | None = None
        for pattern in self.patterns:
            matched = pattern.regex.match(local) is not None
            # Only directory-only patterns ("build/") see the trailing-slash form,
            # so "foo/**" matches the content of foo but not foo itself.
            if not matched and is_dir and _directory_only(pattern):
                matched = pattern.regex.match(f"{local}/") is not None
            if matched:
                result = bool(pattern.include)
        return result


@dataclass(frozen=True)
class IgnoreRuleSet:
    """Immutable, ordered set of ignore layers.

    `layers` holds the standard filters (hidden files and VCS rules) in
    increasing specificity; `overrides` holds user patterns, which are always
    evaluated last.
    """

    root: Path
    standard_filters: bool = True
    layers: tuple[IgnoreLayer, ...] = ()
    overrides: tuple[IgnoreLayer, ...] = ()

    def all_layers(self) -> tuple[IgnoreLayer, ...]:
        return (*self.layers, *self.overrides)

    def verdict(self, rel: str, *, is_dir: bool = False) -> bool | None:
        """Decide a path on its own, ignoring its ancestors.

        Args:
            rel (str): forward-slash path relative to the root.
            is_dir (bool): whether the path is a directory.

        Returns:
            bool | None: True when excluded, False when explicitly re-included,
                None when no pattern matched.
        """
        result: bool | None = None
        for layer in self.all_layers():
            layer_verdict = layer.verdict(rel, is_dir=is_dir)
            if layer_verdict is not None:
                result = layer_verdict
        return result

    def is_excluded(self, rel: str, *, is_dir: bool = False) -> bool:
        """Check whether a path is excluded, taking excluded ancestors into account.

        A path below an excluded directory cannot be re-included, which keeps
        pruning during the walk equivalent to filtering its output afterwards.

        Args:
            rel (str): forward-slash path relative to the root.
            is_dir (bool): whether the path is a directory.

        Returns:
            bool: True if the path must be skipped.
        """
        parts = rel.split("/")
        for depth in range(1, len(parts)):
            if self.verdict("/".join(parts[:depth]), is_dir=True):
                return True
        return bool(self.verdict(rel, is_dir=is_dir))

    def for_directory(self, rel_dir: str) -> IgnoreRuleSet:
        """Return a rule set extended with the ignore files found in `rel_dir`.

        Args:
            rel_dir (str): forward-slash directory relative to the root ("" for the root).

        Returns:
            IgnoreRuleSet: a new rule set, or `self` when nothing was added.
        """
        if not self.standard_filters or not rel_dir:
            return self
        directory = self.root.joinpath(*rel_dir.split("/"))
        added = tuple(_directory_layers(directory, scope=rel_dir))
        if not added:
            return self
        return IgnoreRuleSet(
            root=self.root,
            standard_filters=self.standard_filters,
            layers=(*self.layers, *added),
            overrides=self.overrides,
        )


def parse_patterns(
    text: str,
    *,
    origin: IgnoreOrigin = IgnoreOrigin.USER_PATTERNS,
    source: Path | None = None,
) -> tuple[GitWildMatchPattern, ...]:
    """Compile newline separated gitignore-style pattern text.

    Blank lines and `#` comments are dropped, `!` negates. Lines rejected by
    the pattern compiler are skipped with a warning.

    Args:
        text (str): the pattern text.
        origin (IgnoreOrigin): layer kind, for diagnostics.
        source (Path | None): file the text came from, for diagnostics.

    Returns:
        tuple[GitWildMatchPattern, ...]: the compiled patterns, in order.
    """
    patterns: list[GitWildMatchPattern] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.rstrip("\r")
        try:
            pattern = GitWildMatchPattern(line)
        except ValueError as e:
            logger.warning(
                "Skipping invalid ignore pattern %r (%s line %d): %s",
                line,
                source or origin,
                lineno,
                e,
            )
            continue
        if pattern.include is None:
            continue
        patterns.append(pattern)
    return tuple(patterns)


def _read_patterns(path: Path, origin: IgnoreOrigin) -> tuple[GitWildMatchPattern, ...]:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Could not read ignore file %s: %s", path, e)
        return ()
    return parse_patterns(text, origin=origin, source=path)


def _directory_layers(directory: Path, *, scope: str = "", prefix: str = "") -> Iterator[IgnoreLayer]:
    for name in IGNORE_FILENAMES:
        candidate = directory / name
        if not candidate.is_file():
            continue
        patterns = _read_patterns(candidate, IgnoreOrigin.VCS_IGNORE)
        if patterns:
            yield IgnoreLayer(
                origin=IgnoreOrigin.VCS_IGNORE,
                patterns=patterns,
                scope=scope,
                prefix=prefix,
                source=candidate,
            )


def find_work_tree(root: Path) -> Path | None:
    """Find the git work tree containing `root` by looking for a `.git` entry upward.

    Args:
        root (Path): resolved directory to start from.

    Returns:
        Path | None: the work tree directory, or None outside of a repository.
    """
    for candidate in (root, *root.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


def git_dir_of(work_tree: Path) -> Path | None:
    """Locate the git directory of a work tree, following `gitdir:` files."""
    dot_git = work_tree / ".git"
    if dot_git.is_dir():
        return dot_git
    try:
        content = dot_git.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    if not content.startswith("gitdir:"):
        return None
    git_dir = Path(content.removeprefix("gitdir:").strip())
    return git_dir if git_dir.is_absolute() else (work_tree / git_dir).resolve()


def global_excludes_file() -> Path | None:
    """Locate the user's global git ignore file.

    Uses `core.excludesFile` when git is available and configured, otherwise
    the XDG default location.

    Returns:
        Path | None: the file, or None when it does not exist.
    """
    configured = ""
    try:
        out = subprocess.run(
            ["git", "config", "--global", "--path", "--get", "core.excludesFile"],  # noqa: S607
            text=True,
            capture_output=True,
            check=False,
        )
        configured = out.stdout.strip()
    except OSError as e:
        logger.info("git unavailable, using default global ignore location: %s", e)
    if configured:
        candidate = Path(configured).expanduser()
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        candidate = Path(xdg) / "git" / "ignore"
    return candidate if candidate.is_file() else None


def _relative_posix(path: Path, start: Path) -> str:
    rel = path.relative_to(start).as_posix()
    return "" if rel == "." else rel


def _standard_layers(root: Path, anchor: Path) -> Iterator[IgnoreLayer]:
    prefix = _relative_posix(root, anchor)
    yield IgnoreLayer(
        origin=IgnoreOrigin.HIDDEN,
        patterns=tuple(GitWildMatchPattern(p) for p in HIDDEN_PATTERNS),
    )

    global_file = global_excludes_file()
    if global_file is not None:
        patterns = _read_patterns(global_file, IgnoreOrigin.VCS_GLOBAL)
        if patterns:
            yield IgnoreLayer(IgnoreOrigin.VCS_GLOBAL, patterns, prefix=prefix, source=global_file)

    git_dir = git_dir_of(anchor)
    if git_dir is not None:
        exclude = git_dir / "info" / "exclude"
        if exclude.is_file():
            patterns = _read_patterns(exclude, IgnoreOrigin.VCS_EXCLUDE)
            if patterns:
                yield IgnoreLayer(IgnoreOrigin.VCS_EXCLUDE, patterns, prefix=prefix, source=exclude)

    # Ignore files of parent directories up to the work tree, outermost first.
    parents = [d for d in root.parents if d == anchor or anchor in d.parents]
    for directory in reversed(parents):
        yield from _directory_layers(directory, prefix=_relative_posix(root, directory))
    yield from _directory_layers(root)


def compile_rules(
    root: Path,
    *,
    standard_filters: bool = True,
    extra_patterns: str | Iterable[str] | None = None,
) -> IgnoreRuleSet:
    """Compile the ignore rules used to walk `root`.

    With `standard_filters` the layers are, in increasing specificity: hidden
    files, the global git ignore file, the repository's `info/exclude`, then
    `.gitignore`/`.ignore` files from the work tree down to `root`. Files in
    nested directories are added while walking (`IgnoreRuleSet.for_directory`).
    `extra_patterns` always come last.

    Args:
        root (Path): the directory being bundled.
        standard_filters (bool): whether hidden-file and VCS rules apply.
        extra_patterns (str | Iterable[str] | None): user pattern text or lines.

    Returns:
        IgnoreRuleSet: the compiled rule set.
    """
    root = root.resolve()
    layers: tuple[IgnoreLayer, ...] = ()
    anchor: Path | None = None
    if standard_filters:
        anchor = find_work_tree(root) or root
        layers = tuple(_standard_layers(root, anchor))

    overrides: tuple[IgnoreLayer, ...] = ()
    if extra_patterns:
        text = extra_patterns if isinstance(extra_patterns, str) else "\n".join(extra_patterns)
        patterns = parse_patterns(text)
        if patterns:
            overrides = (IgnoreLayer(IgnoreOrigin.USER_PATTERNS, patterns),)

    rules = IgnoreRuleSet(
        root=root,
        standard_filters=standard_filters,
        layers=layers,
        overrides=overrides,
    )
    logger.info(
        "Compiled ignore rules",
        standard_filters=standard_filters,
        layers=[str(layer.source or layer.origin) for layer in rules.all_layers()],
    )
    return rules
