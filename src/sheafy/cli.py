"""
sheafy: bundle project files into one Markdown document, and restore them.

Overview
--------
`sheafy bundle` walks the working directory, keeps the files whose extension
is listed in `--filters` (or `filters` in `sheafy.toml`), drops what the ignore
rules exclude (hidden files, `.gitignore`/`.ignore` files, git's global and
repository excludes, and the `ignore_patterns` of the config), and writes each
remaining file as a `## path` header followed by a fenced code block.

`sheafy restore` reads such a document and writes every block back to disk,
overwriting existing files.

`sheafy init` writes a commented default `sheafy.toml`.

Usage
-----
    sheafy init
    sheafy bundle -f py,toml -o bundle.md
    sheafy bundle --no-gitignore
    sheafy restore bundle.md
    sheafy --repo path/to/project --log-file sheafy.log bundle
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from sheafy import __version__
from sheafy.exceptions import BundleReadError, SheafyError
from sheafy.file_manipulation import always_excluded_paths, read_text, rooted_at, walk_files
from sheafy.ignore_rules import compile_rules
from sheafy.logging import logger, setup_logging
from sheafy.output_construction import write_bundle
from sheafy.restore import restore_bundle
from sheafy.settings import (
    BundleSettings,
    RestoreSettings,
    default_config_path,
    init_config,
    load_project_config,
    resolve_bundle_settings,
    resolve_restore_settings,
)

if TYPE_CHECKING:
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser.

    Returns:
        argparse.ArgumentParser: Configured parser.
    """
    p = argparse.ArgumentParser(
        prog="sheafy",
        description="Bundle project files into a single Markdown document and restore them.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--repo",
        type=str,
        default=".",
        help="Project directory holding sheafy.toml (default: current directory).",
    )
    p.add_argument(
        "--config",
        type=str,
        default="",
        help="Configuration file (default: <repo>/sheafy.toml).",
    )
    p.add_argument("--log-file", type=str, default="", help="Also write logs to this file.")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="Initialize a new sheafy project with default config.")

    bundle = sub.add_parser("bundle", help="Bundle project files into a single Markdown file.")
    bundle.add_argument(
        "-f",
        "--filters",
        action="append",
        default=None,
        help="Comma-separated list of file extensions to include (e.g. rs,py,txt). Overrides config.",
    )
    bundle.add_argument("-o", "--output", type=str, default=None, help="Output Markdown filename. Overrides config.")
    bundle.add_argument(
        "--use-gitignore",
        action="store_true",
        help="Force use of hidden-file and .gitignore rules.",
    )
    bundle.add_argument(
        "--no-gitignore",
        action="store_true",
        help="Force disabling hidden-file and .gitignore rules.",
    )

    restore = sub.add_parser("restore", help="Restore files from a Markdown bundle, overwriting existing files.")
    restore.add_argument("input_file", nargs="?", default=None, help="The Markdown file to restore from.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def run_bundle(settings: BundleSettings) -> int:
    """Select the files and write the bundle.

    Args:
        settings (BundleSettings): effective bundle settings.

    Returns:
        int: Process exit code.
    """
    with rooted_at(settings.root) as root:
        logger.info(
            "Bundling",
            filters=sorted(settings.filters),
            output=str(settings.output),
            standard_filters=settings.use_standard_filters,
        )
        rules = compile_rules(
            root,
            standard_filters=settings.use_standard_filters,
            extra_patterns=settings.ignore_patterns,
        )
        excluded = always_excluded_paths(settings.config_path, settings.output)
        files = walk_files(root, rules, settings.filters, excluded)
        if not files:
            logger.info("No files found matching the specified filters and ignore rules.")
            print("No files matched; nothing bundled.")
            return 0
        count = write_bundle(
            settings.output,
            files,
            prologue=settings.prologue,
            epilogue=settings.epilogue,
        )
    print(f"Wrote {settings.output} files={count}")
    return 0


def run_restore(settings: RestoreSettings) -> int:
    """Read the bundle and restore its files.

    Args:
        settings (RestoreSettings): effective restore settings.

    Raises:
        BundleReadError: if the bundle cannot be read.

    Returns:
        int: Process exit code.
    """
    with rooted_at(settings.root) as root:
        try:
            text = read_text(settings.input)
        except (OSError, UnicodeDecodeError) as e:
            raise BundleReadError(path=settings.input, reason=str(e)) from e
        count = restore_bundle(text, root)
    print(f"Restored {count} file(s) from {settings.input}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the sheafy command line.

    Args:
        argv (Sequence[str] | None): Optional CLI arguments.

    Returns:
        int: Process exit code.
    """
    args = parse_args(argv)
    if args.log_file:
        setup_logging(args.log_file)

    repo = Path(args.repo).resolve()
    config_path = repo / args.config if args.config else default_config_path(repo)

    try:
        if args.command == "init":
            created = init_config(config_path)
            print(f"Created {created}")
            return 0

        config = load_project_config(config_path)
        if args.command == "bundle":
            settings = resolve_bundle_settings(
                repo,
                config,
                config_path=config_path,
                filters=args.filters,
                output=args.output,
                use_gitignore=args.use_gitignore,
                no_gitignore=args.no_gitignore,
            )
            return run_bundle(settings)
        return run_restore(resolve_restore_settings(repo, config, input_file=args.input_file))
    except SheafyError as e:
        logger.error(str(e), error=type(e).__name__)  # noqa: TRY400
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    raise SystemExit(main())
