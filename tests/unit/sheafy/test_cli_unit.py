from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from sheafy import __version__, cli
from sheafy.logging import LOGGER_NAME

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_parse_args_bundle_options() -> None:
    args = cli.parse_args(["bundle", "-f", "rs,py", "--filters", "txt", "-o", "out.md", "--no-gitignore"])

    assert args.command == "bundle"
    assert args.filters == ["rs,py", "txt"]
    assert args.output == "out.md"
    assert args.no_gitignore is True
    assert args.use_gitignore is False


@pytest.mark.unit
def test_parse_args_restore_input_is_optional() -> None:
    assert cli.parse_args(["restore"]).input_file is None
    assert cli.parse_args(["restore", "bundle.md"]).input_file == "bundle.md"


@pytest.mark.unit
def test_parse_args_requires_a_command() -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args([])

    assert exc_info.value.code == 2  # noqa: PLR2004


@pytest.mark.unit
def test_parse_args_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["--version"])

    assert exc_info.value.code == 0
    captured = capsys.readouterr()
    assert __version__ in captured.out


@pytest.mark.unit
def test_main_conflicting_flags_fails_before_walking(
    tmp_path: Path,
    mocker: MockerFixture,
    caplog: pytest.LogCaptureFixture,
) -> None:
    walk_mock = mocker.patch.object(cli, "walk_files")

    exit_code = cli.main(
        ["--repo", str(tmp_path), "bundle", "-f", "txt", "--use-gitignore", "--no-gitignore"],
    )

    assert exit_code == 1
    walk_mock.assert_not_called()
    assert "Cannot specify both --use-gitignore and --no-gitignore" in caplog.text
    assert list(tmp_path.iterdir()) == []


@pytest.mark.unit
def test_main_missing_filters_is_an_error(tmp_path: Path, mocker: MockerFixture) -> None:
    walk_mock = mocker.patch.object(cli, "walk_files")

    exit_code = cli.main(["--repo", str(tmp_path), "bundle"])

    assert exit_code == 1
    walk_mock.assert_not_called()


@pytest.mark.unit
def test_main_invalid_config_is_fatal(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / "sheafy.toml").write_text("[sheafy\n", encoding="utf-8")
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")

    exit_code = cli.main(["--repo", str(tmp_path), "bundle", "-f", "txt"])

    assert exit_code == 1
    assert not (tmp_path / "project_bundle.md").exists()
    assert "Invalid configuration" in caplog.text


@pytest.mark.unit
def test_main_empty_selection_writes_nothing(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "notes.md").write_text("# notes\n", encoding="utf-8")

    exit_code = cli.main(["--repo", str(tmp_path), "bundle", "-f", "rs"])

    assert exit_code == 0
    assert not (tmp_path / "project_bundle.md").exists()
    assert "No files matched" in capsys.readouterr().out


@pytest.mark.unit
def test_main_restore_missing_bundle_is_fatal(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    exit_code = cli.main(["--repo", str(tmp_path), "restore", "nope.md"])

    assert exit_code == 1
    assert "Failed to read bundle" in caplog.text


@pytest.mark.unit
def test_main_init_creates_config_once(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    assert cli.main(["--repo", str(tmp_path), "init"]) == 0
    config = (tmp_path / "sheafy.toml").read_text(encoding="utf-8")
    assert "bundle_name =" in config
    assert "# ignore_patterns =" in config

    assert cli.main(["--repo", str(tmp_path), "init"]) == 1
    assert "Config file already exists" in caplog.text


@pytest.fixture
def _detach_file_handlers() -> Iterator[None]:
    yield
    sheafy_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(sheafy_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            sheafy_logger.removeHandler(handler)
            handler.close()


@pytest.mark.unit
@pytest.mark.usefixtures("_detach_file_handlers")
def test_main_writes_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "sheafy.log"
    log_file.parent.mkdir()
    (tmp_path / "a.txt").write_text("a\n", encoding="utf-8")

    exit_code = cli.main(["--repo", str(tmp_path), "--log-file", str(log_file), "bundle", "-f", "txt"])

    assert exit_code == 0
    assert "a.txt" in log_file.read_text(encoding="utf-8")


@pytest.mark.unit
def test_main_unwritable_bundle_is_fatal(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / "a.txt").write_text("a\n", encoding="utf-8")

    exit_code = cli.main(["--repo", str(tmp_path), "bundle", "-f", "txt", "-o", "missing/out.md"])

    assert exit_code == 1
    assert not (tmp_path / "missing").exists()
    assert "Failed to write bundle" in caplog.text
