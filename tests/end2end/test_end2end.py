from __future__ import annotations

from pathlib import Path

import pytest

from sheafy import cli


def _tree(root: Path) -> dict[str, bytes]:
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


@pytest.mark.end2end
def test_end_to_end_bundle_then_restore(tmp_path: Path) -> None:
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    (project / "a.txt").write_text("Content A", encoding="utf-8")
    (project / "src" / "b.rs").write_text("fn main() {}", encoding="utf-8")

    assert cli.main(["--repo", str(project), "bundle", "-f", "txt,rs", "-o", "bundle.md"]) == 0

    bundle = project / "bundle.md"
    content = bundle.read_text(encoding="utf-8")
    assert content == "\n## a.txt\n```\nContent A\n```\n\n## src/b.rs\n```rust\nfn main() {}\n```\n"

    restored = tmp_path / "restored"
    restored.mkdir()
    (restored / "bundle.md").write_bytes(bundle.read_bytes())

    assert cli.main(["--repo", str(restored), "restore", "bundle.md"]) == 0

    assert (restored / "src").is_dir()
    assert (restored / "a.txt").read_text(encoding="utf-8") == "Content A\n"
    assert (restored / "src" / "b.rs").read_text(encoding="utf-8") == "fn main() {}\n"


@pytest.mark.end2end
def test_end_to_end_round_trip_is_exact_for_newline_terminated_files(tmp_path: Path) -> None:
    project = tmp_path / "project"
    files = {
        "README.md": "# Title\n\n## Section\n\ntext\n",
        "pkg/__init__.py": "\n",
        "pkg/core.py": "def f():\n    return 1\n\n\n",
        "pkg/win.txt": "crlf\r\nline\r\n",
        "docs/notes.txt": "unicode: héllo ✓\n",
    }
    for rel, text in files.items():
        path = project / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(text.encode("utf-8"))

    assert cli.main(["--repo", str(project), "bundle", "-f", "md,py,txt", "-o", "out.md"]) == 0
    first = (project / "out.md").read_bytes()
    assert cli.main(["--repo", str(project), "bundle", "-f", "md,py,txt", "-o", "out.md"]) == 0
    assert (project / "out.md").read_bytes() == first

    restored = tmp_path / "restored"
    restored.mkdir()
    (restored / "out.md").write_bytes(first)
    assert cli.main(["--repo", str(restored), "restore", "out.md"]) == 0

    restored_tree = _tree(restored)
    restored_tree.pop("out.md")
    assert restored_tree == {rel: text.encode("utf-8") for rel, text in files.items()}


@pytest.mark.end2end
def test_end_to_end_negation_and_gitignore(tmp_path: Path) -> None:
    project = tmp_path
    (project / "logs").mkdir()
    (project / "logs" / "app.log").write_text("Error!", encoding="utf-8")
    (project / "logs" / "important.log").write_text("Keep me!", encoding="utf-8")
    (project / "config.toml").write_text("[settings]", encoding="utf-8")
    (project / "b.log").write_text("Log B", encoding="utf-8")
    (project / ".gitignore").write_text("/b.log\n", encoding="utf-8")
    (project / "sheafy.toml").write_text(
        '[sheafy]\nfilters = ["log", "toml"]\nignore_patterns = """\nlogs/*\n!logs/important.log\nconfig.toml\n"""\n',
        encoding="utf-8",
    )

    assert cli.main(["--repo", str(project), "bundle"]) == 0
    bundle = (project / "project_bundle.md").read_text(encoding="utf-8")
    assert "\n## logs/important.log\n" in bundle
    for unexpected in ("logs/app.log", "config.toml", "b.log", "sheafy.toml"):
        assert f"\n## {unexpected}\n" not in bundle

    assert cli.main(["--repo", str(project), "bundle", "--no-gitignore", "-o", "all.md"]) == 0
    everything = (project / "all.md").read_text(encoding="utf-8")
    assert "\n## b.log\n" in everything
    assert "\n## project_bundle.md\n" not in everything


@pytest.mark.end2end
def test_end_to_end_binary_file_is_skipped(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / "invalid_utf8.bin").write_bytes(bytes([0x48, 0x65, 0x6C, 0x6C, 0x80, 0x6F]))
    (tmp_path / "valid.txt").write_text("Valid text", encoding="utf-8")

    assert cli.main(["--repo", str(tmp_path), "bundle", "-f", "bin,txt"]) == 0

    bundle = (tmp_path / "project_bundle.md").read_text(encoding="utf-8")
    assert "\n## valid.txt\n" in bundle
    assert "invalid_utf8.bin" not in bundle
    assert "invalid_utf8.bin" in caplog.text
