from __future__ import annotations

import pytest

from sheafy import ignore_rules


@pytest.fixture(autouse=True)
def _no_global_git_excludes(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's global git ignore file out of the tests."""
    monkeypatch.setattr(ignore_rules, "global_excludes_file", lambda: None)
