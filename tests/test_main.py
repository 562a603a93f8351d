"""Tests for the command line entry point."""

import json
from unittest.mock import MagicMock, patch

import pytest

from patchpilot import main as main_module

DIFF = (
    "diff --git a/src/app.py b/src/app.py\n"
    "--- a/src/app.py\n"
    "+++ b/src/app.py\n"
    "@@ -1,2 +1,3 @@\n"
    " import os\n"
    "+import sys\n"
    " x = 1\n"
)


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    for name in ("ANTHROPIC_API_KEY", "GITHUB_TOKEN", "GITHUB_REPOSITORY", "PR_NUMBER",
                 "SHOW_SKIPPED_FILES_COMMENT", "CUSTOM_STRUCTURED_PROMPT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    diff_file = tmp_path / "changes.diff"
    diff_file.write_text(DIFF)
    monkeypatch.setenv("DIFF_PATH", str(diff_file))
    return tmp_path


def fake_client():
    ai = MagicMock()
    ai.review.return_value = {
        "overall_review": {"summary": "ok"},
        "file_reviews": [{"filename": "src/app.py", "line_comments": [], "file_summary": "Unused import"}],
    }
    return ai


def test_local_diff_prints_report(capsys):
    with patch.object(main_module, "create_client", return_value=fake_client()):
        assert main_module.main() == 0

    out = capsys.readouterr().out
    report = json.loads(out[out.index("{"):out.rindex("}") + 1])
    assert report["files"][0]["filename"] == "src/app.py"
    assert report["files"][0]["candidates"][0] == {"line": 2, "kind": "added", "tier": 1}
    assert "Review completed" in out


def test_missing_api_key_fails(monkeypatch, capsys):
    monkeypatch.delenv("OPENAI_API_KEY")
    assert main_module.main() == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().out


def test_empty_diff_fails(env, capsys):
    (env / "changes.diff").write_text("")
    with patch.object(main_module, "create_client", return_value=fake_client()):
        assert main_module.main() == 1
    assert "No changed files" in capsys.readouterr().out
