"""Tests for configuration loading."""

import dataclasses

import pytest

from patchpilot.config import Config, load_config
from patchpilot.errors import PreconditionError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SHOW_SKIPPED_FILES_COMMENT", "CUSTOM_STRUCTURED_PROMPT", "CONFIG_DIR"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_no_files(tmp_path):
    config = load_config(tmp_path)
    assert config == Config()
    assert config.budget == 2048
    assert config.show_skipped_files_comment is True


def test_custom_file_overrides_main_file(tmp_path):
    (tmp_path / "review-config.yml").write_text("max_tokens: 1000\nmodel: gpt-4o\nunknown_key: 1\n")
    (tmp_path / "custom.yml").write_text("max_tokens: 3000\nbatch_delay_seconds: 0\n")

    config = load_config(tmp_path)

    assert config.max_tokens == 3000
    assert config.budget == 1500
    assert config.model == "gpt-4o"
    assert config.batch_delay_seconds == 0


def test_config_dir_from_environment(tmp_path, monkeypatch):
    (tmp_path / "review-config.yml").write_text("provider: anthropic\n")
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    assert load_config().provider == "anthropic"


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("SHOW_SKIPPED_FILES_COMMENT", "false")
    monkeypatch.setenv("CUSTOM_STRUCTURED_PROMPT", "Review tersely.")

    config = load_config(tmp_path)

    assert config.show_skipped_files_comment is False
    assert config.system_prompt == "Review tersely."


@pytest.mark.parametrize("content", [
    "max_tokens: 0\n",
    "max_tokens: 200000\n",
    "batch_delay_seconds: -1\n",
    "token_estimator: words\n",
])
def test_invalid_values_are_preconditions(tmp_path, content):
    (tmp_path / "review-config.yml").write_text(content)
    with pytest.raises(PreconditionError):
        load_config(tmp_path)


def test_config_is_immutable():
    with pytest.raises(dataclasses.FrozenInstanceError):
        Config().max_tokens = 10
