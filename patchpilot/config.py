"""Configuration loader."""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from patchpilot.errors import PreconditionError

DEFAULT_CONFIG_DIR = "/app/config"
ESTIMATORS = ("chars", "tiktoken")


@dataclass(frozen=True)
class Config:
    """Configuration from YAML file, fixed for the duration of a run."""

    # AI settings
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    ollama_url: str = "http://localhost:11434"
    max_tokens: int = 4096
    temperature: float = 0.3
    system_prompt: str = ""

    # Budgeting
    token_estimator: str = "chars"
    tiktoken_encoding: str = "cl100k_base"
    batch_delay_seconds: float = 20.0

    # GitHub settings
    github_api_url: str = "https://api.github.com"

    # Review behavior
    show_skipped_files_comment: bool = True
    comment_prefix: str = "[patchpilot]"
    ignore_patterns: list = field(default_factory=list)

    @property
    def budget(self) -> int:
        """Unit ceiling for one file and for one batch: half of `max_tokens`."""
        return self.max_tokens // 2

    def validate(self) -> "Config":
        if not 1 <= self.max_tokens <= 128000:
            raise PreconditionError(f"Invalid max_tokens value: {self.max_tokens}. Must be between 1 and 128000")
        if self.budget < 1:
            raise PreconditionError(f"max_tokens {self.max_tokens} leaves no budget for patches")
        if self.batch_delay_seconds < 0:
            raise PreconditionError("batch_delay_seconds cannot be negative")
        if self.token_estimator not in ESTIMATORS:
            raise PreconditionError(f"Unknown token_estimator: {self.token_estimator}")
        return self


def _env_overrides() -> dict:
    overrides = {}
    if os.environ.get("SHOW_SKIPPED_FILES_COMMENT"):
        overrides["show_skipped_files_comment"] = os.environ["SHOW_SKIPPED_FILES_COMMENT"].lower() != "false"
    if os.environ.get("CUSTOM_STRUCTURED_PROMPT"):
        overrides["system_prompt"] = os.environ["CUSTOM_STRUCTURED_PROMPT"]
    return overrides


def load_config(config_dir: str | Path | None = None) -> Config:
    """Load config from YAML files, then apply environment overrides."""
    config_dir = Path(config_dir or os.environ.get("CONFIG_DIR", DEFAULT_CONFIG_DIR))

    # Load main config
    main_file = config_dir / "review-config.yml"
    data = {}
    if main_file.exists():
        with open(main_file) as f:
            data = yaml.safe_load(f) or {}

    # Apply custom overrides if mounted
    custom_file = config_dir / "custom.yml"
    if custom_file.exists():
        with open(custom_file) as f:
            overrides = yaml.safe_load(f) or {}
        data.update(overrides)

    data.update(_env_overrides())

    known = {f.name for f in fields(Config)}
    return Config(**{k: v for k, v in data.items() if k in known}).validate()
