#!/usr/bin/env python3
"""AI Code Review - Entry point."""

import json
import logging
import os
import sys
from pathlib import Path

from patchpilot.ai_client import create_client
from patchpilot.config import load_config
from patchpilot.diff_parser import parse_diff
from patchpilot.errors import PreconditionError
from patchpilot.github_client import GitHubClient
from patchpilot.models import ChangedFile
from patchpilot.review import ReviewRun


def read_local_diff(diff_path: str) -> list[ChangedFile]:
    """Changed files from a `git diff` output on stdin or in a file."""
    if diff_path in ("/dev/stdin", "-"):
        diff_content = sys.stdin.read()
    else:
        diff_content = Path(diff_path).read_text()
    return [f.to_changed_file() for f in parse_diff(diff_content)]


def main() -> int:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Get environment variables (names are fixed)
    api_key = os.environ.get("OPENAI_API_KEY") or os.environ.get("ANTHROPIC_API_KEY")
    github_token = os.environ.get("GITHUB_TOKEN")
    repo_name = os.environ.get("GITHUB_REPOSITORY")
    pr_number = os.environ.get("PR_NUMBER")
    diff_path = os.environ.get("DIFF_PATH")

    try:
        config = load_config()

        if not api_key and config.provider != "ollama":
            raise PreconditionError("OPENAI_API_KEY or ANTHROPIC_API_KEY required")

        github = None
        if github_token and repo_name and pr_number:
            github = GitHubClient(config, github_token, repo_name, int(pr_number))

        if diff_path or github is None:
            changed_files = read_local_diff(diff_path or "/dev/stdin")
        else:
            base = os.environ.get("BASE_REF")
            head = os.environ.get("HEAD_REF")
            if not (base and head):
                base, head = github.get_pr_refs()
            changed_files = github.get_changed_files(base, head)

        run = ReviewRun(config, create_client(config, api_key), poster=github)
        plan = run.prepare(changed_files)
    except (PreconditionError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    print(f"Reviewing {len(plan.gate.eligible)} files in {len(plan.batches)} batches")
    report = run.execute(plan)

    if github is None:
        print(json.dumps(report.to_dict(), indent=2))

    failed = [f.filename for f in report.files if f.error]
    if failed:
        print(f"Could not comment on: {', '.join(failed)}")

    print("Review completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
