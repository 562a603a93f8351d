from unittest.mock import MagicMock

import pytest

from patchpilot.chunker import TokenEstimator
from patchpilot.config import Config
from patchpilot.diff_parser import parse_concatenated
from patchpilot.models import ChangedFile


class StubEstimator(TokenEstimator):
    """Fixed cost per patch text, 10 units for anything unknown."""

    def __init__(self, costs: dict[str, int] | None = None):
        self.costs = costs or {}

    def estimate(self, text: str) -> int:
        return self.costs.get(text, 10)


def make_patch(name: str, start: int = 1) -> str:
    """A small patch with one context, one modified and one added line."""
    return (
        f"@@ -{start},2 +{start},3 @@\n"
        f" # {name}\n"
        f"-old = 1\n"
        f"+new = 1\n"
        f"+extra = 2"
    )


@pytest.fixture
def config():
    return Config(max_tokens=200, batch_delay_seconds=5, comment_prefix="[bot]")


@pytest.fixture
def changed_files():
    return [ChangedFile(filename=f"src/file_{i}.py", patch=make_patch(f"file_{i}")) for i in range(4)]


@pytest.fixture
def mock_ai():
    """AI client that returns one file review per file found in the batch buffer."""
    def review(system_prompt, user_message):
        return {
            "overall_review": {"summary": "ok", "recommendation": "COMMENT", "issues_count": 1, "quality_score": 8},
            "file_reviews": [
                {
                    "filename": filename,
                    "line_comments": [
                        {"line_number": 2, "comment": "Rename this", "severity": "warning", "category": "style"}
                    ],
                    "file_summary": f"Looks fine: {filename}",
                }
                for filename in parse_concatenated(user_message)
            ],
        }

    ai = MagicMock()
    ai.review = MagicMock(side_effect=review)
    return ai


@pytest.fixture
def poster():
    poster = MagicMock()
    poster.create_line_comment.return_value = {"id": 1}
    poster.create_pr_comment.return_value = {"id": 2}
    return poster
