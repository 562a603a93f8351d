"""GitHub API client for reading PR diffs and posting review comments."""

import logging

import requests

from patchpilot.config import Config
from patchpilot.models import ChangedFile

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class GitHubClient:
    """Client for one pull request on GitHub."""

    def __init__(self, config: Config, token: str, repo_name: str, pr_number: int):
        self.config = config
        self.repo_name = repo_name
        self.pr_number = pr_number
        self.base_url = f"{config.github_api_url.rstrip('/')}/repos/{repo_name}"
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        }
        self._head_sha: str | None = None

    def _get(self, path: str, **params) -> dict | list:
        response = requests.get(f"{self.base_url}{path}", headers=self.headers, params=params, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()

    def _post(self, path: str, payload: dict) -> dict:
        response = requests.post(f"{self.base_url}{path}", headers=self.headers, json=payload, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()

    def get_pr_refs(self) -> tuple[str, str]:
        """Base and head branch names of the pull request."""
        pr = self._get(f"/pulls/{self.pr_number}")
        return pr["base"]["ref"], pr["head"]["ref"]

    def get_changed_files(self, base: str, head: str) -> list[ChangedFile]:
        """Changed files between two refs; `patch` is None where GitHub omits it (binary, too large)."""
        comparison = self._get(f"/compare/{base}...{head}")
        files = comparison.get("files") or []
        return [ChangedFile(filename=f.get("filename") or "unknown file", patch=f.get("patch")) for f in files]

    def get_last_commit(self) -> str:
        """SHA of the last commit on the pull request, cached after the first call."""
        if self._head_sha is None:
            commits = self._get(f"/pulls/{self.pr_number}/commits", per_page=50)
            if not commits:
                raise ValueError(f"Pull request #{self.pr_number} has no commits")
            self._head_sha = commits[-1]["sha"]
        return self._head_sha

    def create_line_comment(self, path: str, line: int, body: str) -> dict:
        """Anchor a review comment to a new-file line; raises HTTPError when GitHub refuses the line."""
        return self._post(
            f"/pulls/{self.pr_number}/comments",
            {
                "body": body,
                "commit_id": self.get_last_commit(),
                "path": path,
                "line": line,
                "side": "RIGHT",
            },
        )

    def create_pr_comment(self, body: str) -> dict:
        return self._post(f"/issues/{self.pr_number}/comments", {"body": body})

    def post_skipped_files_notice(self, filenames: list[str], budget: int) -> None:
        """Post one informational comment listing files left out of the review."""
        file_list = "\n".join(f"- `{name}`" for name in filenames)
        body = (
            f"## {self.config.comment_prefix} Files Skipped\n\n"
            f"The following **{len(filenames)}** file(s) were skipped from automated review "
            f"because they exceed the token limit (**{budget}** tokens):\n\n"
            f"{file_list}\n\n"
            "These files should be reviewed manually. Set `SHOW_SKIPPED_FILES_COMMENT=false` to hide this message."
        )
        try:
            self.create_pr_comment(body)
            logger.info("Created informational comment for %d skipped files", len(filenames))
        except requests.RequestException as e:
            logger.error("Failed to create skipped files comment: %s", e)
